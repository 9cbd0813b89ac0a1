"""Fraud rules package.

Exports ALL_RULES (rule instances in evaluation order) and the rule
classes for direct use.
"""

from .account import BlacklistedUserRule
from .amount import HighAmountRule, SuspiciousTimeAmountRule
from .base import FraudRule, RuleContext
from .geo import BlockedCountryRule, MultipleCountriesRule
from .velocity import DuplicateTransactionRule, VelocityExceededRule

ALL_RULES: list[FraudRule] = [
    BlockedCountryRule(),
    HighAmountRule(),
    VelocityExceededRule(),
    DuplicateTransactionRule(),
    BlacklistedUserRule(),
    SuspiciousTimeAmountRule(),
    MultipleCountriesRule(),
]

__all__ = [
    "ALL_RULES",
    "FraudRule",
    "RuleContext",
    "BlacklistedUserRule",
    "BlockedCountryRule",
    "DuplicateTransactionRule",
    "HighAmountRule",
    "MultipleCountriesRule",
    "SuspiciousTimeAmountRule",
    "VelocityExceededRule",
]

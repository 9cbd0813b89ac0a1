"""Abstract base class for deterministic fraud rules."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import FraudConfig
from ..models import RuleResult, Transaction, UserProfile


@dataclass
class RuleContext:
    """Everything a rule may look at, fetched once per evaluation."""

    transaction: Transaction
    profile: UserProfile | None
    recent_transactions: list[Transaction]
    now: datetime
    config: FraudConfig

    def history_since(self, delta: timedelta) -> list[Transaction]:
        """User history strictly newer than now - delta."""
        cutoff = self.now - delta
        return [t for t in self.recent_transactions if t.timestamp > cutoff]


class FraudRule(ABC):
    """Base class for all fraud rules.

    Each rule owns one violation code (its ``rule_id``). Rules are pure
    functions of the context; any exception propagates to the engine.
    """

    rule_id: str
    category: str  # "geo" | "amount" | "velocity" | "account"

    @abstractmethod
    def evaluate(self, ctx: RuleContext) -> RuleResult:
        """Evaluate this rule and return a RuleResult."""
        ...

    def _not_triggered(self) -> RuleResult:
        return RuleResult(rule_name=self.rule_id, triggered=False, category=self.category)

    def _triggered(self, details: str, evidence: dict | None = None) -> RuleResult:
        return RuleResult(
            rule_name=self.rule_id,
            triggered=True,
            category=self.category,
            details=details,
            evidence=evidence or {},
        )

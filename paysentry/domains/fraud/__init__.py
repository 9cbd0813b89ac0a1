"""Fraud scoring domain: behavior, risk factors, rules, ensemble and the scorer."""

from .behavior import BehavioralAnalyzer
from .config import FraudConfig, default_config
from .ensemble import EnsembleCombiner
from .exceptions import (
    ClassifierUnavailableError,
    ExternalSignalError,
    FraudScoringException,
    RulesEvaluationError,
    ScoringError,
)
from .models import Decision, FraudAlert, FraudDecision, ReviewStatus, Transaction, UserProfile
from .risk_factors import RiskFactorCalculator
from .rules_engine import RulesEngine
from .scorer import FraudScorer

__all__ = [
    "BehavioralAnalyzer",
    "ClassifierUnavailableError",
    "Decision",
    "EnsembleCombiner",
    "ExternalSignalError",
    "FraudAlert",
    "FraudConfig",
    "FraudDecision",
    "FraudScorer",
    "FraudScoringException",
    "ReviewStatus",
    "RiskFactorCalculator",
    "RulesEngine",
    "RulesEvaluationError",
    "ScoringError",
    "Transaction",
    "UserProfile",
    "default_config",
]

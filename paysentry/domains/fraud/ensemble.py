"""Weighted ensemble of the primary classifier and three local sub-models."""

import asyncio
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from .config import FraudConfig, default_config
from .interfaces import FraudClassifier
from .models import BehavioralSnapshot, Transaction, UserProfile
from .risk_factors import RiskFactorCalculator

logger = structlog.get_logger()

PRIMARY_CLASSIFIER = "PrimaryClassifier"
RULE_BASED_MODEL = "RuleBasedModel"
STATISTICAL_MODEL = "StatisticalModel"
BEHAVIORAL_MODEL = "BehavioralModel"

# Anomaly flag classes recognized by the rule-based sub-model.
# FirstTimeCountry and NewDevice are reserved: BehavioralAnalyzer does not
# emit their codes, so they score only for snapshots built elsewhere.
FLAG_CLASSES: dict[str, frozenset[str]] = {
    "FirstTimeCountry": frozenset({"FIRST_TIME_COUNTRY"}),
    "HighVelocity": frozenset({"HIGH_VELOCITY_1H", "HIGH_VELOCITY_24H"}),
    "UnusualAmount": frozenset({"UNUSUAL_AMOUNT"}),
    "NewDevice": frozenset({"NEW_DEVICE"}),
}

FLAG_CLASS_POINTS: dict[str, float] = {
    "FirstTimeCountry": 0.2,
    "HighVelocity": 0.3,
    "UnusualAmount": 0.2,
    "NewDevice": 0.15,
}


def flag_classes(flags: set[str]) -> set[str]:
    """Map concrete anomaly flag codes to the classes they belong to."""
    return {name for name, codes in FLAG_CLASSES.items() if codes & flags}


def rule_based_score(transaction: Transaction, snapshot: BehavioralSnapshot) -> float:
    """Additive heuristic over amount, anomaly flag classes and hour."""
    score = 0.0
    amount = transaction.amount_float
    if amount > 10_000:
        score += 0.3
    if amount > 50_000:
        score += 0.4

    for name in flag_classes(snapshot.anomaly_flags):
        score += FLAG_CLASS_POINTS[name]

    if 1 <= transaction.timestamp.hour <= 5:
        score += 0.15

    return min(score, 1.0)


class EnsembleCombiner:
    """Combines four sub-model scores into one fraud probability.

    Sub-models run sequentially, each individually guarded and time-limited:
    a failure or timeout is logged and replaced by the neutral fallback, so
    all four always contribute and the weighted sum stays within [0, 1].
    """

    def __init__(
        self,
        classifier: FraudClassifier,
        risk_calculator: RiskFactorCalculator,
        config: FraudConfig | None = None,
    ) -> None:
        self._classifier = classifier
        self._risk_calculator = risk_calculator
        self._config = config or default_config

    @property
    def weights(self) -> dict[str, float]:
        w = self._config.ensemble
        return {
            PRIMARY_CLASSIFIER: w.primary_classifier,
            RULE_BASED_MODEL: w.rule_based,
            STATISTICAL_MODEL: w.statistical,
            BEHAVIORAL_MODEL: w.behavioral,
        }

    async def predict(
        self,
        transaction: Transaction,
        profile: UserProfile | None,
        snapshot: BehavioralSnapshot,
        now: datetime | None = None,
    ) -> float:
        predictions = await self.sub_model_predictions(transaction, profile, snapshot, now)
        weights = self.weights
        score = sum(weights[name] * value for name, value in predictions.items())
        score = max(0.0, min(score, 1.0))

        logger.info(
            "ensemble_predicted",
            transaction_id=transaction.transaction_id,
            ensemble_score=round(score, 4),
            **{name.lower(): round(v, 4) for name, v in predictions.items()},
        )
        return score

    async def sub_model_predictions(
        self,
        transaction: Transaction,
        profile: UserProfile | None,
        snapshot: BehavioralSnapshot,
        now: datetime | None = None,
    ) -> dict[str, float]:
        now = now or datetime.now(UTC)

        async def primary() -> float:
            return await self._classifier.predict(transaction, profile, snapshot)

        async def rule_based() -> float:
            return rule_based_score(transaction, snapshot)

        async def statistical() -> float:
            return await self._statistical_score(transaction, now)

        async def behavioral() -> float:
            return snapshot.risk_score / 100.0

        sub_models: dict[str, Callable[[], Awaitable[float]]] = {
            PRIMARY_CLASSIFIER: primary,
            RULE_BASED_MODEL: rule_based,
            STATISTICAL_MODEL: statistical,
            BEHAVIORAL_MODEL: behavioral,
        }

        predictions: dict[str, float] = {}
        for name, run in sub_models.items():
            predictions[name] = await self._guarded(name, run, transaction)
        return predictions

    async def _guarded(
        self,
        name: str,
        run: Callable[[], Awaitable[float]],
        transaction: Transaction,
    ) -> float:
        fallback = self._config.ensemble.fallback_score
        try:
            async with asyncio.timeout(self._config.ensemble.sub_model_timeout_seconds):
                value = float(await run())
        except TimeoutError:
            logger.warning(
                "sub_model_timed_out",
                model=name,
                transaction_id=transaction.transaction_id,
                fallback=fallback,
            )
            return fallback
        except Exception:
            logger.warning(
                "sub_model_failed",
                model=name,
                transaction_id=transaction.transaction_id,
                fallback=fallback,
                exc_info=True,
            )
            return fallback

        if not math.isfinite(value):
            logger.warning(
                "sub_model_non_finite",
                model=name,
                transaction_id=transaction.transaction_id,
                fallback=fallback,
            )
            return fallback
        return max(0.0, min(value, 1.0))

    async def _statistical_score(self, transaction: Transaction, now: datetime) -> float:
        # Population-level view: no user profile
        risk_scores = await self._risk_calculator.compute_all(transaction, None, now)
        values = list(risk_scores.values())
        return 0.6 * (sum(values) / len(values)) + 0.4 * max(values)

"""Fraud scoring pipeline.

block check -> profile -> behavior -> ensemble -> risk factors -> rules
-> external signal blend -> decision -> persist -> alert
"""

import math
import time
from datetime import UTC, datetime

import structlog

from .alerts import build_alert
from .behavior import BehavioralAnalyzer
from .config import FraudConfig, default_config
from .ensemble import EnsembleCombiner
from .exceptions import ExternalSignalError, RulesEvaluationError, ScoringError
from .interfaces import (
    AlertSink,
    ExternalSignalProvider,
    FraudClassifier,
    GeoLocationStore,
    PersistenceSink,
    TransactionHistoryStore,
    UserProfileStore,
)
from .models import (
    BehavioralSnapshot,
    Decision,
    FraudAlert,
    FraudDecision,
    ReviewStatus,
    Transaction,
)
from .risk_factors import RiskFactorCalculator
from .rules_engine import RulesEngine, is_blocking

logger = structlog.get_logger()

BLOCKED_REASON = "blocked by fraud rules"


class FraudScorer:
    """Orchestrates the full fraud scoring pipeline for one transaction at a time.

    The scorer holds no per-transaction state, so a single instance can score
    many transactions concurrently. Sub-model and sub-score failures degrade
    to neutral values inside their components; rules, profile, external
    signal and persistence failures raise ScoringError and no decision is
    returned.
    """

    def __init__(
        self,
        profiles: UserProfileStore,
        history: TransactionHistoryStore,
        classifier: FraudClassifier,
        signal_provider: ExternalSignalProvider,
        alert_sink: AlertSink,
        persistence: PersistenceSink,
        geo_store: GeoLocationStore | None = None,
        config: FraudConfig | None = None,
        *,
        rules_engine: RulesEngine | None = None,
        behavior_analyzer: BehavioralAnalyzer | None = None,
        risk_calculator: RiskFactorCalculator | None = None,
        ensemble: EnsembleCombiner | None = None,
    ) -> None:
        self._config = config or default_config
        self._profiles = profiles
        self._signal_provider = signal_provider
        self._alert_sink = alert_sink
        self._persistence = persistence
        self._rules_engine = rules_engine or RulesEngine(history, self._config)
        self._behavior = behavior_analyzer or BehavioralAnalyzer(history, geo_store, self._config)
        self._risk_calculator = risk_calculator or RiskFactorCalculator(history, self._config)
        self._ensemble = ensemble or EnsembleCombiner(
            classifier, self._risk_calculator, self._config
        )

    async def score_transaction(self, transaction: Transaction) -> FraudDecision:
        """Score a transaction and return its terminal decision."""
        start = time.perf_counter()
        now = datetime.now(UTC)
        txn_id = transaction.transaction_id
        cfg = self._config.decision

        # 1. Hard block check
        try:
            blocked = await self._rules_engine.should_block(transaction, None, now)
        except RulesEvaluationError as exc:
            raise ScoringError(txn_id, "block_check", str(exc)) from exc
        if blocked:
            return self._blocked(transaction, start)

        # 2. Context gathering
        try:
            profile = await self._profiles.get_by_user_id(transaction.user_id)
        except Exception as exc:
            logger.exception("profile_fetch_failed", transaction_id=txn_id)
            raise ScoringError(txn_id, "profile_fetch", str(exc)) from exc

        snapshot = await self._behavior.analyze(transaction, profile, now)

        # 3. Prediction
        ensemble_score = await self._ensemble.predict(transaction, profile, snapshot, now)
        breakdown = await self._risk_calculator.compute_all(transaction, profile, now)
        try:
            violations = await self._rules_engine.evaluate(transaction, profile, now)
        except RulesEvaluationError as exc:
            raise ScoringError(txn_id, "rule_evaluation", str(exc)) from exc

        # Profile-dependent blocking rules (BLACKLISTED_USER) only fire here
        if is_blocking(violations):
            return self._blocked(transaction, start, violations)

        # 4. External signal blend
        external_score = await self._external_signal_score(transaction)
        probability = (
            cfg.ensemble_weight * ensemble_score + cfg.external_signal_weight * external_score
        )
        probability = max(0.0, min(probability, 1.0))

        # 5. Decision
        is_fraudulent = probability > cfg.decline_threshold
        decision = Decision.DECLINED if is_fraudulent else Decision.APPROVED
        try:
            needs_review = await self._rules_engine.requires_manual_review(
                transaction, probability, violations, now
            )
        except RulesEvaluationError as exc:
            raise ScoringError(txn_id, "manual_review", str(exc)) from exc
        review_status = ReviewStatus.MANUAL_REVIEW if needs_review else ReviewStatus.AUTO

        # 6. Risk factor assembly
        risk_factors = {
            "EnsembleScore": ensemble_score,
            "ExternalSignalScore": external_score,
            "BehavioralRisk": snapshot.risk_score / 100.0,
            **breakdown,
            "RuleViolationCount": float(len(violations)),
        }

        reasons = _reasons(snapshot, violations)
        result = FraudDecision(
            transaction_id=txn_id,
            fraud_probability=probability,
            is_fraudulent=is_fraudulent,
            decision=decision,
            reason=_reason_text(decision, review_status, reasons),
            processed_at=datetime.now(UTC),
            risk_factors=risk_factors,
            review_status=review_status,
        )

        # 7. Side effects: persist, then alert
        transaction.status = decision.value
        transaction.fraud_score = probability
        transaction.is_fraudulent = is_fraudulent
        try:
            await self._persistence.save(transaction)
        except Exception as exc:
            logger.exception("transaction_persist_failed", transaction_id=txn_id)
            raise ScoringError(txn_id, "persistence", str(exc)) from exc

        if is_fraudulent or needs_review:
            alert = build_alert(
                transaction,
                probability,
                is_fraudulent,
                snapshot.anomaly_flags,
                violations,
                self._config,
            )
            await self._publish_alert(alert)

        logger.info(
            "transaction_scored",
            transaction_id=txn_id,
            fraud_probability=round(probability, 4),
            decision=decision.value,
            review_status=review_status.value,
            ensemble_score=round(ensemble_score, 4),
            external_score=external_score,
            violations=violations,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return result

    async def _external_signal_score(self, transaction: Transaction) -> float:
        txn_id = transaction.transaction_id
        try:
            signal = await self._signal_provider.score(transaction)
            if not signal.is_success:
                raise ExternalSignalError(
                    f"Signal provider returned {signal.status}: {'; '.join(signal.reasons)}",
                    status=signal.status,
                )
            if not math.isfinite(signal.score):
                raise ExternalSignalError(
                    f"Signal provider returned non-finite score: {signal.score}"
                )
        except Exception as exc:
            logger.error("external_signal_unavailable", transaction_id=txn_id, error=str(exc))
            raise ScoringError(txn_id, "external_signal", str(exc)) from exc
        return max(0.0, min(signal.score, 1.0))

    async def _publish_alert(self, alert: FraudAlert) -> None:
        try:
            await self._alert_sink.publish(alert)
        except Exception:
            logger.exception(
                "alert_publish_failed",
                alert_id=alert.alert_id,
                transaction_id=alert.transaction_id,
            )
            return
        logger.warning(
            "fraud_alert_raised",
            alert_id=alert.alert_id,
            transaction_id=alert.transaction_id,
            severity=alert.severity.value,
            alert_type=alert.alert_type,
        )

    def _blocked(
        self,
        transaction: Transaction,
        start: float,
        violations: list[str] | None = None,
    ) -> FraudDecision:
        logger.warning(
            "transaction_blocked",
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            violations=violations,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return FraudDecision(
            transaction_id=transaction.transaction_id,
            fraud_probability=1.0,
            is_fraudulent=True,
            decision=Decision.BLOCKED,
            reason=BLOCKED_REASON,
            processed_at=datetime.now(UTC),
            review_status=ReviewStatus.BLOCKED,
        )


def _reasons(snapshot: BehavioralSnapshot, violations: list[str]) -> list[str]:
    reasons = sorted(snapshot.anomaly_flags)
    reasons.extend(v for v in violations if v not in reasons)
    return reasons


def _reason_text(decision: Decision, review_status: ReviewStatus, reasons: list[str]) -> str:
    detail = ", ".join(reasons)
    if decision == Decision.DECLINED:
        return f"High fraud risk: {detail}" if detail else "High fraud risk"
    if review_status == ReviewStatus.MANUAL_REVIEW:
        return f"Manual review required: {detail}" if detail else "Manual review required"
    return "Low fraud risk"

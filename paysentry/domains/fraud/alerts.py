"""Fraud alert construction and Kafka publishing."""

from collections.abc import Iterable

import structlog

from .config import FraudConfig, default_config
from .models import AlertSeverity, FraudAlert, Transaction

logger = structlog.get_logger()

ALERT_HIGH_RISK = "HIGH_RISK_TRANSACTION"
ALERT_MANUAL_REVIEW = "MANUAL_REVIEW_REQUIRED"


def classify_severity(fraud_probability: float, config: FraudConfig | None = None) -> AlertSeverity:
    cfg = (config or default_config).alerts
    if fraud_probability > cfg.critical_threshold:
        return AlertSeverity.CRITICAL
    if fraud_probability > cfg.high_threshold:
        return AlertSeverity.HIGH
    return AlertSeverity.MEDIUM


def build_alert(
    transaction: Transaction,
    fraud_probability: float,
    is_fraudulent: bool,
    anomaly_flags: Iterable[str],
    violations: Iterable[str],
    config: FraudConfig | None = None,
) -> FraudAlert:
    """Build an alert whose reasons are the union of flags and violations."""
    reasons: list[str] = []
    for reason in [*sorted(anomaly_flags), *violations]:
        if reason not in reasons:
            reasons.append(str(reason))

    return FraudAlert(
        transaction_id=transaction.transaction_id,
        user_id=transaction.user_id,
        amount=transaction.amount,
        fraud_probability=fraud_probability,
        alert_type=ALERT_HIGH_RISK if is_fraudulent else ALERT_MANUAL_REVIEW,
        severity=classify_severity(fraud_probability, config),
        reasons=reasons,
    )


class KafkaAlertSink:
    """Publishes alerts to a Kafka topic, keyed by user id.

    Args:
        producer: A started aiokafka AIOKafkaProducer.
        topic: Destination topic.
    """

    def __init__(self, producer, topic: str = "paysentry.fraud.alerts") -> None:
        self._producer = producer
        self._topic = topic

    async def publish(self, alert: FraudAlert) -> None:
        payload = alert.model_dump(mode="json")
        await self._producer.send_and_wait(
            self._topic,
            value=payload,
            key=alert.user_id,
        )
        logger.info(
            "alert_published_to_kafka",
            alert_id=alert.alert_id,
            transaction_id=alert.transaction_id,
            severity=alert.severity.value,
            topic=self._topic,
        )

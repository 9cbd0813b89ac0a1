"""Fraud scoring configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class BehaviorThresholds:
    history_limit: int = 1000
    velocity_count_1h_max: int = 10
    velocity_count_24h_max: int = 50
    unique_devices_24h_max: int = 5
    unique_ips_24h_max: int = 5
    unusual_amount_multiplier: float = 3.0
    anomaly_flag_points: float = 10.0


@dataclass
class RiskFactorThresholds:
    # Device
    device_window_hours: int = 24
    device_shared_users_max: int = 5
    device_shared_penalty: float = 0.3
    # Velocity
    velocity_amount_1h_max: float = 10_000.0
    velocity_amount_24h_max: float = 50_000.0
    velocity_count_1h_max: int = 10
    velocity_count_1h_severe: int = 20
    # Geolocation
    geo_history_limit: int = 20
    geo_distinct_countries_max: int = 5
    high_risk_countries: frozenset[str] = frozenset({"NG", "PK", "VN", "ID", "RO"})
    # Amount
    amount_history_limit: int = 50
    large_amount: float = 5_000.0
    new_user_large_amount: float = 1_000.0
    # Time of day
    time_history_limit: int = 100
    night_hours: tuple[int, int] = (1, 5)
    # Per-factor value used when a sub-calculation fails
    failure_default: float = 0.5


@dataclass
class RuleThresholds:
    blocked_countries: frozenset[str] = frozenset({"KP", "IR", "SY"})
    high_amount: float = 10_000.0
    max_transactions_per_hour: int = 15
    duplicate_window_minutes: int = 5
    suspicious_hours: tuple[int, int] = (2, 4)
    suspicious_amount: float = 5_000.0
    max_countries_24h: int = 5
    history_limit: int = 100


@dataclass
class EnsembleWeights:
    primary_classifier: float = 0.40
    rule_based: float = 0.25
    statistical: float = 0.20
    behavioral: float = 0.15
    fallback_score: float = 0.5
    # Per sub-model time limit; on expiry the fallback score is used
    sub_model_timeout_seconds: float = 1.0

    def __post_init__(self) -> None:
        total = self.primary_classifier + self.rule_based + self.statistical + self.behavioral
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Ensemble weights must sum to 1.0, got {total:.4f}")


@dataclass
class DecisionThresholds:
    decline_threshold: float = 0.7
    manual_review_threshold: float = 0.5
    ensemble_weight: float = 0.7
    external_signal_weight: float = 0.3

    def __post_init__(self) -> None:
        if not 0.0 <= self.manual_review_threshold <= self.decline_threshold <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= manual_review_threshold <= decline_threshold <= 1, "
                f"got {self.manual_review_threshold} / {self.decline_threshold}"
            )
        total = self.ensemble_weight + self.external_signal_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Blend weights must sum to 1.0, got {total:.4f}")


@dataclass
class AlertSettings:
    critical_threshold: float = 0.9
    high_threshold: float = 0.7
    kafka_topic: str = "paysentry.fraud.alerts"


@dataclass
class FraudConfig:
    behavior: BehaviorThresholds = field(default_factory=BehaviorThresholds)
    risk_factors: RiskFactorThresholds = field(default_factory=RiskFactorThresholds)
    rules: RuleThresholds = field(default_factory=RuleThresholds)
    ensemble: EnsembleWeights = field(default_factory=EnsembleWeights)
    decision: DecisionThresholds = field(default_factory=DecisionThresholds)
    alerts: AlertSettings = field(default_factory=AlertSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Rule overrides
        if v := os.getenv("FRAUD_HIGH_AMOUNT_THRESHOLD"):
            config.rules.high_amount = float(v)
        if v := os.getenv("FRAUD_MAX_TRANSACTIONS_PER_HOUR"):
            config.rules.max_transactions_per_hour = int(v)
        if v := os.getenv("FRAUD_BLOCKED_COUNTRIES"):
            config.rules.blocked_countries = frozenset(
                c.strip().upper() for c in v.split(",") if c.strip()
            )

        # Decision overrides, re-validated as a group
        decision_kwargs: dict[str, float] = {}
        if v := os.getenv("FRAUD_DECLINE_THRESHOLD"):
            decision_kwargs["decline_threshold"] = float(v)
        if v := os.getenv("FRAUD_MANUAL_REVIEW_THRESHOLD"):
            decision_kwargs["manual_review_threshold"] = float(v)
        if v := os.getenv("FRAUD_EXTERNAL_SIGNAL_WEIGHT"):
            decision_kwargs["external_signal_weight"] = float(v)
            decision_kwargs["ensemble_weight"] = 1.0 - float(v)
        if decision_kwargs:
            config.decision = DecisionThresholds(**decision_kwargs)

        # Alert overrides
        if v := os.getenv("FRAUD_ALERT_KAFKA_TOPIC"):
            config.alerts.kafka_topic = v

        return config


# Module-level default instance
default_config = FraudConfig()

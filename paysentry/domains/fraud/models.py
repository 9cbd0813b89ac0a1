"""Pydantic models for the fraud scoring domain."""

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# Keys of the risk factor breakdown, in reporting order
RISK_FACTOR_KEYS: tuple[str, ...] = (
    "DeviceRisk",
    "VelocityRisk",
    "GeolocationRisk",
    "AmountRisk",
    "TimeRisk",
)

RiskFactorBreakdown = dict[str, float]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnomalyFlag(StrEnum):
    HIGH_VELOCITY_1H = "HIGH_VELOCITY_1H"
    HIGH_VELOCITY_24H = "HIGH_VELOCITY_24H"
    MULTIPLE_DEVICES = "MULTIPLE_DEVICES"
    MULTIPLE_IPS = "MULTIPLE_IPS"
    UNUSUAL_AMOUNT = "UNUSUAL_AMOUNT"
    PROXY_VPN_TOR = "PROXY_VPN_TOR"


class Violation(StrEnum):
    BLOCKED_COUNTRY = "BLOCKED_COUNTRY"
    HIGH_AMOUNT = "HIGH_AMOUNT"
    VELOCITY_EXCEEDED = "VELOCITY_EXCEEDED"
    DUPLICATE_TRANSACTION = "DUPLICATE_TRANSACTION"
    BLACKLISTED_USER = "BLACKLISTED_USER"
    SUSPICIOUS_TIME_AMOUNT = "SUSPICIOUS_TIME_AMOUNT"
    MULTIPLE_COUNTRIES = "MULTIPLE_COUNTRIES"


class Decision(StrEnum):
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    BLOCKED = "BLOCKED"


class ReviewStatus(StrEnum):
    AUTO = "AUTO"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    BLOCKED = "BLOCKED"


class AlertSeverity(StrEnum):
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# --- Inputs ---


class Transaction(BaseModel):
    transaction_id: str
    user_id: str
    amount: Decimal
    currency: str = "USD"
    timestamp: datetime = Field(default_factory=_utcnow)
    ip_address: str = ""
    device_id: str = ""
    country: str = ""
    payment_gateway: str = ""
    device_type: str = ""
    browser: str = ""
    operating_system: str = ""
    # Set by the scorer once a decision is reached
    status: str = "PENDING"
    fraud_score: float | None = None
    is_fraudulent: bool = False

    @property
    def amount_float(self) -> float:
        return float(self.amount)


class UserProfile(BaseModel):
    user_id: str
    total_transactions: int = 0
    avg_amount: Decimal = Decimal("0")
    total_spent: Decimal = Decimal("0")
    used_ip_addresses: set[str] = Field(default_factory=set)
    used_devices: set[str] = Field(default_factory=set)
    first_transaction_at: datetime | None = None
    last_transaction_at: datetime | None = None
    suspicious_flags: int = 0
    chargeback_count: int = 0
    is_blacklisted: bool = False


# --- Behavioral snapshot ---


class GeoLocationResult(BaseModel):
    country: str = ""
    city: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    isp: str = ""
    is_proxy: bool = False
    is_vpn: bool = False
    is_tor: bool = False
    risk_score: int = Field(default=0, ge=0, le=100)

    @property
    def is_anonymized(self) -> bool:
        return self.is_proxy or self.is_vpn or self.is_tor


class DeviceFingerprint(BaseModel):
    device_id: str = ""
    device_type: str = ""
    browser: str = ""
    operating_system: str = ""


class VelocityMetrics(BaseModel):
    transactions_last_1h: int = 0
    transactions_last_24h: int = 0
    transactions_last_7d: int = 0
    amount_last_1h: Decimal = Decimal("0")
    amount_last_24h: Decimal = Decimal("0")
    amount_last_7d: Decimal = Decimal("0")
    unique_devices_24h: int = 0
    unique_ips_24h: int = 0
    velocity_score: float = Field(default=0.0, ge=0.0, le=100.0)


class BehavioralSnapshot(BaseModel):
    user_id: str
    ip_address: str = ""
    # None means the lookup failed and no geo signal is available
    geo_location: GeoLocationResult | None = None
    device: DeviceFingerprint = Field(default_factory=DeviceFingerprint)
    velocity: VelocityMetrics = Field(default_factory=VelocityMetrics)
    anomaly_flags: set[str] = Field(default_factory=set)
    risk_score: float = Field(default=0.0, ge=0.0, le=100.0)


# --- External collaborators ---


class ExternalSignalResult(BaseModel):
    score: float = 0.0
    status: str = ""
    reasons: list[str] = Field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status == "SUCCESS"


# --- Outputs ---


class FraudDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    fraud_probability: float = Field(ge=0.0, le=1.0)
    is_fraudulent: bool
    decision: Decision
    reason: str
    processed_at: datetime = Field(default_factory=_utcnow)
    risk_factors: dict[str, float] = Field(default_factory=dict)
    review_status: ReviewStatus = ReviewStatus.AUTO


class FraudAlert(BaseModel):
    alert_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    transaction_id: str
    user_id: str
    amount: Decimal
    fraud_probability: float
    alert_type: str
    severity: AlertSeverity = AlertSeverity.MEDIUM
    reasons: list[str] = Field(default_factory=list)
    status: str = "UNRESOLVED"
    created_at: datetime = Field(default_factory=_utcnow)


# --- Rules ---


class RuleResult(BaseModel):
    rule_name: str
    triggered: bool
    category: str = ""
    details: str = ""
    evidence: dict = Field(default_factory=dict)

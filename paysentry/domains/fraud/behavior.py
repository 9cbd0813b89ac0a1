"""Behavioral analysis: geolocation, device fingerprint, velocity and anomaly flags.

The analyzer must never block scoring. Every sub-computation is guarded and
degrades to a neutral value, so callers always receive a snapshot.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog

from .config import FraudConfig, default_config
from .interfaces import GeoLocationStore, TransactionHistoryStore
from .models import (
    AnomalyFlag,
    BehavioralSnapshot,
    DeviceFingerprint,
    GeoLocationResult,
    Transaction,
    UserProfile,
    VelocityMetrics,
)

logger = structlog.get_logger()

GEO_PROXY_POINTS = 30
GEO_VPN_POINTS = 25
GEO_TOR_POINTS = 40


def geo_risk_score(geo: GeoLocationResult) -> int:
    """Derive a 0-100 risk score from the anonymization flags."""
    score = 0
    if geo.is_proxy:
        score += GEO_PROXY_POINTS
    if geo.is_vpn:
        score += GEO_VPN_POINTS
    if geo.is_tor:
        score += GEO_TOR_POINTS
    return min(score, 100)


def extract_device_fingerprint(transaction: Transaction) -> DeviceFingerprint:
    return DeviceFingerprint(
        device_id=transaction.device_id,
        device_type=transaction.device_type,
        browser=transaction.browser,
        operating_system=transaction.operating_system,
    )


class BehavioralAnalyzer:
    """Builds a BehavioralSnapshot for one transaction."""

    def __init__(
        self,
        history: TransactionHistoryStore,
        geo_store: GeoLocationStore | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._history = history
        self._geo_store = geo_store
        self._config = config or default_config

    async def analyze(
        self,
        transaction: Transaction,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> BehavioralSnapshot:
        now = now or datetime.now(UTC)

        geo = await self.lookup_geolocation(transaction.ip_address)
        device = extract_device_fingerprint(transaction)

        try:
            velocity = await self.calculate_velocity(transaction.user_id, now)
        except Exception:
            logger.exception(
                "velocity_calculation_failed",
                transaction_id=transaction.transaction_id,
                user_id=transaction.user_id,
            )
            velocity = VelocityMetrics()

        flags: set[str] = set()
        if profile is not None:
            flags = self._anomaly_flags(transaction, profile, velocity, geo)

        risk_score = self._risk_score(flags, geo, velocity)

        snapshot = BehavioralSnapshot(
            user_id=transaction.user_id,
            ip_address=transaction.ip_address,
            geo_location=geo,
            device=device,
            velocity=velocity,
            anomaly_flags=flags,
            risk_score=risk_score,
        )

        logger.info(
            "behavior_analyzed",
            transaction_id=transaction.transaction_id,
            user_id=transaction.user_id,
            risk_score=risk_score,
            anomaly_flags=sorted(flags),
            velocity_score=velocity.velocity_score,
        )
        return snapshot

    async def lookup_geolocation(self, ip_address: str) -> GeoLocationResult | None:
        """Resolve an IP to a location.

        Returns an empty result when no backing store is configured and None
        when the lookup itself fails.
        """
        if self._geo_store is None:
            return GeoLocationResult()

        try:
            result = await self._geo_store.lookup(ip_address)
        except Exception:
            logger.warning("geo_lookup_failed", ip_address=ip_address, exc_info=True)
            return None

        if result is None:
            return GeoLocationResult()
        return result.model_copy(update={"risk_score": geo_risk_score(result)})

    async def calculate_velocity(self, user_id: str, now: datetime) -> VelocityMetrics:
        cfg = self._config.behavior
        transactions = await self._history.get_user_transactions(user_id, cfg.history_limit)

        one_hour_ago = now - timedelta(hours=1)
        one_day_ago = now - timedelta(hours=24)
        seven_days_ago = now - timedelta(days=7)

        last_1h = [t for t in transactions if t.timestamp >= one_hour_ago]
        last_24h = [t for t in transactions if t.timestamp >= one_day_ago]
        last_7d = [t for t in transactions if t.timestamp >= seven_days_ago]

        velocity = VelocityMetrics(
            transactions_last_1h=len(last_1h),
            transactions_last_24h=len(last_24h),
            transactions_last_7d=len(last_7d),
            amount_last_1h=sum((t.amount for t in last_1h), Decimal("0")),
            amount_last_24h=sum((t.amount for t in last_24h), Decimal("0")),
            amount_last_7d=sum((t.amount for t in last_7d), Decimal("0")),
            unique_devices_24h=len({t.device_id for t in last_24h}),
            unique_ips_24h=len({t.ip_address for t in last_24h}),
        )
        velocity.velocity_score = self._velocity_score(velocity)
        return velocity

    def _velocity_score(self, velocity: VelocityMetrics) -> float:
        cfg = self._config.behavior
        score = 0.0
        if velocity.transactions_last_1h > cfg.velocity_count_1h_max:
            score += 20
        if velocity.transactions_last_24h > cfg.velocity_count_24h_max:
            score += 15
        if velocity.unique_devices_24h > cfg.unique_devices_24h_max:
            score += 15
        if velocity.unique_ips_24h > cfg.unique_ips_24h_max:
            score += 15
        return min(score, 100.0)

    def _anomaly_flags(
        self,
        transaction: Transaction,
        profile: UserProfile,
        velocity: VelocityMetrics,
        geo: GeoLocationResult | None,
    ) -> set[str]:
        cfg = self._config.behavior
        flags: set[str] = set()

        if velocity.transactions_last_1h > cfg.velocity_count_1h_max:
            flags.add(AnomalyFlag.HIGH_VELOCITY_1H)
        if velocity.transactions_last_24h > cfg.velocity_count_24h_max:
            flags.add(AnomalyFlag.HIGH_VELOCITY_24H)
        if velocity.unique_devices_24h > cfg.unique_devices_24h_max:
            flags.add(AnomalyFlag.MULTIPLE_DEVICES)
        if velocity.unique_ips_24h > cfg.unique_ips_24h_max:
            flags.add(AnomalyFlag.MULTIPLE_IPS)
        if transaction.amount > profile.avg_amount * Decimal(str(cfg.unusual_amount_multiplier)):
            flags.add(AnomalyFlag.UNUSUAL_AMOUNT)
        if geo is not None and geo.is_anonymized:
            flags.add(AnomalyFlag.PROXY_VPN_TOR)

        return {str(f) for f in flags}

    def _risk_score(
        self,
        flags: set[str],
        geo: GeoLocationResult | None,
        velocity: VelocityMetrics,
    ) -> float:
        score = len(flags) * self._config.behavior.anomaly_flag_points
        if geo is not None:
            score += geo.risk_score
        score += velocity.velocity_score
        return min(score, 100.0)

"""Multi-factor risk scoring over a user's transaction history.

Five independent scores, each in [0, 1], computed concurrently:

    DeviceRisk       fraud rate on the device, plus a shared-device penalty
    VelocityRisk     amount and count bursts in the last hour / day
    GeolocationRisk  country spread, high-risk countries, rapid country hops
    AmountRisk       z-score of the amount against the user's recent history
    TimeRisk         night-time activity and hours the user never transacts in

A failing sub-calculation contributes the configured default and never
cancels its siblings.
"""

import asyncio
import statistics
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

import structlog

from .config import FraudConfig, default_config
from .interfaces import TransactionHistoryStore
from .models import RISK_FACTOR_KEYS, RiskFactorBreakdown, Transaction, UserProfile

logger = structlog.get_logger()


def _cap(value: float) -> float:
    return max(0.0, min(value, 1.0))


class RiskFactorCalculator:
    """Computes the RiskFactorBreakdown for a transaction."""

    def __init__(
        self,
        history: TransactionHistoryStore,
        config: FraudConfig | None = None,
    ) -> None:
        self._history = history
        self._config = config or default_config

    async def compute_all(
        self,
        transaction: Transaction,
        profile: UserProfile | None = None,
        now: datetime | None = None,
    ) -> RiskFactorBreakdown:
        """Run all five sub-scores concurrently and join them.

        The profile is accepted for interface symmetry; every factor is
        derived from transaction history.
        """
        now = now or datetime.now(UTC)
        calculations: dict[str, Callable[[], Awaitable[float]]] = {
            "DeviceRisk": lambda: self.device_risk(transaction, now),
            "VelocityRisk": lambda: self.velocity_risk(transaction, now),
            "GeolocationRisk": lambda: self.geolocation_risk(transaction, now),
            "AmountRisk": lambda: self.amount_risk(transaction),
            "TimeRisk": lambda: self.time_risk(transaction),
        }

        async with asyncio.TaskGroup() as tg:
            tasks = {
                name: tg.create_task(self._guarded(name, calc, transaction))
                for name, calc in calculations.items()
            }

        breakdown = {name: tasks[name].result() for name in RISK_FACTOR_KEYS}

        logger.debug(
            "risk_factors_computed",
            transaction_id=transaction.transaction_id,
            **breakdown,
        )
        return breakdown

    async def _guarded(
        self,
        name: str,
        calculation: Callable[[], Awaitable[float]],
        transaction: Transaction,
    ) -> float:
        try:
            return _cap(await calculation())
        except Exception:
            logger.exception(
                "risk_factor_failed",
                factor=name,
                transaction_id=transaction.transaction_id,
            )
            return self._config.risk_factors.failure_default

    async def device_risk(self, transaction: Transaction, now: datetime) -> float:
        cfg = self._config.risk_factors
        if not transaction.device_id:
            return 0.5

        window = timedelta(hours=cfg.device_window_hours)
        recent = await self._history.get_recent_transactions(window)
        cutoff = now - window
        on_device = [
            t for t in recent if t.device_id == transaction.device_id and t.timestamp >= cutoff
        ]
        if not on_device:
            return 0.3

        fraud_rate = sum(1 for t in on_device if t.is_fraudulent) / len(on_device)
        unique_users = len({t.user_id for t in on_device})
        penalty = cfg.device_shared_penalty if unique_users > cfg.device_shared_users_max else 0.0

        return _cap(fraud_rate + penalty)

    async def velocity_risk(self, transaction: Transaction, now: datetime) -> float:
        cfg = self._config.risk_factors
        user_id = transaction.user_id

        volume_1h = await self._history.get_user_transaction_volume(user_id, timedelta(hours=1))
        volume_24h = await self._history.get_user_transaction_volume(user_id, timedelta(hours=24))
        recent = await self._history.get_user_transactions(user_id, 100)
        one_hour_ago = now - timedelta(hours=1)
        count_1h = sum(1 for t in recent if t.timestamp > one_hour_ago)

        risk = 0.0
        if float(volume_1h) > cfg.velocity_amount_1h_max:
            risk += 0.3
        if float(volume_24h) > cfg.velocity_amount_24h_max:
            risk += 0.2
        if count_1h > cfg.velocity_count_1h_max:
            risk += 0.3
        if count_1h > cfg.velocity_count_1h_severe:
            risk += 0.2

        return _cap(risk)

    async def geolocation_risk(self, transaction: Transaction, now: datetime) -> float:
        cfg = self._config.risk_factors
        recent = await self._history.get_user_transactions(
            transaction.user_id, cfg.geo_history_limit
        )
        countries = {t.country for t in recent if t.country}

        risk = 0.0
        if len(countries) > cfg.geo_distinct_countries_max:
            risk += 0.4
        if countries & cfg.high_risk_countries:
            risk += 0.3

        if recent and recent[0].country:
            last = recent[0]
            before_last_country = recent[1].country if len(recent) > 1 else None
            if now - last.timestamp < timedelta(hours=1) and last.country != before_last_country:
                risk += 0.3

        return _cap(risk)

    async def amount_risk(self, transaction: Transaction) -> float:
        cfg = self._config.risk_factors
        amount = transaction.amount_float
        recent = await self._history.get_user_transactions(
            transaction.user_id, cfg.amount_history_limit
        )

        if not recent:
            return 0.7 if amount > cfg.new_user_large_amount else 0.3

        amounts = [t.amount_float for t in recent]
        mean = statistics.fmean(amounts)
        stddev = statistics.pstdev(amounts)
        z_score = abs(amount - mean) / max(stddev, 1.0)

        if z_score > 3:
            risk = 0.8
        elif z_score > 2:
            risk = 0.5
        elif z_score > 1.5:
            risk = 0.3
        else:
            risk = 0.0

        if amount > cfg.large_amount:
            risk += 0.2

        return _cap(risk)

    async def time_risk(self, transaction: Transaction) -> float:
        cfg = self._config.risk_factors
        recent = await self._history.get_user_transactions(
            transaction.user_id, cfg.time_history_limit
        )
        hour = transaction.timestamp.hour

        risk = 0.0
        night_start, night_end = cfg.night_hours
        if night_start <= hour <= night_end:
            risk += 0.3

        # Sparse histogram: an hour present in it always has a count >= 1, so
        # only the never-seen bucket state carries a penalty.
        hour_counts = Counter(t.timestamp.hour for t in recent)
        if hour not in hour_counts and hour_counts.total() > 0:
            risk += 0.3

        return _cap(risk)

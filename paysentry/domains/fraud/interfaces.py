"""Collaborator protocols consumed by the scoring pipeline.

Implementations live outside the domain (SQL repositories, Kafka sink,
HTTP signal client, MLflow classifier). Every method is a potential
suspension point and must honor task cancellation.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Protocol

from .models import (
    BehavioralSnapshot,
    ExternalSignalResult,
    FraudAlert,
    GeoLocationResult,
    Transaction,
    UserProfile,
)


class UserProfileStore(Protocol):
    async def get_by_user_id(self, user_id: str) -> UserProfile | None: ...


class TransactionHistoryStore(Protocol):
    async def get_user_transactions(self, user_id: str, limit: int = 100) -> list[Transaction]:
        """Most recent first."""
        ...

    async def get_recent_transactions(self, window: timedelta) -> list[Transaction]: ...

    async def get_user_transaction_volume(self, user_id: str, window: timedelta) -> Decimal: ...


class FraudClassifier(Protocol):
    async def predict(
        self,
        transaction: Transaction,
        profile: UserProfile | None,
        snapshot: BehavioralSnapshot,
    ) -> float: ...


class ExternalSignalProvider(Protocol):
    async def score(self, transaction: Transaction) -> ExternalSignalResult: ...


class GeoLocationStore(Protocol):
    async def lookup(self, ip_address: str) -> GeoLocationResult | None: ...


class AlertSink(Protocol):
    async def publish(self, alert: FraudAlert) -> None: ...


class PersistenceSink(Protocol):
    async def save(self, transaction: Transaction) -> None: ...

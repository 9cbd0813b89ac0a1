"""SQL-backed implementations of the fraud domain stores.

Each call opens its own session from the factory so concurrent scoring
calls never share a connection.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paysentry.db.models import TransactionRecord, UserProfileRecord
from paysentry.domains.fraud.models import Transaction, UserProfile

logger = structlog.get_logger()

# Columns copied 1:1 between Transaction and TransactionRecord
_TRANSACTION_COLUMNS = (
    "transaction_id",
    "user_id",
    "amount",
    "currency",
    "timestamp",
    "ip_address",
    "device_id",
    "country",
    "payment_gateway",
    "device_type",
    "browser",
    "operating_system",
    "status",
    "fraud_score",
    "is_fraudulent",
)


def record_to_transaction(record: TransactionRecord) -> Transaction:
    return Transaction(**{col: getattr(record, col) for col in _TRANSACTION_COLUMNS})


def record_to_profile(record: UserProfileRecord) -> UserProfile:
    return UserProfile(
        user_id=record.user_id,
        total_transactions=record.total_transactions,
        avg_amount=record.avg_amount,
        total_spent=record.total_spent,
        used_ip_addresses=set(record.used_ip_addresses or []),
        used_devices=set(record.used_devices or []),
        first_transaction_at=record.first_transaction_at,
        last_transaction_at=record.last_transaction_at,
        suspicious_flags=record.suspicious_flags,
        chargeback_count=record.chargeback_count,
        is_blacklisted=record.is_blacklisted,
    )


class SqlTransactionRepository:
    """Transaction history reads and decision persistence."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_user_transactions(self, user_id: str, limit: int = 100) -> list[Transaction]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.user_id == user_id)
            .order_by(TransactionRecord.timestamp.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [record_to_transaction(r) for r in result.scalars().all()]

    async def get_recent_transactions(self, window: timedelta) -> list[Transaction]:
        cutoff = datetime.now(UTC) - window
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.timestamp >= cutoff)
            .order_by(TransactionRecord.timestamp.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [record_to_transaction(r) for r in result.scalars().all()]

    async def get_user_transaction_volume(self, user_id: str, window: timedelta) -> Decimal:
        cutoff = datetime.now(UTC) - window
        stmt = select(func.coalesce(func.sum(TransactionRecord.amount), 0)).where(
            TransactionRecord.user_id == user_id,
            TransactionRecord.timestamp >= cutoff,
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return Decimal(str(result.scalar_one()))

    async def save(self, transaction: Transaction) -> None:
        """Insert or update the transaction with its decision fields."""
        values = {col: getattr(transaction, col) for col in _TRANSACTION_COLUMNS}
        stmt = insert(TransactionRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TransactionRecord.transaction_id],
            set_={
                "status": stmt.excluded.status,
                "fraud_score": stmt.excluded.fraud_score,
                "is_fraudulent": stmt.excluded.is_fraudulent,
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

        logger.debug(
            "transaction_saved",
            transaction_id=transaction.transaction_id,
            status=transaction.status,
        )


class SqlUserProfileRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_user_id(self, user_id: str) -> UserProfile | None:
        async with self._session_factory() as session:
            record = await session.get(UserProfileRecord, user_id)
            return record_to_profile(record) if record is not None else None

"""SQLAlchemy ORM models for transactions and user profiles."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    ip_address: Mapped[str] = mapped_column(String, default="")
    device_id: Mapped[str] = mapped_column(String, default="", index=True)
    country: Mapped[str] = mapped_column(String, default="")
    payment_gateway: Mapped[str] = mapped_column(String, default="")
    device_type: Mapped[str] = mapped_column(String, default="")
    browser: Mapped[str] = mapped_column(String, default="")
    operating_system: Mapped[str] = mapped_column(String, default="")
    status: Mapped[str] = mapped_column(String, default="PENDING")
    fraud_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_fraudulent: Mapped[bool] = mapped_column(Boolean, default=False)


class UserProfileRecord(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    total_transactions: Mapped[int] = mapped_column(Integer, default=0)
    avg_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"))
    total_spent: Mapped[Decimal] = mapped_column(Numeric(18, 2), default=Decimal("0"))
    used_ip_addresses: Mapped[list] = mapped_column(JSONB, default=list)
    used_devices: Mapped[list] = mapped_column(JSONB, default=list)
    first_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    suspicious_flags: Mapped[int] = mapped_column(Integer, default=0)
    chargeback_count: Mapped[int] = mapped_column(Integer, default=0)
    is_blacklisted: Mapped[bool] = mapped_column(Boolean, default=False)

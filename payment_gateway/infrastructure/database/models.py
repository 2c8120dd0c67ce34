"""SQLAlchemy ORM models for gateway state and the ledger read model"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, JSON, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


Base = declarative_base()


class Customer(Base):
    """Customer profile with verified KYC tier"""

    __tablename__ = "customer"

    id = Column(Text, primary_key=True)
    full_name = Column(Text, nullable=False)
    kyc_tier = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    accounts = relationship("Account", back_populates="customer")


class Account(Base):
    """Customer account held at this institution"""

    __tablename__ = "account"

    id = Column(Text, primary_key=True)
    customer_id = Column(Text, ForeignKey("customer.id"), nullable=False, index=True)
    account_name = Column(Text, nullable=False, default="Current Account")
    sort_code = Column(Text, nullable=False)
    account_number = Column(Text, nullable=False)
    available_balance_minor = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="active")

    customer = relationship("Customer", back_populates="accounts")


class Payee(Base):
    """Saved payee; first_used_at is stamped once after the first completed payment"""

    __tablename__ = "payee"

    id = Column(Text, primary_key=True)
    customer_id = Column(Text, ForeignKey("customer.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    sort_code = Column(Text, nullable=False)
    account_number = Column(Text, nullable=False)
    reference = Column(Text, nullable=True)
    is_favourite = Column(Boolean, nullable=False, default=False)
    first_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TransactionLimit(Base):
    """Limit policy per KYC tier (read-only to the gateway)"""

    __tablename__ = "transaction_limit"

    kyc_tier = Column(Text, primary_key=True)
    single_transaction_minor = Column(BigInteger, nullable=False)
    daily_minor = Column(BigInteger, nullable=False)
    monthly_minor = Column(BigInteger, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class CustomerPin(Base):
    """Transfer PIN hash and failure counter"""

    __tablename__ = "customer_pin"

    customer_id = Column(Text, ForeignKey("customer.id"), primary_key=True)
    pin_hash = Column(Text, nullable=False)
    failed_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class LedgerEntry(Base):
    """Read model of committed ledger transactions, written by the ledger service"""

    __tablename__ = "ledger_entry"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(Text, nullable=False, index=True)
    account_id = Column(Text, nullable=False, index=True)
    direction = Column(Text, nullable=False)  # "debit" or "credit"
    amount_minor = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="completed")
    counterparty_name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)


class AuditLog(Base):
    """Append-only audit trail"""

    __tablename__ = "audit_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(Text, nullable=False, index=True)
    target_type = Column(Text, nullable=False)
    target_id = Column(Text, nullable=True)
    action = Column(Text, nullable=False)
    details = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from payment_gateway.api.main import create_app
from payment_gateway.api.dependencies import get_clock
from payment_gateway.domain.cop import HolderLookup
from payment_gateway.domain.models import TransferResult
from payment_gateway.domain.pin_policy import hash_pin
from payment_gateway.infrastructure.database.models import (
    Account,
    Base,
    Customer,
    CustomerPin,
    LedgerEntry,
    Payee,
    TransactionLimit,
)
from payment_gateway.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Wednesday 10:00 in London (GMT in early March)
NOW = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)

CUSTOMER_PIN = "2580"
INTERNAL_SORT_CODE = "040004"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded_db(db: Session) -> Session:
    """
    Alice (basic tier) with a funded current account, a PIN and saved payees:
    - payee_known: external, paid before
    - payee_new: external, added two days ago, never paid
    - payee_fresh: external, added two hours ago
    - payee_bad_checksum: external, fails the modulus check
    - payee_bob: Bob's account at this bank
    """
    db.add_all(
        [
            Customer(id="cust_alice", full_name="Alice Smith", kyc_tier="basic", created_at=NOW - timedelta(days=400)),
            Customer(id="cust_bob", full_name="Bob Jones", kyc_tier="premium", created_at=NOW - timedelta(days=400)),
            TransactionLimit(
                kyc_tier="basic",
                single_transaction_minor=100_000,  # £1,000
                daily_minor=100_000,  # £1,000
                monthly_minor=500_000,  # £5,000
            ),
            TransactionLimit(
                kyc_tier="premium",
                single_transaction_minor=2_500_000,
                daily_minor=5_000_000,
                monthly_minor=20_000_000,
            ),
        ]
    )
    db.flush()
    db.add_all(
        [
            Account(
                id="acc_alice",
                customer_id="cust_alice",
                sort_code=INTERNAL_SORT_CODE,
                account_number="12345678",
                available_balance_minor=1_000_000,  # £10,000
            ),
            Account(
                id="acc_bob",
                customer_id="cust_bob",
                sort_code=INTERNAL_SORT_CODE,
                account_number="87654321",
                available_balance_minor=50_000,
            ),
            Payee(
                id="payee_known",
                customer_id="cust_alice",
                name="Jane Doe",
                sort_code="089999",
                account_number="66374958",
                created_at=NOW - timedelta(days=60),
                first_used_at=NOW - timedelta(days=55),
            ),
            Payee(
                id="payee_new",
                customer_id="cust_alice",
                name="Jane Doe",
                sort_code="08-99-99",
                account_number="66374958",
                created_at=NOW - timedelta(days=2),
            ),
            Payee(
                id="payee_fresh",
                customer_id="cust_alice",
                name="Jane Doe",
                sort_code="089999",
                account_number="66374958",
                created_at=NOW - timedelta(hours=2),
            ),
            Payee(
                id="payee_bad_checksum",
                customer_id="cust_alice",
                name="Jane Doe",
                sort_code="089999",
                account_number="66374959",
                created_at=NOW - timedelta(days=60),
                first_used_at=NOW - timedelta(days=55),
            ),
            Payee(
                id="payee_bob",
                customer_id="cust_alice",
                name="Bob Jones",
                sort_code=INTERNAL_SORT_CODE,
                account_number="87654321",
                created_at=NOW - timedelta(hours=1),
            ),
            CustomerPin(customer_id="cust_alice", pin_hash=hash_pin(CUSTOMER_PIN), failed_attempts=0),
        ]
    )
    db.commit()
    return db


def _insert_debit(db: Session, amount_minor: int, created_at: datetime, customer_id: str = "cust_alice", **kwargs) -> None:
    db.add(
        LedgerEntry(
            customer_id=customer_id,
            account_id=kwargs.pop("account_id", "acc_alice"),
            direction="debit",
            amount_minor=amount_minor,
            status=kwargs.pop("status", "completed"),
            counterparty_name=kwargs.pop("counterparty_name", "Jane Doe"),
            created_at=created_at,
        )
    )
    db.commit()


@pytest.fixture
def add_debit(seeded_db: Session):
    """Insert a completed debit into the ledger read model"""

    def _add(amount_minor: int, created_at: datetime, **kwargs) -> None:
        _insert_debit(seeded_db, amount_minor, created_at, **kwargs)

    return _add


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    """Fixed time source"""
    return lambda: NOW


@pytest.fixture
def cop_client() -> AsyncMock:
    """CoP client whose receiving bank knows Jane Doe"""
    client = AsyncMock()
    client.lookup_holder.return_value = HolderLookup.found("Jane Doe")
    return client


@pytest.fixture
def watchlist_client() -> AsyncMock:
    client = AsyncMock()
    client.get_entries.return_value = ("Ivan Petrovich Sidorov", "Global Shell Trading")
    return client


@pytest.fixture
def ledger_client() -> AsyncMock:
    client = AsyncMock()
    client.transfer.return_value = TransferResult(ok=True, transfer_id="tr_123")
    return client


@pytest.fixture
def client(seeded_db: Session, clock) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield seeded_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)

"""Unit tests for PIN policy and the PIN verification service"""

import pytest
from datetime import timedelta
from sqlalchemy.orm import Session
from payment_gateway.domain.exceptions import InvalidPinFormat, PinAlreadySet, PinLocked, PinNotSet, WeakCredential
from payment_gateway.domain.pin_policy import hash_pin, is_weak_pin, is_well_formed, verify_pin_hash
from payment_gateway.infrastructure.database.models import CustomerPin
from payment_gateway.services.pin import PinVerificationService


@pytest.mark.parametrize("pin", ["0000", "7777", "0123", "6789", "7890", "3210", "9876", "0987", "1212", "4545"])
def test_weak_pins(pin):
    assert is_weak_pin(pin) is True


@pytest.mark.parametrize("pin", ["2580", "1379", "8264", "1122"])
def test_acceptable_pins(pin):
    assert is_weak_pin(pin) is False


@pytest.mark.parametrize("pin", ["123", "12345", "12a4", "", " 1234", "１２３４", None, 1234])
def test_malformed_pins(pin):
    assert is_well_formed(pin) is False


def test_hash_is_salted_and_verifiable():
    first = hash_pin("2580")
    second = hash_pin("2580")
    assert first != second
    assert "2580" not in first
    assert verify_pin_hash("2580", first) is True
    assert verify_pin_hash("2581", first) is False


def test_setup_stores_hash(db: Session, now):
    service = PinVerificationService(db, clock=lambda: now)

    service.setup("cust_new", "1379")

    record = db.get(CustomerPin, "cust_new")
    assert record is not None
    assert record.pin_hash != "1379"
    assert record.failed_attempts == 0
    assert service.verify("cust_new", "1379") is True


def test_setup_rejects_malformed_weak_and_existing(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now)

    with pytest.raises(InvalidPinFormat):
        service.setup("cust_bob", "12a4")
    with pytest.raises(WeakCredential):
        service.setup("cust_bob", "1234")
    with pytest.raises(PinAlreadySet):
        service.setup("cust_alice", "1379")


def test_verify_without_pin_raises(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now)
    with pytest.raises(PinNotSet):
        service.verify("cust_bob", "1379")


def test_wrong_pin_increments_counter(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now)

    assert service.verify("cust_alice", "1111") is False
    assert service.verify("cust_alice", "12") is False  # malformed counts too

    assert seeded_db.get(CustomerPin, "cust_alice").failed_attempts == 2
    assert service.attempts_remaining("cust_alice") == 3


def test_success_resets_counter(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now)
    service.verify("cust_alice", "1111")

    assert service.verify("cust_alice", "2580") is True
    assert seeded_db.get(CustomerPin, "cust_alice").failed_attempts == 0


def test_lockout_after_max_attempts(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now, max_attempts=5, lockout_minutes=30)

    for _ in range(5):
        assert service.verify("cust_alice", "1111") is False

    # Locked even for the correct PIN
    with pytest.raises(PinLocked) as exc_info:
        service.verify("cust_alice", "2580")
    assert exc_info.value.unlocks_at == now + timedelta(minutes=30)


def test_lock_expires_and_attempts_restart(seeded_db: Session, now):
    current = {"time": now}
    service = PinVerificationService(seeded_db, clock=lambda: current["time"], max_attempts=3, lockout_minutes=30)
    for _ in range(3):
        service.verify("cust_alice", "1111")

    current["time"] = now + timedelta(minutes=31)

    assert service.verify("cust_alice", "1111") is False
    record = seeded_db.get(CustomerPin, "cust_alice")
    assert record.failed_attempts == 1
    assert record.locked_until is None
    assert service.verify("cust_alice", "2580") is True


def test_zero_minute_lockout_is_honoured(seeded_db: Session, now):
    service = PinVerificationService(seeded_db, clock=lambda: now, max_attempts=1, lockout_minutes=0)

    assert service.verify("cust_alice", "1111") is False
    assert seeded_db.get(CustomerPin, "cust_alice").locked_until is not None

    # The lock ends the moment it is set, so the next attempt goes through
    assert service.verify("cust_alice", "2580") is True

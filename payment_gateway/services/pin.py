"""Transfer PIN setup and verification with a per-customer attempt limit"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from payment_gateway.config import settings
from payment_gateway.domain.exceptions import InvalidPinFormat, PinAlreadySet, PinLocked, PinNotSet, WeakCredential
from payment_gateway.domain.pin_policy import hash_pin, is_weak_pin, is_well_formed, verify_pin_hash
from payment_gateway.infrastructure.database.repositories import PinRepository
from payment_gateway.utils.date_utils import ensure_utc, utcnow


class PinVerificationService:
    """
    Owns the PIN hash and the failure counter.

    Counter and lock updates are committed as soon as they happen, so a
    failed attempt is charged even when the surrounding payment is denied.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int | None = None,
        lockout_minutes: int | None = None,
    ):
        self.db = db
        self.clock = clock
        self.max_attempts = settings.pin_max_attempts if max_attempts is None else max_attempts
        self.lockout_minutes = settings.pin_lockout_minutes if lockout_minutes is None else lockout_minutes
        self.repo = PinRepository(db)

    def setup(self, customer_id: str, pin: str) -> None:
        """
        Store a new PIN for a customer.

        Raises:
            InvalidPinFormat: PIN is not exactly four digits
            PinAlreadySet: Customer already has a PIN
            WeakCredential: PIN is trivially guessable
        """
        if not is_well_formed(pin):
            raise InvalidPinFormat("PIN must be exactly four digits")
        if self.repo.get(customer_id) is not None:
            raise PinAlreadySet("A PIN is already set up for this customer")
        if is_weak_pin(pin):
            raise WeakCredential("PIN is too easy to guess")

        self.repo.create(customer_id, hash_pin(pin))
        self.db.commit()
        logging.info("PIN set up", extra={"customer_id": customer_id})

    def verify(self, customer_id: str, pin: str) -> bool:
        """
        Check a PIN against the stored hash.

        Rules:
        - A locked customer is refused whether or not the PIN is correct
        - A wrong or malformed PIN counts as a failed attempt
        - Reaching max_attempts locks verification for lockout_minutes
        - A correct PIN clears the counter

        Raises:
            PinNotSet: Customer has no PIN
            PinLocked: Lock is still in force
        """
        record = self.repo.get(customer_id)
        if record is None:
            raise PinNotSet("No PIN set up for this customer")

        now = self.clock()
        locked_until = ensure_utc(record.locked_until)
        if locked_until is not None:
            if locked_until > now:
                raise PinLocked(locked_until)
            # Expired lock: the attempt count starts again
            record.locked_until = None
            record.failed_attempts = 0

        if is_well_formed(pin) and verify_pin_hash(pin, record.pin_hash):
            record.failed_attempts = 0
            self.db.commit()
            return True

        record.failed_attempts += 1
        if record.failed_attempts >= self.max_attempts:
            record.locked_until = now + timedelta(minutes=self.lockout_minutes)
            logging.warning(
                "PIN locked after repeated failures",
                extra={"customer_id": customer_id, "locked_until": record.locked_until.isoformat()},
            )
        self.db.commit()
        return False

    def attempts_remaining(self, customer_id: str) -> int:
        record = self.repo.get(customer_id)
        if record is None:
            return 0
        return max(self.max_attempts - record.failed_attempts, 0)

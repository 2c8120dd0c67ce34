"""Data access layer for gateway entities"""

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from payment_gateway.domain.models import (
    AuditEvent,
    CommittedDebit,
    CustomerProfile,
    LimitPolicy,
    PayeeRecord,
    SourceAccount,
)
from payment_gateway.domain.modulus import normalize_account_number, normalize_sort_code
from payment_gateway.infrastructure.database.models import (
    Account,
    AuditLog,
    Customer,
    CustomerPin,
    LedgerEntry,
    Payee,
    TransactionLimit,
)
from payment_gateway.utils.date_utils import ensure_utc


class CustomerRepository:
    """Repository for customer profiles"""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, customer_id: str, default_tier: str = "basic") -> Optional[CustomerProfile]:
        """Customers without a verified KYC tier fall back to the default tier"""
        customer = self.db.get(Customer, customer_id)
        if customer is None:
            return None
        return CustomerProfile(
            customer_id=customer.id,
            full_name=customer.full_name,
            kyc_tier=customer.kyc_tier or default_tier,
        )


class AccountRepository:
    """Repository for accounts held at this institution"""

    def __init__(self, db: Session):
        self.db = db

    def get_source_account(self, account_id: str) -> Optional[SourceAccount]:
        account = self.db.get(Account, account_id)
        if account is None:
            return None
        return SourceAccount(
            account_id=account.id,
            customer_id=account.customer_id,
            available_balance_minor=account.available_balance_minor,
            status=account.status,
        )

    def find_holder(self, sort_code: str, account_number: str) -> Optional[Tuple[str, str]]:
        """Return (account_id, holder full name) if the identifiers resolve to one of our accounts"""
        sc = normalize_sort_code(sort_code)
        an = normalize_account_number(account_number)
        if sc is None or an is None:
            return None
        row = (
            self.db.query(Account.id, Customer.full_name)
            .join(Customer, Customer.id == Account.customer_id)
            .filter(Account.sort_code == sc, Account.account_number == an)
            .first()
        )
        if row is None:
            return None
        return row[0], row[1]


class PayeeRepository:
    """Repository for saved payees"""

    def __init__(self, db: Session):
        self.db = db

    def get_payee(self, payee_id: str) -> Optional[PayeeRecord]:
        payee = self.db.get(Payee, payee_id)
        if payee is None:
            return None
        return PayeeRecord(
            payee_id=payee.id,
            customer_id=payee.customer_id,
            name=payee.name,
            sort_code=payee.sort_code,
            account_number=payee.account_number,
            reference=payee.reference,
            is_favourite=payee.is_favourite,
            created_at=ensure_utc(payee.created_at),
            first_used_at=ensure_utc(payee.first_used_at),
        )

    def mark_first_used(self, payee_id: str, used_at: datetime) -> bool:
        """Stamp first use; a payee that already has a stamp is left untouched"""
        updated = (
            self.db.query(Payee)
            .filter(Payee.id == payee_id, Payee.first_used_at.is_(None))
            .update({Payee.first_used_at: used_at}, synchronize_session=False)
        )
        return updated == 1


class LimitPolicyRepository:
    """Repository for limit policies keyed by KYC tier"""

    def __init__(self, db: Session):
        self.db = db

    def get_active_policy(self, kyc_tier: str) -> Optional[LimitPolicy]:
        row = (
            self.db.query(TransactionLimit)
            .filter(TransactionLimit.kyc_tier == kyc_tier, TransactionLimit.is_active.is_(True))
            .first()
        )
        if row is None:
            return None
        return LimitPolicy(
            kyc_tier=row.kyc_tier,
            single_transaction_minor=row.single_transaction_minor,
            daily_minor=row.daily_minor,
            monthly_minor=row.monthly_minor,
        )


class PinRepository:
    """Repository for transfer PIN records"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: str) -> Optional[CustomerPin]:
        return self.db.get(CustomerPin, customer_id)

    def create(self, customer_id: str, pin_hash: str) -> CustomerPin:
        record = CustomerPin(customer_id=customer_id, pin_hash=pin_hash, failed_attempts=0)
        self.db.add(record)
        self.db.flush()
        return record


class TransactionHistoryRepository:
    """Read-only queries over the ledger read model"""

    def __init__(self, db: Session):
        self.db = db

    def _completed_debits(self, customer_id: str):
        return self.db.query(LedgerEntry).filter(
            LedgerEntry.customer_id == customer_id,
            LedgerEntry.direction == "debit",
            LedgerEntry.status == "completed",
        )

    def debits_since(self, customer_id: str, since: datetime) -> List[CommittedDebit]:
        """Completed debits after `since`, oldest first"""
        rows = (
            self._completed_debits(customer_id)
            .filter(LedgerEntry.created_at > since)
            .order_by(LedgerEntry.created_at.asc())
            .all()
        )
        return [
            CommittedDebit(
                amount_minor=abs(r.amount_minor),
                created_at=ensure_utc(r.created_at),
                counterparty_name=r.counterparty_name,
            )
            for r in rows
        ]

    def recent_debit_amounts(self, customer_id: str, limit: int = 50) -> List[int]:
        rows = (
            self._completed_debits(customer_id)
            .with_entities(LedgerEntry.amount_minor)
            .order_by(LedgerEntry.created_at.desc())
            .limit(limit)
            .all()
        )
        return [abs(r[0]) for r in rows]

    def count_since(self, customer_id: str, since: datetime) -> int:
        """All transactions (any direction or status) created after `since`"""
        return (
            self.db.query(func.count(LedgerEntry.id))
            .filter(LedgerEntry.customer_id == customer_id, LedgerEntry.created_at > since)
            .scalar()
        ) or 0


class AuditRepository:
    """Append-only audit log: never update or delete"""

    def __init__(self, db: Session):
        self.db = db

    def append(self, event: AuditEvent) -> AuditLog:
        row = AuditLog(
            id=event.event_id,
            actor_id=event.actor_id,
            target_type=event.target_type,
            target_id=event.target_id,
            action=event.action,
            details=event.details,
            created_at=event.created_at,
        )
        self.db.add(row)
        self.db.flush()
        return row

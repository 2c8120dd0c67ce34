"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Rail(str, Enum):
    """Settlement mechanism used to move funds"""

    INTERNAL = "internal"
    BACS = "bacs"  # batched, 3 working days
    FPS = "fps"  # Faster Payments, near real-time
    CHAPS = "chaps"  # real-time gross settlement


class Stage(str, Enum):
    """Gateway stages in evaluation order"""

    PIN_CHECK = "pin_check"
    AMOUNT_AND_OWNERSHIP = "amount_and_ownership"
    LIMITS = "limits"
    INTERNAL_DETECTION = "internal_detection"
    PAYEE_CONFIRMATION = "payee_confirmation"
    RAIL_SELECTION = "rail_selection"
    COOLING_PERIOD = "cooling_period"
    FRAUD_SCORE = "fraud_score"
    AML_SCREEN = "aml_screen"
    ALLOW = "allow"


class Outcome(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class DenyKind(str, Enum):
    """Error taxonomy attached to a deny"""

    VALIDATION = "validation_error"
    POLICY = "policy_deny"
    CREDENTIAL = "credential_error"
    DEPENDENCY = "dependency_unavailable"


class CopVerdict(str, Enum):
    MATCH = "match"
    CLOSE_MATCH = "close_match"
    NO_MATCH = "no_match"
    ACCOUNT_NOT_FOUND = "account_not_found"
    UNAVAILABLE = "unavailable"


class FraudDecision(str, Enum):
    ALLOW = "allow"
    REVIEW = "review"  # allowed, but flagged for audit
    BLOCK = "block"


@dataclass(frozen=True)
class PaymentRequest:
    """Outbound payment submission; lives for one pipeline evaluation"""

    customer_id: str
    source_account_id: str
    payee_id: str
    amount_minor: int
    pin: str = field(repr=False)
    reference: Optional[str] = None
    urgent: bool = False
    bulk: bool = False
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    # Ledger deduplication key; one per submission, independent of tracing ids
    idempotency_key: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class PayeeRecord:
    """Saved payee belonging to a customer"""

    payee_id: str
    customer_id: str
    name: str
    sort_code: str
    account_number: str
    created_at: datetime
    reference: Optional[str] = None
    is_favourite: bool = False
    first_used_at: Optional[datetime] = None


@dataclass
class SourceAccount:
    """Customer account funds are sent from"""

    account_id: str
    customer_id: str
    available_balance_minor: int
    status: str = "active"


@dataclass
class CustomerProfile:
    customer_id: str
    full_name: str
    kyc_tier: str


@dataclass(frozen=True)
class LimitPolicy:
    """Transaction ceilings for one KYC tier"""

    kyc_tier: str
    single_transaction_minor: int
    daily_minor: int
    monthly_minor: int

    def __post_init__(self) -> None:
        if min(self.single_transaction_minor, self.daily_minor, self.monthly_minor) < 0:
            raise ValueError(f"Limit policy for {self.kyc_tier!r} has a negative ceiling")
        if not self.single_transaction_minor <= self.daily_minor <= self.monthly_minor:
            raise ValueError(
                f"Limit policy for {self.kyc_tier!r} must satisfy single <= daily <= monthly"
            )


@dataclass(frozen=True)
class CommittedDebit:
    """Completed outbound transaction read from the ledger"""

    amount_minor: int
    created_at: datetime
    counterparty_name: Optional[str] = None


@dataclass
class RiskDecision:
    """Outcome of one pipeline run"""

    outcome: Outcome
    stage: Optional[Stage] = None
    reason: Optional[str] = None
    rail: Optional[Rail] = None
    kind: Optional[DenyKind] = None
    code: Optional[str] = None
    flags: Tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        return self.outcome == Outcome.ALLOW


@dataclass(frozen=True)
class AuditEvent:
    """Append-only audit record"""

    actor_id: str
    target_type: str
    target_id: Optional[str]
    action: str
    details: Dict[str, Any]
    created_at: datetime
    event_id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class GatewayResult:
    """Public result of Evaluate"""

    allowed: bool
    decision: RiskDecision
    rail: Optional[Rail] = None
    blocked_reason: Optional[str] = None
    audit_ref: Optional[str] = None


@dataclass
class TransferResult:
    """Response of the ledger mutation collaborator"""

    ok: bool
    transfer_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PaymentOutcome:
    """Result of submitting a payment: decision plus ledger transfer"""

    result: GatewayResult
    transfer: Optional[TransferResult] = None

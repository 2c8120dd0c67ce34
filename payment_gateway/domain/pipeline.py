"""
Gateway pipeline - stage decisions threaded through an accumulating context.

Every check here is a pure function over state the orchestrator has
already fetched into the PipelineContext. A check raises PolicyDeny to stop
the pipeline, or returns to continue (optionally raising audit flags).
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from payment_gateway.domain.aml import AmlResult
from payment_gateway.domain.cooling import CoolingCheckResult
from payment_gateway.domain.cop import CopResult
from payment_gateway.domain.exceptions import PolicyDeny, ValidationError
from payment_gateway.domain.fraud import FraudAssessment
from payment_gateway.domain.limits import LimitCheckResult
from payment_gateway.domain.models import (
    CopVerdict,
    CustomerProfile,
    DenyKind,
    FraudDecision,
    Outcome,
    PayeeRecord,
    PaymentRequest,
    RiskDecision,
    SourceAccount,
    Stage,
)
from payment_gateway.domain.modulus import ValidationResult
from payment_gateway.domain.rails import RailSelection

MAX_REFERENCE_LENGTH = 18

STAGE_ORDER = (
    Stage.PIN_CHECK,
    Stage.AMOUNT_AND_OWNERSHIP,
    Stage.LIMITS,
    Stage.INTERNAL_DETECTION,
    Stage.PAYEE_CONFIRMATION,
    Stage.RAIL_SELECTION,
    Stage.COOLING_PERIOD,
    Stage.FRAUD_SCORE,
    Stage.AML_SCREEN,
)

# Customer-facing reasons
SECURITY_BLOCK_REASON = "This payment has been blocked for your security. Please contact us."
AML_BLOCK_REASON = "We are unable to process this payment. Please contact us."
SERVICE_UNAVAILABLE_REASON = "We cannot process payments right now. Please try again later."
COP_NO_MATCH_REASON = "The payee name could not be confirmed with the receiving bank."
COP_NOT_FOUND_REASON = "The payee account could not be found at the receiving bank."

# Audit flags raised on an allow
FLAG_COP_CLOSE_MATCH = "cop_close_match"
FLAG_COP_UNAVAILABLE = "cop_unavailable"
FLAG_FRAUD_REVIEW = "fraud_review"
FLAG_FIRST_USE = "first_use_new_payee"
FLAG_AML_ALERT = "aml_alert"


@dataclass(frozen=True)
class Denial:
    stage: Stage
    kind: DenyKind
    code: str
    reason: str  # safe to show the customer
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineContext:
    """State accumulated while a single request moves through the stages"""

    request: PaymentRequest
    now: datetime
    customer: Optional[CustomerProfile] = None
    source_account: Optional[SourceAccount] = None
    payee: Optional[PayeeRecord] = None
    limits: Optional[LimitCheckResult] = None
    internal: bool = False
    internal_holder_name: Optional[str] = None
    identifiers: Optional[ValidationResult] = None
    cop: Optional[CopResult] = None
    rail: Optional[RailSelection] = None
    cooling: Optional[CoolingCheckResult] = None
    fraud: Optional[FraudAssessment] = None
    aml: Optional[AmlResult] = None
    aml_error: Optional[str] = None
    pending_denial: Optional[Denial] = None
    stages_run: List[Stage] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)

    def flag(self, name: str) -> None:
        if name not in self.flags:
            self.flags.append(name)

    def audit_details(self) -> Dict[str, Any]:
        """Structured audit payload; never contains the PIN"""
        details: Dict[str, Any] = {
            "request_id": self.request.request_id,
            "source_account_id": self.request.source_account_id,
            "payee_id": self.request.payee_id,
            "amount_minor": self.request.amount_minor,
            "stages_run": [s.value for s in self.stages_run],
            "flags": list(self.flags),
        }
        if self.limits is not None:
            details["limits"] = {
                "breached": self.limits.breached,
                "daily_used_minor": self.limits.daily_used_minor,
                "monthly_used_minor": self.limits.monthly_used_minor,
                "headroom_minor": self.limits.headroom_minor,
            }
        if self.identifiers is not None:
            details["identifier_check"] = {
                "valid": self.identifiers.valid,
                "reason": self.identifiers.reason,
                "indeterminate": self.identifiers.indeterminate,
            }
        if self.cop is not None:
            details["cop"] = {"verdict": self.cop.verdict.value, "similarity": self.cop.similarity}
        if self.rail is not None:
            details["rail"] = self.rail.rail.value
        if self.cooling is not None and not self.cooling.allowed:
            details["cooling_unlocks_at"] = self.cooling.unlocks_at.isoformat()
        if self.fraud is not None:
            details["fraud"] = {
                "score": self.fraud.score,
                "decision": self.fraud.decision.value,
                "factors": self.fraud.breakdown(),
            }
        if self.aml is not None:
            details["aml"] = {"passed": self.aml.passed, "alerts": self.aml.details()}
        elif self.aml_error is not None:
            details["aml"] = {"passed": False, "error": self.aml_error}
        return details


def validate_request(request: PaymentRequest) -> None:
    """Reject malformed input before any stage runs"""
    if not isinstance(request.amount_minor, int) or isinstance(request.amount_minor, bool):
        raise ValidationError("Amount must be a whole number of pence")
    if request.amount_minor <= 0:
        raise ValidationError("Amount must be greater than zero")
    for name in ("customer_id", "source_account_id", "payee_id"):
        if not getattr(request, name):
            raise ValidationError(f"{name} is required")
    if not request.pin:
        raise ValidationError("PIN is required")
    if request.reference is not None and len(request.reference) > MAX_REFERENCE_LENGTH:
        raise ValidationError(f"Reference must be at most {MAX_REFERENCE_LENGTH} characters")


def check_ownership(ctx: PipelineContext) -> None:
    """Source account and payee must belong to the customer; funds must cover the amount"""
    request = ctx.request
    stage = Stage.AMOUNT_AND_OWNERSHIP
    account = ctx.source_account
    if account is None or account.customer_id != request.customer_id:
        raise PolicyDeny(stage, "source_account_not_found", "Source account not found.")
    if account.status != "active":
        raise PolicyDeny(stage, "source_account_inactive", "Source account cannot make payments.")
    payee = ctx.payee
    if payee is None or payee.customer_id != request.customer_id:
        raise PolicyDeny(stage, "payee_not_found", "Payee not found.")
    if account.available_balance_minor < request.amount_minor:
        raise PolicyDeny(stage, "insufficient_funds", "Insufficient funds.")


def check_limits(ctx: PipelineContext) -> None:
    limits = ctx.limits
    if limits is None or limits.allowed:
        return
    raise PolicyDeny(
        Stage.LIMITS,
        f"limit_{limits.breached}",
        limits.reason,
        ceiling_minor=limits.ceiling_minor,
        headroom_minor=limits.headroom_minor,
    )


def check_payee_confirmation(ctx: PipelineContext) -> None:
    """Identifier checksum, then Confirmation of Payee verdict policy"""
    stage = Stage.PAYEE_CONFIRMATION
    if ctx.identifiers is not None and not ctx.identifiers.valid:
        raise PolicyDeny(
            stage,
            ctx.identifiers.reason,
            "The payee's sort code and account number are not valid.",
        )

    verdict = ctx.cop.verdict if ctx.cop is not None else CopVerdict.UNAVAILABLE
    if verdict == CopVerdict.NO_MATCH:
        raise PolicyDeny(stage, "cop_no_match", COP_NO_MATCH_REASON, verdict=verdict.value)
    if verdict == CopVerdict.ACCOUNT_NOT_FOUND:
        raise PolicyDeny(stage, "cop_account_not_found", COP_NOT_FOUND_REASON, verdict=verdict.value)
    if verdict == CopVerdict.CLOSE_MATCH:
        # Acknowledgement of a close match is captured before the payment is submitted
        ctx.flag(FLAG_COP_CLOSE_MATCH)
    elif verdict == CopVerdict.UNAVAILABLE:
        ctx.flag(FLAG_COP_UNAVAILABLE)


def check_cooling(ctx: PipelineContext) -> None:
    cooling = ctx.cooling
    if ctx.payee is not None and ctx.payee.first_used_at is None:
        ctx.flag(FLAG_FIRST_USE)
    if cooling is None or cooling.allowed:
        return
    raise PolicyDeny(
        Stage.COOLING_PERIOD,
        "cooling_period",
        cooling.reason,
        unlocks_at=cooling.unlocks_at.isoformat(),
    )


def check_fraud(ctx: PipelineContext) -> None:
    """A block is raised as a deny; the orchestrator holds it pending the AML screen"""
    fraud = ctx.fraud
    if fraud is None:
        return
    if fraud.decision == FraudDecision.BLOCK:
        raise PolicyDeny(Stage.FRAUD_SCORE, "fraud_block", SECURITY_BLOCK_REASON, score=fraud.score)
    if fraud.decision == FraudDecision.REVIEW:
        ctx.flag(FLAG_FRAUD_REVIEW)


def check_aml(ctx: PipelineContext) -> None:
    """Specific AML triggers stay in the audit payload, never in the reason"""
    aml = ctx.aml
    if aml is None:
        return
    if not aml.passed:
        raise PolicyDeny(Stage.AML_SCREEN, "aml_fail", AML_BLOCK_REASON)
    if aml.alerts:
        ctx.flag(FLAG_AML_ALERT)


def policy_denial(deny: PolicyDeny) -> Denial:
    return Denial(deny.stage, DenyKind.POLICY, deny.code, deny.reason, dict(deny.details))


def credential_denial(code: str, reason: str, **details: Any) -> Denial:
    return Denial(Stage.PIN_CHECK, DenyKind.CREDENTIAL, code, reason, details)


def dependency_denial(stage: Stage, source: str) -> Denial:
    """Fail-closed denial for a data source that timed out or kept failing"""
    reason = AML_BLOCK_REASON if stage == Stage.AML_SCREEN else SERVICE_UNAVAILABLE_REASON
    return Denial(stage, DenyKind.DEPENDENCY, f"{source}_unavailable", reason, {"source": source})


def build_decision(ctx: PipelineContext, denial: Optional[Denial]) -> RiskDecision:
    if denial is not None:
        return RiskDecision(
            outcome=Outcome.DENY,
            stage=denial.stage,
            reason=denial.reason,
            kind=denial.kind,
            code=denial.code,
            flags=tuple(ctx.flags),
        )
    return RiskDecision(
        outcome=Outcome.ALLOW,
        rail=ctx.rail.rail if ctx.rail else None,
        flags=tuple(ctx.flags),
    )

"""Gateway orchestrator - runs every outbound payment through the ordered risk stages"""

import logging
import time
from datetime import datetime
from functools import lru_cache
from typing import Awaitable, Callable, Dict, Optional, Sequence

from sqlalchemy.orm import Session

from payment_gateway.config import Settings, settings as default_settings
from payment_gateway.domain import pipeline
from payment_gateway.domain.aml import screen_transaction
from payment_gateway.domain.cooling import evaluate_cooling
from payment_gateway.domain.cop import CopResult, HolderLookup, match
from payment_gateway.domain.exceptions import (
    CredentialError,
    DependencyRejected,
    DependencyUnavailable,
    PinIncorrect,
    PinLocked,
    PinNotSet,
    PolicyDeny,
    ValidationError,
)
from payment_gateway.domain.fraud import score_signals
from payment_gateway.domain.limits import MONTHLY_WINDOW_HOURS, evaluate_limits
from payment_gateway.domain.models import (
    AuditEvent,
    DenyKind,
    GatewayResult,
    Outcome,
    PaymentOutcome,
    PaymentRequest,
    RiskDecision,
    Stage,
)
from payment_gateway.domain.modulus import (
    DEFAULT_TABLES,
    ValidationResult,
    WeightTable,
    load_weight_tables,
    normalize_account_number,
    normalize_sort_code,
    validate,
)
from payment_gateway.domain.pipeline import Denial, PipelineContext
from payment_gateway.domain.rails import RailPolicy, select_rail
from payment_gateway.infrastructure.clients.cop import CopClient
from payment_gateway.infrastructure.clients.ledger import LedgerClient
from payment_gateway.infrastructure.clients.watchlist import WatchlistClient
from payment_gateway.infrastructure.database.audit import DatabaseAuditSink
from payment_gateway.infrastructure.database.repositories import (
    AccountRepository,
    CustomerRepository,
    LimitPolicyRepository,
    PayeeRepository,
    TransactionHistoryRepository,
)
from payment_gateway.infrastructure.observability.logging import log_decision
from payment_gateway.infrastructure.observability.metrics import (
    record_decision,
    stage_latency_histogram,
    validation_rejection_counter,
)
from payment_gateway.infrastructure.resilience import fetch_with_retry
from payment_gateway.services.pin import PinVerificationService
from payment_gateway.services.signals import (
    AmlDataCollector,
    FraudSignalCollector,
    aml_rules_from_settings,
    fraud_rules_from_settings,
)
from payment_gateway.utils.date_utils import parse_cutoff, utcnow, window_start

LIMITS_NOT_CONFIGURED_REASON = "Payments are not available on this account right now. Please contact us."


@lru_cache(maxsize=None)
def load_modulus_tables(path: Optional[str]) -> Sequence[WeightTable]:
    """Weight tables from a valacdos file, or the embedded excerpt when no file is configured"""
    if not path:
        return DEFAULT_TABLES
    with open(path, encoding="utf-8") as f:
        tables = load_weight_tables(f)
    logging.info(f"Loaded {len(tables)} modulus weight tables", extra={"path": path})
    return tables


def _credential_denial(error: CredentialError) -> Denial:
    if isinstance(error, PinLocked):
        return pipeline.credential_denial(
            "pin_locked",
            "Too many incorrect PIN attempts. Please try again later.",
            unlocks_at=error.unlocks_at.isoformat(),
        )
    if isinstance(error, PinNotSet):
        return pipeline.credential_denial("pin_not_set", "Please set up a transfer PIN before making payments.")
    if isinstance(error, PinIncorrect):
        return pipeline.credential_denial(
            "pin_incorrect",
            "The PIN you entered is incorrect.",
            attempts_remaining=error.attempts_remaining,
        )
    return pipeline.credential_denial("pin_rejected", "The PIN could not be verified.")


class PaymentGateway:
    """
    Evaluates outbound payments stage by stage.

    Flow per stage:
    1. Fetch the state the stage needs (DB reads, client calls)
    2. Run the pure decision from domain.pipeline over the context
    3. Stop at the first deny; a fraud block is held until AML has run

    Audit and metrics are written once, at the terminal transition.
    """

    def __init__(
        self,
        db: Session,
        cop_client: CopClient,
        watchlist_client: WatchlistClient,
        ledger_client: LedgerClient | None = None,
        clock: Callable[[], datetime] = utcnow,
        config: Settings | None = None,
        pin_service: PinVerificationService | None = None,
        modulus_tables: Sequence[WeightTable] | None = None,
    ):
        self.db = db
        self.config = config or default_settings
        self.clock = clock
        self.cop_client = cop_client
        self.ledger_client = ledger_client
        self.pin_service = pin_service or PinVerificationService(db, clock=clock)
        self.modulus_tables = (
            modulus_tables if modulus_tables is not None else load_modulus_tables(self.config.modulus_table_path)
        )

        self.customers = CustomerRepository(db)
        self.accounts = AccountRepository(db)
        self.payees = PayeeRepository(db)
        self.limit_policies = LimitPolicyRepository(db)
        self.history = TransactionHistoryRepository(db)
        self.audit_sink = DatabaseAuditSink(db)
        self.fraud_collector = FraudSignalCollector(db, self.config)
        self.aml_collector = AmlDataCollector(db, watchlist_client, self.config)

        self.fraud_rules = fraud_rules_from_settings(self.config)
        self.aml_rules = aml_rules_from_settings(self.config)
        self.rail_policy = RailPolicy(
            fps_limit_minor=self.config.fps_limit_minor,
            chaps_threshold_minor=self.config.chaps_threshold_minor,
            chaps_cutoff=parse_cutoff(self.config.chaps_cutoff),
            timezone=self.config.business_timezone,
        )

        self._stages: Dict[Stage, Callable[[PipelineContext], Awaitable[None]]] = {
            Stage.PIN_CHECK: self._pin_check,
            Stage.AMOUNT_AND_OWNERSHIP: self._amount_and_ownership,
            Stage.LIMITS: self._limits,
            Stage.INTERNAL_DETECTION: self._internal_detection,
            Stage.PAYEE_CONFIRMATION: self._payee_confirmation,
            Stage.RAIL_SELECTION: self._rail_selection,
            Stage.COOLING_PERIOD: self._cooling_period,
            Stage.FRAUD_SCORE: self._fraud_score,
            Stage.AML_SCREEN: self._aml_screen,
        }

    # Stages

    async def _pin_check(self, ctx: PipelineContext) -> None:
        request = ctx.request
        if not self.pin_service.verify(request.customer_id, request.pin):
            raise PinIncorrect(self.pin_service.attempts_remaining(request.customer_id))

    async def _amount_and_ownership(self, ctx: PipelineContext) -> None:
        request = ctx.request
        ctx.customer = self.customers.get_profile(request.customer_id, self.config.default_kyc_tier)
        ctx.source_account = self.accounts.get_source_account(request.source_account_id)
        ctx.payee = self.payees.get_payee(request.payee_id)
        pipeline.check_ownership(ctx)

    async def _limits(self, ctx: PipelineContext) -> None:
        tier = ctx.customer.kyc_tier if ctx.customer else self.config.default_kyc_tier
        policy = self.limit_policies.get_active_policy(tier)
        if policy is None:
            raise PolicyDeny(Stage.LIMITS, "limits_not_configured", LIMITS_NOT_CONFIGURED_REASON, kyc_tier=tier)

        history = self.history.debits_since(ctx.request.customer_id, window_start(ctx.now, MONTHLY_WINDOW_HOURS))
        ctx.limits = evaluate_limits(
            policy,
            ctx.request.amount_minor,
            history,
            ctx.now,
            disclose_headroom=self.config.disclose_limit_headroom,
        )
        pipeline.check_limits(ctx)

    async def _internal_detection(self, ctx: PipelineContext) -> None:
        holder = self.accounts.find_holder(ctx.payee.sort_code, ctx.payee.account_number)
        ctx.internal = holder is not None
        if holder is not None:
            ctx.internal_holder_name = holder[1]

    async def _payee_confirmation(self, ctx: PipelineContext) -> None:
        payee = ctx.payee
        if not ctx.internal:
            ctx.identifiers = validate(payee.sort_code, payee.account_number, self.modulus_tables)
            if not ctx.identifiers.valid:
                pipeline.check_payee_confirmation(ctx)

        if ctx.internal:
            holder = HolderLookup.found(ctx.internal_holder_name)
        else:
            holder = await self._lookup_external_holder(payee.sort_code, payee.account_number)
        ctx.cop = self._match(payee.sort_code, payee.account_number, payee.name, holder)
        pipeline.check_payee_confirmation(ctx)

    async def _lookup_external_holder(self, sort_code: str, account_number: str) -> HolderLookup:
        """
        Outages fail open with an unavailable verdict.

        Raises:
            DependencyRejected: Directory refused the lookup (4xx)
        """
        try:
            return await fetch_with_retry(
                lambda: self.cop_client.lookup_holder(sort_code, account_number),
                source="cop",
                timeout=self.config.http_timeout_seconds,
                max_attempts=self.config.dependency_max_attempts,
                backoff_base=self.config.dependency_backoff_base,
            )
        except DependencyRejected:
            raise
        except DependencyUnavailable as e:
            # Fail-open: continue with an unavailable verdict
            logging.warning(f"CoP lookup unavailable: {e}")
            return HolderLookup.unavailable()

    def _match(self, sort_code: str, account_number: str, name: str, holder: HolderLookup) -> CopResult:
        return match(
            sort_code,
            account_number,
            name,
            holder,
            match_threshold=self.config.cop_match_threshold,
            close_match_threshold=self.config.cop_close_match_threshold,
        )

    async def _rail_selection(self, ctx: PipelineContext) -> None:
        request = ctx.request
        ctx.rail = select_rail(
            request.amount_minor,
            ctx.internal,
            ctx.now,
            urgent=request.urgent,
            bulk=request.bulk,
            policy=self.rail_policy,
        )

    async def _cooling_period(self, ctx: PipelineContext) -> None:
        ctx.cooling = evaluate_cooling(ctx.payee, ctx.rail.rail, self.config.cooling_hours, ctx.now)
        pipeline.check_cooling(ctx)

    async def _fraud_score(self, ctx: PipelineContext) -> None:
        signals = await self.fraud_collector.collect(ctx.request, ctx.payee, ctx.now)
        ctx.fraud = score_signals(signals, self.fraud_rules)
        pipeline.check_fraud(ctx)

    async def _aml_screen(self, ctx: PipelineContext) -> None:
        try:
            data = await self.aml_collector.collect(ctx.request, ctx.payee, ctx.now)
        except DependencyUnavailable as e:
            ctx.aml_error = str(e)
            raise
        ctx.aml = screen_transaction(data, self.aml_rules)
        pipeline.check_aml(ctx)

    # Orchestration

    async def _run_stages(self, ctx: PipelineContext) -> Optional[Denial]:
        for stage in pipeline.STAGE_ORDER:
            ctx.stages_run.append(stage)
            with stage_latency_histogram.labels(stage=stage.value).time():
                try:
                    await self._stages[stage](ctx)
                except PolicyDeny as deny:
                    if stage == Stage.FRAUD_SCORE:
                        ctx.pending_denial = pipeline.policy_denial(deny)
                        continue
                    return ctx.pending_denial or pipeline.policy_denial(deny)
                except CredentialError as e:
                    return _credential_denial(e)
                except DependencyUnavailable as e:
                    logging.warning(
                        f"Dependency unavailable at {stage.value}: {e}",
                        extra={"request_id": ctx.request.request_id, "source": e.source},
                    )
                    return ctx.pending_denial or pipeline.dependency_denial(stage, e.source)
        return ctx.pending_denial

    def _audit(self, ctx: PipelineContext, decision: RiskDecision, denial: Optional[Denial]) -> Optional[str]:
        """One audit event per deny and per allow that carries flags"""
        if decision.allowed and not decision.flags:
            return None

        details = ctx.audit_details()
        details["outcome"] = decision.outcome.value
        if denial is not None:
            details["deny"] = {
                "stage": denial.stage.value,
                "kind": denial.kind.value,
                "code": denial.code,
                **denial.details,
            }
        event = AuditEvent(
            actor_id=ctx.request.customer_id,
            target_type="payment",
            target_id=ctx.request.payee_id,
            action="payment_allowed_flagged" if decision.allowed else "payment_denied",
            details=details,
            created_at=ctx.now,
        )
        return self.audit_sink.record(event)

    async def evaluate(self, request: PaymentRequest) -> GatewayResult:
        """
        Run a payment through every stage and return the decision.

        Malformed requests are rejected before any state is read and are
        not audited.
        """
        start_time = time.time()

        try:
            pipeline.validate_request(request)
        except ValidationError as e:
            validation_rejection_counter.inc()
            decision = RiskDecision(
                outcome=Outcome.DENY,
                reason=str(e),
                kind=DenyKind.VALIDATION,
                code="validation_error",
            )
            return GatewayResult(allowed=False, decision=decision, blocked_reason=str(e))

        ctx = PipelineContext(request=request, now=self.clock())
        denial = await self._run_stages(ctx)
        decision = pipeline.build_decision(ctx, denial)
        audit_ref = self._audit(ctx, decision, denial)

        duration_ms = (time.time() - start_time) * 1000
        stage = decision.stage.value if decision.stage else None
        record_decision(decision.allowed, stage, decision.flags)
        log_decision(
            request.request_id,
            request.customer_id,
            decision.allowed,
            stage,
            decision.code,
            decision.flags,
            duration_ms,
        )

        return GatewayResult(
            allowed=decision.allowed,
            decision=decision,
            rail=decision.rail,
            blocked_reason=None if decision.allowed else decision.reason,
            audit_ref=audit_ref,
        )

    async def submit(self, request: PaymentRequest) -> PaymentOutcome:
        """
        Evaluate, then hand an allowed payment to the ledger.

        The request carries its own ledger idempotency key; the request id is
        only used for tracing. The payee's first use is stamped only after
        the ledger confirms the transfer.
        """
        result = await self.evaluate(request)
        if not result.allowed:
            return PaymentOutcome(result=result)
        if self.ledger_client is None:
            raise RuntimeError("PaymentGateway.submit requires a ledger client")

        payee = self.payees.get_payee(request.payee_id)
        transfer = await self.ledger_client.transfer(
            source_account_id=request.source_account_id,
            sort_code=normalize_sort_code(payee.sort_code),
            account_number=normalize_account_number(payee.account_number),
            amount_minor=request.amount_minor,
            reference=request.reference or payee.reference,
            idempotency_key=request.idempotency_key,
        )

        if transfer.ok:
            self.payees.mark_first_used(request.payee_id, self.clock())
            self.db.commit()
            logging.info(
                "Transfer completed",
                extra={"request_id": request.request_id, "transfer_id": transfer.transfer_id},
            )
        else:
            logging.warning(
                f"Transfer failed: {transfer.error}",
                extra={"request_id": request.request_id},
            )

        return PaymentOutcome(result=result, transfer=transfer)

    async def confirm_payee(self, sort_code: str, account_number: str, name: str) -> CopResult:
        """Confirmation of Payee check for a payee being added, before any payment"""
        local = self.accounts.find_holder(sort_code, account_number)
        if local is not None:
            holder = HolderLookup.found(local[1])
        else:
            holder = await self._lookup_external_holder(sort_code, account_number)
        return self._match(sort_code, account_number, name, holder)

    def validate_identifiers(self, sort_code: str, account_number: str) -> ValidationResult:
        return validate(sort_code, account_number, self.modulus_tables)

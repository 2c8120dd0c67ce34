"""POST /v1/payments - outbound payment evaluation and submission"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from payment_gateway.api.v1.schemas import EvaluationResponse, PaymentRequestBody, PaymentResponse
from payment_gateway.api.dependencies import get_gateway, get_request_id
from payment_gateway.domain.models import DenyKind, GatewayResult, PaymentRequest
from payment_gateway.infrastructure.database.session import get_db
from payment_gateway.services.gateway import PaymentGateway

router = APIRouter()


def _to_domain(body: PaymentRequestBody, request_id: str, idempotency_key: Optional[str] = None) -> PaymentRequest:
    extra = {"request_id": request_id} if request_id != "unknown" else {}
    if idempotency_key:
        extra["idempotency_key"] = idempotency_key
    return PaymentRequest(
        customer_id=body.customer_id,
        source_account_id=body.source_account_id,
        payee_id=body.payee_id,
        amount_minor=body.amount_minor,
        pin=body.pin,
        reference=body.reference,
        urgent=body.urgent,
        bulk=body.bulk,
        **extra,
    )


def _evaluation_fields(result: GatewayResult) -> dict:
    decision = result.decision
    if decision.kind == DenyKind.VALIDATION:
        raise HTTPException(status_code=422, detail=result.blocked_reason)
    return {
        "allowed": result.allowed,
        "rail": result.rail.value if result.rail else None,
        "blocked_reason": result.blocked_reason,
        "deny_stage": decision.stage.value if decision.stage else None,
        "deny_code": decision.code,
        "audit_ref": result.audit_ref,
        "flags": list(decision.flags),
    }


@router.post("/payments/evaluate", response_model=EvaluationResponse)
async def evaluate_payment(
    body: PaymentRequestBody,
    request: Request,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Run a payment through the gateway stages without moving funds"""
    request_id = get_request_id(request)

    try:
        result = await gateway.evaluate(_to_domain(body, request_id))
        return EvaluationResponse(**_evaluation_fields(result))

    except HTTPException:
        raise

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments", response_model=PaymentResponse)
async def submit_payment(
    body: PaymentRequestBody,
    request: Request,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Evaluate a payment and, if allowed, transfer it through the ledger.

    Flow:
    1. Run every gateway stage
    2. Send the transfer to the ledger under the caller's Idempotency-Key,
       or a fresh key when none is given
    3. Stamp the payee's first use once the ledger confirms
    """
    request_id = get_request_id(request)

    try:
        outcome = await gateway.submit(_to_domain(body, request_id, idempotency_key))
        transfer = outcome.transfer
        return PaymentResponse(
            **_evaluation_fields(outcome.result),
            transfer_id=transfer.transfer_id if transfer else None,
            transfer_error=transfer.error if transfer else None,
        )

    except HTTPException:
        raise

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

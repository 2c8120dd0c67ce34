"""Payee checks run while a payee is being added"""

import logging
from fastapi import APIRouter, Depends, HTTPException

from payment_gateway.api.v1.schemas import (
    IdentifierValidationRequest,
    IdentifierValidationResponse,
    PayeeConfirmationRequest,
    PayeeConfirmationResponse,
)
from payment_gateway.api.dependencies import get_gateway
from payment_gateway.domain.cop import cop_message
from payment_gateway.domain.exceptions import DependencyRejected
from payment_gateway.services.gateway import PaymentGateway

router = APIRouter()


@router.post("/identifiers/validate", response_model=IdentifierValidationResponse)
def validate_identifiers(
    body: IdentifierValidationRequest,
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Modulus-check a sort code and account number"""
    result = gateway.validate_identifiers(body.sort_code, body.account_number)
    return IdentifierValidationResponse(
        valid=result.valid,
        reason=result.reason,
        indeterminate=result.indeterminate,
    )


@router.post("/payees/confirm", response_model=PayeeConfirmationResponse)
async def confirm_payee(
    body: PayeeConfirmationRequest,
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Confirmation of Payee: compare the entered name with the account holder"""
    try:
        result = await gateway.confirm_payee(body.sort_code, body.account_number, body.name)
    except DependencyRejected as e:
        logging.error(f"Payee directory rejected lookup: {e}")
        raise HTTPException(status_code=502, detail="Payee directory rejected the lookup")

    message = cop_message(result.verdict, result.matched_name)
    return PayeeConfirmationResponse(
        verdict=result.verdict.value,
        matched_name=result.matched_name,
        similarity=result.similarity,
        title=message.title,
        description=message.description,
        severity=message.severity,
        can_proceed=message.can_proceed,
    )

"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from typing import List, Optional


class PaymentRequestBody(BaseModel):
    """Request body for POST /v1/payments and POST /v1/payments/evaluate"""

    customer_id: str = Field(..., description="Authenticated customer identifier")
    source_account_id: str = Field(..., description="Account the funds leave")
    payee_id: str = Field(..., description="Saved payee receiving the funds")
    amount_minor: int = Field(..., description="Amount in pence")
    pin: str = Field(..., description="Four-digit transfer PIN")
    reference: Optional[str] = Field(None, description="Payment reference, up to 18 characters")
    urgent: bool = False
    bulk: bool = False


class EvaluationResponse(BaseModel):
    """Response for POST /v1/payments/evaluate"""

    allowed: bool
    rail: Optional[str] = None
    blocked_reason: Optional[str] = None
    deny_stage: Optional[str] = None
    deny_code: Optional[str] = None
    audit_ref: Optional[str] = None
    flags: List[str] = []


class PaymentResponse(EvaluationResponse):
    """Response for POST /v1/payments"""

    transfer_id: Optional[str] = None
    transfer_error: Optional[str] = None


class PinSetupRequest(BaseModel):
    """Request body for POST /v1/pin"""

    customer_id: str = Field(..., min_length=1)
    pin: str


class PinSetupResponse(BaseModel):
    customer_id: str
    status: str = "created"


class IdentifierValidationRequest(BaseModel):
    """Request body for POST /v1/identifiers/validate"""

    sort_code: str
    account_number: str


class IdentifierValidationResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    indeterminate: bool = False


class PayeeConfirmationRequest(BaseModel):
    """Request body for POST /v1/payees/confirm"""

    sort_code: str
    account_number: str
    name: str


class PayeeConfirmationResponse(BaseModel):
    """Confirmation of Payee verdict with the message shown to the customer"""

    verdict: str
    matched_name: Optional[str] = None
    similarity: Optional[float] = None
    title: str
    description: str
    severity: str
    can_proceed: bool

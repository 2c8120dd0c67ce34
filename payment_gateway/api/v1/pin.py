"""POST /v1/pin - transfer PIN setup"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from payment_gateway.api.v1.schemas import PinSetupRequest, PinSetupResponse
from payment_gateway.api.dependencies import get_pin_service, get_request_id
from payment_gateway.domain.exceptions import PinAlreadySet, ValidationError, WeakCredential
from payment_gateway.infrastructure.database.session import get_db
from payment_gateway.services.pin import PinVerificationService

router = APIRouter()


@router.post("/pin", response_model=PinSetupResponse, status_code=201)
def set_up_pin(
    body: PinSetupRequest,
    request: Request,
    db: Session = Depends(get_db),
    pin_service: PinVerificationService = Depends(get_pin_service),
):
    """Set up a customer's transfer PIN (changing an existing PIN is a separate flow)"""
    request_id = get_request_id(request)

    try:
        pin_service.setup(body.customer_id, body.pin)
        return PinSetupResponse(customer_id=body.customer_id)

    except PinAlreadySet as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    except (ValidationError, WeakCredential) as e:
        db.rollback()
        logging.warning(f"PIN rejected: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

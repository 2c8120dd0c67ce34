"""Dependency injection for FastAPI endpoints"""

from datetime import datetime
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from payment_gateway.infrastructure.clients.cop import CopClient
from payment_gateway.infrastructure.clients.ledger import LedgerClient
from payment_gateway.infrastructure.clients.watchlist import WatchlistClient
from payment_gateway.infrastructure.database.session import get_db
from payment_gateway.services.gateway import PaymentGateway
from payment_gateway.services.pin import PinVerificationService
from payment_gateway.utils.date_utils import utcnow


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Callable[[], datetime]:
    """Provide the time source; overridden in tests"""
    return utcnow


def get_cop_client() -> CopClient:
    """Provide Confirmation of Payee client instance"""
    return CopClient()


def get_watchlist_client() -> WatchlistClient:
    """Provide watch-list client instance"""
    return WatchlistClient()


def get_ledger_client() -> LedgerClient:
    """Provide ledger transfer client instance"""
    return LedgerClient()


def get_pin_service(
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> PinVerificationService:
    return PinVerificationService(db, clock=clock)


def get_gateway(
    db: Session = Depends(get_db),
    cop_client: CopClient = Depends(get_cop_client),
    watchlist_client: WatchlistClient = Depends(get_watchlist_client),
    ledger_client: LedgerClient = Depends(get_ledger_client),
    clock: Callable[[], datetime] = Depends(get_clock),
    pin_service: PinVerificationService = Depends(get_pin_service),
) -> PaymentGateway:
    """Provide a gateway bound to this request's database session"""
    return PaymentGateway(
        db,
        cop_client=cop_client,
        watchlist_client=watchlist_client,
        ledger_client=ledger_client,
        clock=clock,
        pin_service=pin_service,
    )

"""Payment rail selection"""

from dataclasses import dataclass
from datetime import datetime, time

from payment_gateway.domain.models import Rail
from payment_gateway.utils.date_utils import to_local


@dataclass(frozen=True)
class RailPolicy:
    fps_limit_minor: int = 100_000_000  # £1,000,000
    chaps_threshold_minor: int = 25_000_000  # £250,000
    chaps_cutoff: time = time(14, 30)
    timezone: str = "Europe/London"


@dataclass(frozen=True)
class RailSelection:
    rail: Rail
    display_name: str
    reason: str


def _before_chaps_cutoff(now: datetime, policy: RailPolicy) -> bool:
    local = to_local(now, policy.timezone)
    return local.weekday() < 5 and local.time() < policy.chaps_cutoff


def select_rail(
    amount_minor: int,
    internal: bool,
    now: datetime,
    urgent: bool = False,
    bulk: bool = False,
    policy: RailPolicy = RailPolicy(),
) -> RailSelection:
    """
    Pick the settlement rail for a payment.

    Rules:
    - Destination inside the institution -> internal ledger
    - Above the Faster Payments limit -> CHAPS (only option)
    - Urgent or high value -> CHAPS before the weekday cutoff, else Faster Payments
    - Bulk/non-urgent -> BACS
    - Everything else -> Faster Payments
    """
    if internal:
        return RailSelection(Rail.INTERNAL, "Internal Transfer", "Transfer between accounts at this bank")

    if amount_minor > policy.fps_limit_minor:
        return RailSelection(Rail.CHAPS, "CHAPS", "Amount exceeds the Faster Payments limit")

    if urgent or amount_minor > policy.chaps_threshold_minor:
        if _before_chaps_cutoff(now, policy):
            return RailSelection(
                Rail.CHAPS,
                "CHAPS",
                "Urgent payment - same-day settlement" if urgent else "High-value payment - same-day settlement",
            )
        return RailSelection(Rail.FPS, "Faster Payments", "CHAPS cutoff passed - routed via Faster Payments")

    if bulk:
        return RailSelection(Rail.BACS, "BACS", "Bulk payment - routed via BACS")

    return RailSelection(Rail.FPS, "Faster Payments", "Standard payment via Faster Payments")

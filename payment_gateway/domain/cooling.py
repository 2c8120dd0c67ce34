"""Cooling period for the first payment to a newly added payee"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Optional

from payment_gateway.domain.models import PayeeRecord, Rail
from payment_gateway.utils.date_utils import ensure_utc


@dataclass(frozen=True)
class CoolingCheckResult:
    allowed: bool
    reason: Optional[str] = None
    unlocks_at: Optional[datetime] = None
    hours_remaining: Optional[int] = None


def cooling_hours_for(rail: Rail, cooling_hours: Mapping[str, int]) -> int:
    """Configured cooling hours for a rail; unconfigured rails have none"""
    return max(int(cooling_hours.get(rail.value, 0)), 0)


def evaluate_cooling(
    payee: PayeeRecord,
    rail: Rail,
    cooling_hours: Mapping[str, int],
    now: datetime,
) -> CoolingCheckResult:
    """
    Decide whether a payment to this payee via this rail must still wait.

    The window runs from when the payee was added and stops applying once
    it has elapsed or once a first payment has completed.
    """
    hours = cooling_hours_for(rail, cooling_hours)
    if hours == 0 or payee.first_used_at is not None:
        return CoolingCheckResult(allowed=True)

    unlocks_at = ensure_utc(payee.created_at) + timedelta(hours=hours)
    if now >= unlocks_at:
        return CoolingCheckResult(allowed=True)

    remaining = math.ceil((unlocks_at - now).total_seconds() / 3600)
    return CoolingCheckResult(
        allowed=False,
        reason=(
            f"For your protection, new payees have a {hours}-hour cooling period before "
            f"the first payment. Please try again in {remaining} hour{'s' if remaining != 1 else ''}."
        ),
        unlocks_at=unlocks_at,
        hours_remaining=remaining,
    )

"""Transaction limit evaluation against rolling-window spend"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from payment_gateway.domain.models import CommittedDebit, LimitPolicy
from payment_gateway.utils.date_utils import ensure_utc, window_start
from payment_gateway.utils.money import format_gbp

DAILY_WINDOW_HOURS = 24
MONTHLY_WINDOW_HOURS = 30 * 24


@dataclass(frozen=True)
class LimitCheckResult:
    allowed: bool
    reason: Optional[str] = None
    breached: Optional[str] = None  # single | daily | monthly
    ceiling_minor: Optional[int] = None
    headroom_minor: Optional[int] = None
    daily_used_minor: int = 0
    monthly_used_minor: int = 0


@dataclass(frozen=True)
class _Ceiling:
    name: str
    label: str
    ceiling_minor: int
    used_minor: int


def spend_since(history: Sequence[CommittedDebit], since: datetime) -> int:
    """Sum of committed debits strictly after `since`"""
    return sum(d.amount_minor for d in history if ensure_utc(d.created_at) > since)


def evaluate_limits(
    policy: LimitPolicy,
    amount_minor: int,
    history: Sequence[CommittedDebit],
    now: datetime,
    disclose_headroom: bool = True,
) -> LimitCheckResult:
    """
    Check a proposed amount against the single, 24-hour and 30-day ceilings.

    Windows are recomputed from committed history on every call. When more
    than one ceiling is breached, the smallest one is reported.
    """
    daily_used = spend_since(history, window_start(now, DAILY_WINDOW_HOURS))
    monthly_used = spend_since(history, window_start(now, MONTHLY_WINDOW_HOURS))

    ceilings = [
        _Ceiling("single", "single payment limit", policy.single_transaction_minor, 0),
        _Ceiling("daily", "24-hour limit", policy.daily_minor, daily_used),
        _Ceiling("monthly", "30-day limit", policy.monthly_minor, monthly_used),
    ]
    breached: List[_Ceiling] = [c for c in ceilings if c.used_minor + amount_minor > c.ceiling_minor]

    if not breached:
        return LimitCheckResult(
            allowed=True,
            daily_used_minor=daily_used,
            monthly_used_minor=monthly_used,
        )

    # min() keeps the first of equal ceilings, so ties resolve single -> daily -> monthly
    worst = min(breached, key=lambda c: c.ceiling_minor)
    headroom = max(worst.ceiling_minor - worst.used_minor, 0)

    reason = f"This payment would exceed your {worst.label} of {format_gbp(worst.ceiling_minor)}."
    if disclose_headroom:
        reason += f" Remaining allowance: {format_gbp(headroom)}."

    return LimitCheckResult(
        allowed=False,
        reason=reason,
        breached=worst.name,
        ceiling_minor=worst.ceiling_minor,
        headroom_minor=headroom,
        daily_used_minor=daily_used,
        monthly_used_minor=monthly_used,
    )

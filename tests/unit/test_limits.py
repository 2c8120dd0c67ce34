"""Unit tests for rolling-window transaction limits"""

import pytest
from datetime import datetime, timedelta, timezone
from payment_gateway.domain.limits import evaluate_limits, spend_since
from payment_gateway.domain.models import CommittedDebit, LimitPolicy

NOW = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)

POLICY = LimitPolicy(
    kyc_tier="basic",
    single_transaction_minor=100_000,
    daily_minor=100_000,
    monthly_minor=500_000,
)


def debit(amount_minor: int, ago: timedelta) -> CommittedDebit:
    return CommittedDebit(amount_minor=amount_minor, created_at=NOW - ago)


def test_limit_breach_reports_headroom():
    """24h limit £1,000, spent £980, request £50 -> headroom £20"""
    history = [debit(98_000, timedelta(hours=3))]

    result = evaluate_limits(POLICY, 5_000, history, NOW)

    assert result.allowed is False
    assert result.breached == "daily"
    assert result.headroom_minor == 2_000
    assert result.reason == (
        "This payment would exceed your 24-hour limit of £1,000.00. Remaining allowance: £20.00."
    )


def test_exactly_reaching_the_ceiling_is_allowed():
    history = [debit(98_000, timedelta(hours=3))]
    result = evaluate_limits(POLICY, 2_000, history, NOW)
    assert result.allowed is True
    assert result.daily_used_minor == 98_000


def test_single_limit():
    result = evaluate_limits(POLICY, 100_001, [], NOW)
    assert result.allowed is False
    assert result.breached == "single"


def test_smallest_breached_ceiling_is_reported():
    """Both the 24h and 30-day ceilings are breached; the 24h one is smaller"""
    history = [debit(90_000, timedelta(hours=1)), debit(400_000, timedelta(days=10))]

    result = evaluate_limits(POLICY, 20_000, history, NOW)

    assert result.breached == "daily"
    assert result.ceiling_minor == 100_000


def test_monthly_breach():
    history = [debit(90_000, timedelta(days=d)) for d in range(2, 7)]  # £4,500 over five days

    result = evaluate_limits(POLICY, 60_000, history, NOW)

    assert result.allowed is False
    assert result.breached == "monthly"
    assert result.headroom_minor == 50_000
    assert "30-day limit of £5,000.00" in result.reason


def test_windows_exclude_boundary_and_older_debits():
    history = [
        debit(99_000, timedelta(hours=24)),  # exactly on the boundary: outside
        debit(400_000, timedelta(days=31)),
    ]
    result = evaluate_limits(POLICY, 50_000, history, NOW)
    assert result.allowed is True
    assert result.daily_used_minor == 0
    assert result.monthly_used_minor == 99_000


def test_headroom_can_be_withheld():
    history = [debit(98_000, timedelta(hours=3))]
    result = evaluate_limits(POLICY, 5_000, history, NOW, disclose_headroom=False)
    assert result.allowed is False
    assert "Remaining allowance" not in result.reason


def test_headroom_never_negative():
    history = [debit(100_000, timedelta(hours=3)), debit(5_000, timedelta(hours=2))]
    result = evaluate_limits(POLICY, 1, history, NOW)
    assert result.headroom_minor == 0


def test_spend_since_handles_naive_datetimes():
    naive = CommittedDebit(amount_minor=1_000, created_at=(NOW - timedelta(hours=1)).replace(tzinfo=None))
    assert spend_since([naive], NOW - timedelta(hours=2)) == 1_000


@pytest.mark.parametrize(
    "single,daily,monthly",
    [
        (-1, 100, 1_000),
        (200, 100, 1_000),
        (100, 2_000, 1_000),
    ],
)
def test_policy_rejects_invalid_ceilings(single, daily, monthly):
    with pytest.raises(ValueError):
        LimitPolicy(kyc_tier="basic", single_transaction_minor=single, daily_minor=daily, monthly_minor=monthly)

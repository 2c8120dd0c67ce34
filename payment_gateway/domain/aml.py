"""AML transaction monitoring rules"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from payment_gateway.domain.models import CommittedDebit
from payment_gateway.utils.date_utils import ensure_utc, window_start
from payment_gateway.utils.money import format_gbp
from payment_gateway.utils.strings import levenshtein, normalize_name

CRITICAL = "critical"
HIGH = "high"
MEDIUM = "medium"


@dataclass(frozen=True)
class AmlRules:
    reporting_threshold_minor: int = 1_000_000  # £10,000
    critical_threshold_minor: int = 5_000_000  # £50,000
    structuring_floor_minor: int = 200_000  # £2,000
    structuring_min_count: int = 3
    structuring_window_hours: int = 24
    velocity_window_minutes: int = 60
    velocity_max_transactions: int = 5
    fuzzy_distance_ratio: float = 0.25


@dataclass(frozen=True)
class AmlInput:
    """Fetched state the screen runs over"""

    amount_minor: int
    counterparty_name: str
    recent_transaction_count: int
    window_debits: Tuple[CommittedDebit, ...]
    watchlist: Tuple[str, ...]
    now: datetime


@dataclass(frozen=True)
class AmlAlert:
    alert_type: str
    severity: str
    reason: str


@dataclass(frozen=True)
class AmlResult:
    passed: bool
    alerts: Tuple[AmlAlert, ...] = field(default_factory=tuple)

    def details(self) -> List[dict]:
        return [{"alert_type": a.alert_type, "severity": a.severity, "reason": a.reason} for a in self.alerts]


def match_watchlist(name: str, watchlist: Sequence[str], max_distance_ratio: float = 0.25) -> Optional[Tuple[str, int]]:
    """Return (entry, distance) for the first exact or fuzzy watch-list hit"""
    candidate = normalize_name(name)
    if not candidate:
        return None
    for entry in watchlist:
        listed = normalize_name(entry)
        if not listed:
            continue
        if candidate == listed:
            return entry, 0
        distance = levenshtein(candidate, listed)
        if distance / max(len(candidate), len(listed)) < max_distance_ratio:
            return entry, distance
    return None


def _structuring_alert(data: AmlInput, rules: AmlRules) -> Optional[AmlAlert]:
    amount = data.amount_minor
    if not rules.structuring_floor_minor <= amount < rules.reporting_threshold_minor:
        return None

    since = window_start(data.now, rules.structuring_window_hours)
    sub_threshold = [
        d.amount_minor
        for d in data.window_debits
        if ensure_utc(d.created_at) > since
        and rules.structuring_floor_minor <= d.amount_minor < rules.reporting_threshold_minor
    ]
    count = len(sub_threshold) + 1
    total = sum(sub_threshold) + amount
    if count >= rules.structuring_min_count and total >= rules.reporting_threshold_minor:
        return AmlAlert(
            "structuring",
            CRITICAL,
            f"Possible structuring: {count} sub-threshold payments totalling {format_gbp(total)} "
            f"in {rules.structuring_window_hours} hours",
        )
    return None


def screen_transaction(data: AmlInput, rules: AmlRules = AmlRules()) -> AmlResult:
    """
    Independent AML screen. Fails on any critical alert:
    - amount at or above the critical reporting threshold
    - structuring across sub-threshold payments
    - sanctions / watch-list name match
    Large (reportable) amounts and velocity raise non-blocking alerts.
    """
    alerts: List[AmlAlert] = []
    amount = data.amount_minor

    if amount >= rules.reporting_threshold_minor:
        alerts.append(
            AmlAlert(
                "large_transaction",
                CRITICAL if amount >= rules.critical_threshold_minor else HIGH,
                f"Payment of {format_gbp(amount)} meets the "
                f"{format_gbp(rules.reporting_threshold_minor)} reporting threshold",
            )
        )

    structuring = _structuring_alert(data, rules)
    if structuring:
        alerts.append(structuring)

    if data.recent_transaction_count >= rules.velocity_max_transactions:
        alerts.append(
            AmlAlert(
                "velocity",
                MEDIUM,
                f"{data.recent_transaction_count + 1} transactions in the last "
                f"{rules.velocity_window_minutes} minutes (threshold: {rules.velocity_max_transactions})",
            )
        )

    hit = match_watchlist(data.counterparty_name, data.watchlist, rules.fuzzy_distance_ratio)
    if hit:
        entry, distance = hit
        alerts.append(
            AmlAlert(
                "sanctions_match",
                CRITICAL,
                f"Counterparty '{data.counterparty_name}' matches watch-list entry '{entry}' (distance={distance})",
            )
        )

    return AmlResult(passed=not any(a.severity == CRITICAL for a in alerts), alerts=tuple(alerts))

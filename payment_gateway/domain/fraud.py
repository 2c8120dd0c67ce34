"""Fraud scoring engine - pure scoring over a fetched signal vector"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from payment_gateway.domain.models import FraudDecision
from payment_gateway.utils.money import format_gbp

MAX_SCORE = 100


@dataclass(frozen=True)
class FraudSignals:
    """Everything the score depends on, fetched before scoring"""

    amount_minor: int
    is_new_payee: bool
    average_debit_minor: Optional[int]  # None when the customer has no debit history
    recent_transaction_count: int
    local_hour: int
    counterparty_flags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FraudRules:
    """Rule weights and thresholds"""

    new_payee_points: int = 5
    new_payee_large_points: int = 20
    new_payee_amount_minor: int = 100_000  # £1,000
    above_norm_points: int = 30
    amount_multiplier: float = 3.0
    large_amount_points: int = 15
    large_amount_minor: int = 1_000_000  # £10,000
    velocity_points: int = 20
    velocity_window_minutes: int = 60
    velocity_max_transactions: int = 5
    unusual_hour_points: int = 15
    unusual_hour_start: int = 1
    unusual_hour_end: int = 5
    counterparty_points: int = 25
    review_threshold: int = 31
    block_threshold: int = 61


@dataclass(frozen=True)
class ScoreFactor:
    rule: str
    points: int
    description: str


@dataclass(frozen=True)
class FraudAssessment:
    score: int
    decision: FraudDecision
    factors: Tuple[ScoreFactor, ...] = field(default_factory=tuple)

    def breakdown(self) -> List[dict]:
        return [{"rule": f.rule, "points": f.points, "description": f.description} for f in self.factors]


def decide(score: int, rules: FraudRules = FraudRules()) -> FraudDecision:
    """
    Three-way map from score to decision:
    - below review threshold: allow
    - review threshold up to block threshold: allow with audit flag
    - at/above block threshold: block
    """
    if score >= rules.block_threshold:
        return FraudDecision.BLOCK
    if score >= rules.review_threshold:
        return FraudDecision.REVIEW
    return FraudDecision.ALLOW


def score_signals(signals: FraudSignals, rules: FraudRules = FraudRules()) -> FraudAssessment:
    """Score a payment from 0 (no risk signals) to 100"""
    factors: List[ScoreFactor] = []
    amount = signals.amount_minor

    if signals.is_new_payee:
        factors.append(ScoreFactor("new_payee", rules.new_payee_points, "First payment to this payee"))
        if amount >= rules.new_payee_amount_minor:
            factors.append(
                ScoreFactor(
                    "new_payee_large_amount",
                    rules.new_payee_large_points,
                    f"Large payment of {format_gbp(amount)} to new payee",
                )
            )

    avg = signals.average_debit_minor
    if avg and amount > avg * rules.amount_multiplier:
        factors.append(
            ScoreFactor(
                "amount_above_norm",
                rules.above_norm_points,
                f"Amount {format_gbp(amount)} is {amount / avg:.1f}x average ({format_gbp(avg)})",
            )
        )

    if amount >= rules.large_amount_minor:
        factors.append(
            ScoreFactor(
                "large_amount",
                rules.large_amount_points,
                f"Amount {format_gbp(amount)} exceeds {format_gbp(rules.large_amount_minor)} threshold",
            )
        )

    if signals.recent_transaction_count >= rules.velocity_max_transactions:
        factors.append(
            ScoreFactor(
                "velocity",
                rules.velocity_points,
                f"{signals.recent_transaction_count + 1} transactions in {rules.velocity_window_minutes} "
                f"minutes (limit: {rules.velocity_max_transactions})",
            )
        )

    if rules.unusual_hour_start <= signals.local_hour < rules.unusual_hour_end:
        factors.append(
            ScoreFactor(
                "unusual_hour",
                rules.unusual_hour_points,
                f"Payment at unusual hour ({signals.local_hour:02d}:00)",
            )
        )

    for flag in signals.counterparty_flags:
        factors.append(
            ScoreFactor("counterparty_risk", rules.counterparty_points, f"Payee name mentions '{flag}'")
        )

    score = min(sum(f.points for f in factors), MAX_SCORE)
    return FraudAssessment(score=score, decision=decide(score, rules), factors=tuple(factors))


def counterparty_flags(normalized_name: str, keywords: Tuple[str, ...]) -> Tuple[str, ...]:
    """Risk keywords found in a normalised payee name"""
    padded = f" {normalized_name} "
    return tuple(k for k in keywords if f" {k} " in padded)

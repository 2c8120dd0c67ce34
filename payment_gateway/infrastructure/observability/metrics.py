"""Prometheus metrics for gateway decisions, stage latency and downstream health"""

from prometheus_client import Counter, Histogram

# Decision metrics
decision_counter = Counter(
    "payment_gateway_decision_total",
    "Total payment gateway decisions",
    ["outcome", "stage"],  # allow | deny, stage that denied (or "allow")
)

validation_rejection_counter = Counter(
    "payment_gateway_validation_rejections_total",
    "Requests rejected as malformed before any stage ran",
)

audit_flag_counter = Counter(
    "payment_gateway_audit_flags_total",
    "Audit flags raised on allowed payments",
    ["flag"],
)

stage_latency_histogram = Histogram(
    "payment_gateway_stage_seconds",
    "Time spent in each pipeline stage, including its data reads",
    ["stage"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Downstream metrics
dependency_failure_counter = Counter(
    "payment_gateway_dependency_failures_total",
    "Failed or timed-out reads from downstream data sources",
    ["source"],  # cop | watchlist | fraud_signals | aml_history
)

ledger_latency_histogram = Histogram(
    "ledger_transfer_latency_seconds",
    "Ledger transfer response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ledger_failure_counter = Counter(
    "ledger_transfer_failures_total",
    "Failed ledger transfer attempts",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(allowed: bool, stage: str | None, flags: tuple = ()) -> None:
    """Record decision metrics for monitoring allow rates and where payments are stopped"""
    outcome = "allow" if allowed else "deny"
    decision_counter.labels(outcome=outcome, stage=stage or "allow").inc()

    for flag in flags:
        audit_flag_counter.labels(flag=flag).inc()

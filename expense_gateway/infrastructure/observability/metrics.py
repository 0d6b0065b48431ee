"""Prometheus metrics for monitoring authorizations, card transitions, payments and ERP sync"""

from prometheus_client import Counter, Histogram, Gauge

# Authorization metrics
authorization_counter = Counter(
    "expense_authorization_total",
    "Total simulated charge authorizations",
    ["outcome"],  # approved | declined
)

decline_counter = Counter(
    "expense_decline_total",
    "Declined authorizations by reason",
    ["reason"],  # card_locked | card_suspended | insufficient_funds | limit_exceeded | ...
)

# Card lifecycle metrics
card_transition_counter = Counter(
    "expense_card_transition_total",
    "Card status transitions",
    ["from_status", "to_status"],
)

# Invoice payment metrics
invoice_payment_counter = Counter(
    "expense_invoice_payment_total",
    "Invoice payment attempts",
    ["method", "outcome"],
)

wallet_balance_gauge = Gauge(
    "expense_wallet_balance_cents",
    "Company wallet balance after the last change",
)

# ERP sync metrics
erp_sync_latency_histogram = Histogram(
    "erp_sync_latency_seconds",
    "ERP sync response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

erp_sync_failure_counter = Counter(
    "erp_sync_failures_total",
    "Failed ERP sync attempts",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_authorization(approved: bool, decline_code: str | None = None) -> None:
    """Record authorization outcome, with the decline reason bucket when declined"""
    outcome = "approved" if approved else "declined"
    authorization_counter.labels(outcome=outcome).inc()
    if not approved:
        decline_counter.labels(reason=decline_code or "unknown").inc()


def record_card_transition(from_status: str, to_status: str) -> None:
    card_transition_counter.labels(from_status=from_status, to_status=to_status).inc()


def record_invoice_payment(method: str, outcome: str) -> None:
    invoice_payment_counter.labels(method=method, outcome=outcome).inc()


def record_wallet_balance(balance_cents: int) -> None:
    wallet_balance_gauge.set(balance_cents)

"""Prometheus metrics for monitoring loans, repayments, charges and lock contention"""

from prometheus_client import Counter, Histogram

# Loan metrics
loan_counter = Counter(
    "rcard_loans_total",
    "Loan creation attempts",
    ["outcome"],  # created | <error kind>
)

repayment_counter = Counter(
    "rcard_repayments_total",
    "Loan repayment attempts",
    ["outcome"],  # paid | <error kind>
)

loan_amount_histogram = Histogram(
    "rcard_loan_amount_credits",
    "Principal of created loans",
    buckets=[100, 250, 500, 1000, 2000, 5000, 15000],
)

# Payment API metrics
charge_counter = Counter(
    "rcard_charges_total",
    "Organization charge requests",
    ["outcome"],  # approved | declined | rejected
)

# Concurrency
lock_timeout_counter = Counter(
    "rcard_lock_timeouts_total",
    "Per-owner lock acquisitions that timed out",
    ["scope"],  # user | org | nonces
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_loan(outcome: str, amount: float | None = None) -> None:
    """Record loan creation outcome; amounts only for created loans"""
    loan_counter.labels(outcome=outcome).inc()
    if outcome == "created" and amount is not None:
        loan_amount_histogram.observe(amount)

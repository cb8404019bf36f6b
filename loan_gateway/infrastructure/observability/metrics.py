"""Prometheus metrics for slip verification outcomes, OCR performance and bind contention"""

from prometheus_client import Counter, Histogram

# Verification metrics
slip_verification_counter = Counter(
    "loan_slip_verification_total",
    "Slip verification outcomes",
    ["outcome"],  # matched | no_match | ambiguous | rejected | unavailable
)

schedule_generated_counter = Counter(
    "loan_schedule_generated_total",
    "Payment schedules created for new contracts",
)

# OCR provider metrics
ocr_latency_histogram = Histogram(
    "ocr_latency_seconds",
    "Slip OCR provider response time",
    buckets=[0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ocr_failure_counter = Counter(
    "ocr_failures_total",
    "Failed OCR provider calls",
)

# Store contention
bind_conflict_counter = Counter(
    "bind_conflicts_total",
    "Compare-and-set conflicts while binding slips",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_verification(outcome: str) -> None:
    """Record the terminal outcome of a slip verification"""
    slip_verification_counter.labels(outcome=outcome).inc()

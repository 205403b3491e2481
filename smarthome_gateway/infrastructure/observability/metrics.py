"""Prometheus metrics for ledger operations, the verification gate and cascade size"""

from prometheus_client import Counter, Histogram

# Operation metrics
operation_counter = Counter(
    "smarthome_operation_total",
    "Total ledger operations invoked",
    ["operation", "outcome"],  # outcome: success | domain error class name
)

verification_gate_counter = Counter(
    "smarthome_verification_gate_total",
    "Verification gate decisions",
    ["outcome"],  # approved | rejected
)

cascade_homes_histogram = Histogram(
    "smarthome_cascade_homes_updated",
    "Homes rewritten by a single verified floor",
    buckets=[0, 1, 5, 10, 50, 100, 500, 1000],
)

# Store metrics
store_conflict_counter = Counter(
    "smarthome_store_conflicts_total",
    "Optimistic version conflicts on ledger writes",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_operation(operation: str, error: Exception | None = None) -> None:
    """Count an operation by name and outcome"""
    outcome = "success" if error is None else type(error).__name__
    operation_counter.labels(operation=operation, outcome=outcome).inc()


def record_gate(approved: bool) -> None:
    verification_gate_counter.labels(outcome="approved" if approved else "rejected").inc()

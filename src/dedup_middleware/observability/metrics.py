"""Prometheus metrics for the deduplication middleware.

Metrics:

- ``dedup_requests_total{outcome,status_code}``: requests by outcome
  (skipped, executed, replayed, rejected, mismatched, failed)
- ``dedup_execution_time_seconds``: handler run time, executions only
- ``dedup_store_errors_total{step}``: store failures by protocol step
- ``dedup_lock_contention_total``: acquisitions that found the lock held
- ``dedup_sweep_removed_total``: expired keys removed by the sweeper

Examples:
    >>> record_request("replayed", 201)
    >>> record_store_error("STORE")
"""

from prometheus_client import Counter, Histogram

requests_total = Counter(
    "dedup_requests_total",
    "Total number of requests seen by the deduplication middleware",
    ["outcome", "status_code"],
)

# Only tracks executions, never replays
execution_time_seconds = Histogram(
    "dedup_execution_time_seconds",
    "Downstream handler execution time in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

store_errors_total = Counter(
    "dedup_store_errors_total",
    "Coordination store failures by protocol step",
    ["step"],
)

lock_contention_total = Counter(
    "dedup_lock_contention_total",
    "Lock acquisitions that found another request in flight",
)

sweep_removed_total = Counter(
    "dedup_sweep_removed_total",
    "Expired keys removed from the in-process store by the sweeper",
)


def record_request(outcome: str, status_code: int) -> None:
    requests_total.labels(outcome=outcome, status_code=str(status_code)).inc()


def record_execution_time(seconds: float) -> None:
    execution_time_seconds.observe(seconds)


def record_store_error(step: str) -> None:
    store_errors_total.labels(step=step).inc()


def record_contention() -> None:
    lock_contention_total.inc()


def record_sweep(removed: int) -> None:
    sweep_removed_total.inc(removed)

"""Observability utilities for the deduplication middleware.

- Structured logging via structlog
- Prometheus metrics for outcomes, store failures and lock contention
"""

from dedup_middleware.observability.logging import configure_logging, get_logger
from dedup_middleware.observability.metrics import (
    record_contention,
    record_execution_time,
    record_request,
    record_store_error,
    record_sweep,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_request",
    "record_execution_time",
    "record_store_error",
    "record_contention",
    "record_sweep",
]

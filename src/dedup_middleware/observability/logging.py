"""Structured logging for the deduplication middleware.

Logs are emitted through structlog with dotted event names and the token,
protocol step and diagnostic code bound as fields, so a failing store step
can be found by code in any log aggregator.

Examples:
    Configure once at startup::

        from dedup_middleware.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Emit an event::

        logger = get_logger(__name__)
        logger.error("dedup.failed", token="abc", step="STORE", code="0x00132")

    Output (JSON)::

        {"token": "abc", "step": "STORE", "code": "0x00132",
         "event": "dedup.failed", "level": "error",
         "timestamp": "2026-01-01T00:00:00.000000Z"}
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Emit JSON lines when True, coloured console output otherwise.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)

"""Utility modules for the deduplication middleware."""

from .headers import (
    VOLATILE_HEADERS,
    extract_token,
    filter_response_headers,
    get_header_value,
    mark_retry,
)

__all__ = [
    "VOLATILE_HEADERS",
    "extract_token",
    "filter_response_headers",
    "get_header_value",
    "mark_retry",
]

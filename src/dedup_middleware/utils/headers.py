"""Header helpers for the deduplication middleware.

This module provides functions for:
- Case-insensitive header lookup and token extraction
- Dropping volatile headers before a response is cached
- Marking responses with the retry header
"""

# Hop-by-hop and per-delivery headers that must not be frozen into a cache
# entry and sent again on replay
VOLATILE_HEADERS = {
    "date",
    "server",
    "connection",
    "transfer-encoding",
    "keep-alive",
    "trailer",
    "upgrade",
    "proxy-connection",
    "proxy-authenticate",
    "proxy-authorization",
    "set-cookie",
}


def get_header_value(
    headers: dict[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Look up a header case-insensitively.

    Example:
        >>> get_header_value({"Idempotency-Key": "abc"}, "idempotency-key")
        'abc'
    """
    wanted = header_name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return default


def extract_token(headers: dict[str, str], header_name: str) -> str | None:
    """Return the stripped idempotency token, or None when absent or blank.

    Example:
        >>> extract_token({"Idempotency-Key": "  abc "}, "Idempotency-Key")
        'abc'
        >>> extract_token({"Idempotency-Key": "   "}, "Idempotency-Key") is None
        True
    """
    value = get_header_value(headers, header_name)
    if value is None:
        return None
    return value.strip() or None


def filter_response_headers(
    headers: dict[str, str],
    additional_volatile: list[str] | None = None,
) -> dict[str, str]:
    """Drop volatile headers (case-insensitive).

    Args:
        headers: Response headers.
        additional_volatile: More header names to drop.

    Example:
        >>> filter_response_headers({"Content-Type": "application/json", "Date": "x"})
        {'Content-Type': 'application/json'}
    """
    drop = set(VOLATILE_HEADERS)
    if additional_volatile:
        drop.update(name.lower() for name in additional_volatile)
    return {key: value for key, value in headers.items() if key.lower() not in drop}


def mark_retry(headers: dict[str, str], retry_header_name: str, replayed: bool) -> dict[str, str]:
    """Return a copy of ``headers`` with the retry header set.

    Any existing spelling of the header is replaced.

    Example:
        >>> mark_retry({"content-type": "application/json"}, "Idempotency-Retry", True)
        {'content-type': 'application/json', 'Idempotency-Retry': 'true'}
    """
    result = filter_response_headers(headers, additional_volatile=[retry_header_name])
    result[retry_header_name] = "true" if replayed else "false"
    return result

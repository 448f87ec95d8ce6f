"""Snapshot and replay of handler responses.

``snapshot_response`` turns what the downstream handler returned into the
CachedResponse written to the store; ``replay_response`` turns a cached
entry back into a response. Status and body come back exactly as they were
produced; headers lose volatile entries and gain ``Idempotency-Retry: true``.

Examples:
    >>> original = HandlerResponse(201, {"content-type": "application/json"},
    ...                            b'{"success":true,"message":"success"}')
    >>> cached = snapshot_response(original, fingerprint=None)
    >>> replayed = replay_response(cached, "Idempotency-Retry")
    >>> replayed.status, replayed.body == original.body
    (201, True)
    >>> replayed.headers["Idempotency-Retry"]
    'true'
"""

from dedup_middleware.models import CachedResponse, snapshot_body
from dedup_middleware.utils.headers import filter_response_headers, mark_retry


class HandlerResponse:
    """A framework-neutral HTTP response.

    Used for what the downstream handler returns, for replays, and for the
    middleware's own conflict and error responses.

    Attributes:
        status: HTTP status code.
        headers: Response headers.
        body: Response body bytes.
        raw_headers: Header pairs exactly as the framework produced them,
            repeated names included. Set only for responses that came from
            the downstream handler; None for replays and envelope responses.
    """

    def __init__(
        self,
        status: int,
        headers: dict[str, str],
        body: bytes,
        raw_headers: list[tuple[bytes, bytes]] | None = None,
    ) -> None:
        self.status = status
        self.headers = headers
        self.body = body
        self.raw_headers = raw_headers

    def __repr__(self) -> str:
        return f"HandlerResponse(status={self.status}, body={len(self.body)} bytes)"


def snapshot_response(response: HandlerResponse, fingerprint: str | None) -> CachedResponse:
    """Capture ``response`` as a cache entry.

    Args:
        response: The handler's response.
        fingerprint: Fingerprint of the request that produced it, if any.

    Returns:
        CachedResponse with volatile headers removed and the body stored in
        whichever variant reproduces it byte for byte.
    """
    return CachedResponse(
        status=response.status,
        headers=filter_response_headers(response.headers),
        body=snapshot_body(response.body),
        fingerprint=fingerprint,
    )


def replay_response(cached: CachedResponse, retry_header_name: str) -> HandlerResponse:
    """Rebuild the original response from a cache entry, marked as a replay."""
    return HandlerResponse(
        status=cached.status,
        headers=mark_retry(cached.headers, retry_header_name, replayed=True),
        body=cached.body_bytes(),
    )

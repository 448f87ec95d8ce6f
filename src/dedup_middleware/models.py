"""Core type definitions for the deduplication middleware.

This module holds the data that crosses the store boundary (the cached
response snapshot and its body variants) together with the small enums the
protocol uses to describe lock acquisition and request outcomes.

The cached body is a tagged union discriminated by ``kind``:

- ``ResponseBody`` (``kind="envelope"``) for the service's standard JSON
  envelope ``{"success": ..., "message": ..., "data": ...}``.
- ``RawBody`` (``kind="raw"``) for any other payload, kept as base64 so the
  exact bytes survive serialization.

Examples:
    Snapshotting a handler response::

        from dedup_middleware.models import CachedResponse, snapshot_body

        cached = CachedResponse(
            status=201,
            headers={"content-type": "application/json"},
            body=snapshot_body(b'{"success":true,"message":"created"}'),
        )
        assert cached.body.kind == "envelope"

    Round trip through the store::

        raw = cached.model_dump_json()
        restored = CachedResponse.model_validate_json(raw)
        assert restored.body.render() == cached.body.render()
"""

import base64
import json
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
    field_validator,
)


class AcquireResult(str, Enum):
    """Outcome of incrementing a token's lock counter.

    Attributes:
        OWNER: The counter was 1 after the increment; this caller may execute.
        CONTENDED: Another caller already holds the lock.
    """

    OWNER = "OWNER"
    CONTENDED = "CONTENDED"


class RequestOutcome(str, Enum):
    """How a single request left the state machine.

    Attributes:
        SKIPPED: No token (or a safe method); passed straight through.
        EXECUTED: This request ran the handler.
        REPLAYED: A cached response was returned without running the handler.
        REJECTED: Another request with the same token was in flight.
        MISMATCHED: The token was reused for a different request.
        FAILED: A store interaction failed.
    """

    SKIPPED = "skipped"
    EXECUTED = "executed"
    REPLAYED = "replayed"
    REJECTED = "rejected"
    MISMATCHED = "mismatched"
    FAILED = "failed"


class ResponseBody(BaseModel):
    """The service's standard JSON response envelope.

    Attributes:
        kind: Discriminator, always ``"envelope"``.
        success: Whether the operation succeeded.
        message: Human-readable result message.
        data: Optional payload; omitted from the wire when ``None``.
    """

    kind: Literal["envelope"] = "envelope"
    success: StrictBool
    message: StrictStr
    data: Any | None = None

    model_config = {"extra": "forbid"}

    def to_wire(self) -> dict[str, Any]:
        """Return the envelope as it appears in an HTTP body."""
        wire: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            wire["data"] = self.data
        return wire

    def render(self) -> bytes:
        """Encode the envelope as compact UTF-8 JSON.

        Uses the same settings as ``starlette.responses.JSONResponse`` so an
        envelope produced by a FastAPI handler renders to identical bytes.
        """
        return json.dumps(
            self.to_wire(),
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


class RawBody(BaseModel):
    """An opaque response body stored as base64.

    Attributes:
        kind: Discriminator, always ``"raw"``.
        body_b64: Base64-encoded response bytes.
    """

    kind: Literal["raw"] = "raw"
    body_b64: str

    @field_validator("body_b64")
    @classmethod
    def validate_base64(cls, v: str) -> str:
        """Reject values that are not valid base64."""
        try:
            base64.b64decode(v, validate=True)
        except ValueError as e:
            raise ValueError(f"Invalid base64 encoding: {e}") from e
        return v

    @classmethod
    def from_bytes(cls, body: bytes) -> "RawBody":
        return cls(body_b64=base64.b64encode(body).decode("ascii"))

    def render(self) -> bytes:
        return base64.b64decode(self.body_b64)


CachedBody = Annotated[ResponseBody | RawBody, Field(discriminator="kind")]


def snapshot_body(body: bytes) -> ResponseBody | RawBody:
    """Pick the body variant that reproduces ``body`` exactly on replay.

    The envelope variant is used only when the bytes parse as an envelope
    and re-render byte for byte; everything else is kept raw.

    Args:
        body: Response body produced by the downstream handler.

    Returns:
        A ``ResponseBody`` or ``RawBody`` whose ``render()`` equals ``body``.

    Examples:
        >>> snapshot_body(b'{"success":true,"message":"ok"}').kind
        'envelope'
        >>> snapshot_body(b"plain text").kind
        'raw'
    """
    try:
        envelope = ResponseBody.model_validate(json.loads(body))
        rendered = envelope.render()
    except (ValueError, TypeError, ValidationError):
        return RawBody.from_bytes(body)
    if rendered != body:
        return RawBody.from_bytes(body)
    return envelope


class CachedResponse(BaseModel):
    """Snapshot of a completed response, stored under the token's cache key.

    Attributes:
        status: HTTP status code of the original response.
        headers: Response headers, volatile ones already removed.
        body: Envelope or raw body (see module docstring).
        fingerprint: Fingerprint of the request that produced this response.
        created_at: When the snapshot was taken (UTC).
    """

    status: int = Field(..., ge=100, le=599, examples=[200, 201])
    headers: dict[str, str] = Field(default_factory=dict)
    body: CachedBody
    fingerprint: str | None = Field(default=None, pattern=r"^[a-f0-9]{64}$")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"frozen": True}

    def body_bytes(self) -> bytes:
        """Return the body exactly as the original response carried it."""
        return self.body.render()

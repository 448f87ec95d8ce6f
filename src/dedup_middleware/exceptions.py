"""Exception hierarchy for the deduplication middleware.

Store implementations raise ``StoreError`` for backend failures. The protocol
layer (lock manager and response cache) translates those into an
``InfrastructureError`` subclass that names the step which failed, so the
middleware can answer with a stable diagnostic code and operators can tell
an unreachable store apart from a corrupt cache entry.

Examples:
    Handling an infrastructure failure::

        from dedup_middleware.exceptions import InfrastructureError

        try:
            result = await lock_manager.acquire(token)
        except InfrastructureError as e:
            logger.error("dedup.failed", step=e.step.name, code=e.code)
            return error_response(e.code)

    Wrapping a backend exception in a store implementation::

        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise StoreError(f"GET {key} failed: {e}", cause=e) from e
"""

from enum import Enum


class FailureStep(str, Enum):
    """Protocol step at which a store interaction failed.

    The value of each member is the diagnostic code returned to callers.
    Codes are stable across releases and safe to alert on.
    """

    ACQUIRE = "0x00057"
    LOCK_EXPIRE = "0x00075"
    LOOKUP = "0x00095"
    DECODE = "0x00106"
    ENCODE = "0x00124"
    STORE = "0x00132"
    RELEASE = "0x00140"


class DedupError(Exception):
    """Base exception for all deduplication errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StoreError(DedupError):
    """The coordination store failed to complete an operation.

    Raised by ``CoordinationStore`` implementations for network failures,
    timeouts, and unexpected replies. Backend-specific exceptions must be
    wrapped in this type and never escape the store.

    Attributes:
        message: Human-readable error description.
        cause: The underlying backend exception, if any.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class InfrastructureError(DedupError):
    """A store interaction failed while running the protocol.

    Subclasses fix ``step``; the middleware turns any of them into a generic
    failure response carrying ``code``.

    Attributes:
        message: Human-readable error description.
        token: The idempotency token being processed.
        cause: The underlying exception, if any.
    """

    step: FailureStep = FailureStep.ACQUIRE

    def __init__(self, message: str, token: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.token = token
        self.cause = cause

    @property
    def code(self) -> str:
        """Stable diagnostic code for the failing step."""
        return self.step.value


class LockAcquireError(InfrastructureError):
    """Incrementing the lock counter failed."""

    step = FailureStep.ACQUIRE


class LockExpiryError(InfrastructureError):
    """Setting the safety-window TTL on the lock failed.

    A lock without an expiry would block its token forever after a crash,
    so this is never downgraded to a warning.
    """

    step = FailureStep.LOCK_EXPIRE


class CacheLookupError(InfrastructureError):
    """Reading the cached response failed."""

    step = FailureStep.LOOKUP


class CorruptCacheEntryError(InfrastructureError):
    """A cached response exists but cannot be decoded.

    Treated as a failure rather than a miss: falling through to
    re-execution would run the side effect a second time.
    """

    step = FailureStep.DECODE


class CacheEncodeError(InfrastructureError):
    """The response snapshot could not be serialized."""

    step = FailureStep.ENCODE


class CacheStoreError(InfrastructureError):
    """Writing the response snapshot failed after the handler ran."""

    step = FailureStep.STORE


class LockReleaseError(InfrastructureError):
    """Deleting the lock key failed; the lock now lives until its TTL."""

    step = FailureStep.RELEASE


class ContentionError(DedupError):
    """Another request holding the same token is still in flight.

    Attributes:
        message: Human-readable error description.
        token: The contended idempotency token.
    """

    def __init__(self, message: str, token: str) -> None:
        super().__init__(message)
        self.token = token


class FingerprintMismatchError(DedupError):
    """A token was reused for a request that differs from the original.

    Attributes:
        message: Human-readable error description.
        token: The reused idempotency token.
        stored_fingerprint: Fingerprint recorded with the cached response.
        request_fingerprint: Fingerprint of the incoming request.
    """

    def __init__(
        self,
        message: str,
        token: str,
        stored_fingerprint: str,
        request_fingerprint: str,
    ) -> None:
        super().__init__(message)
        self.token = token
        self.stored_fingerprint = stored_fingerprint
        self.request_fingerprint = request_fingerprint


class InvalidTokenError(DedupError):
    """The supplied idempotency token is not acceptable (e.g. too long)."""

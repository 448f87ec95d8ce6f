"""Framework-agnostic deduplication middleware.

This module wires the lock manager and response cache around a downstream
handler and maps every protocol outcome to a definite HTTP response:

- no token / safe method: handler response, untouched
- first execution: handler response, untouched
- replay: cached status and body, ``Idempotency-Retry: true``
- in-flight duplicate: 409 ``Duplicate request``
- token reused for a different request: 422
- store failure: 500 with a diagnostic code naming the failed step
  (``Idempotency-Retry: false`` when a cached entry failed to decode)

Error bodies use the service's JSON envelope
``{"success": false, "message": "..."}``.

Examples:
    Using the middleware directly::

        from dedup_middleware.config import DedupConfig
        from dedup_middleware.core.middleware import DedupMiddleware, Request
        from dedup_middleware.store.memory import MemoryStore

        middleware = DedupMiddleware(MemoryStore(), DedupConfig())

        async def handler(request: Request) -> HandlerResponse:
            return HandlerResponse(201, {"content-type": "application/json"}, body)

        response = await middleware.process(request, handler)
"""

from collections.abc import Awaitable, Callable

from dedup_middleware.config import DedupConfig
from dedup_middleware.core.cache import ResponseCache
from dedup_middleware.core.lock import LockManager
from dedup_middleware.core.replay import HandlerResponse
from dedup_middleware.core.state_machine import process_request
from dedup_middleware.exceptions import (
    ContentionError,
    CorruptCacheEntryError,
    FingerprintMismatchError,
    InfrastructureError,
    InvalidTokenError,
)
from dedup_middleware.fingerprint import compute_fingerprint
from dedup_middleware.models import RequestOutcome, ResponseBody
from dedup_middleware.observability.logging import get_logger
from dedup_middleware.observability.metrics import record_request
from dedup_middleware.store.base import CoordinationStore
from dedup_middleware.utils.headers import extract_token, mark_retry

logger = get_logger(__name__)

DUPLICATE_REQUEST_MESSAGE = "Duplicate request"
MISMATCH_MESSAGE = "Idempotency key reused with a different request"
FAILURE_MESSAGE = "Something went wrong, please try again later. [Code: {code}]"


class Request:
    """Framework-neutral request passed through to the handler.

    Attributes:
        method: HTTP method.
        path: URL path.
        query_string: Query string without the leading '?'.
        headers: Request headers.
        body: Request body bytes.
    """

    def __init__(
        self,
        method: str,
        path: str,
        query_string: str,
        headers: dict[str, str],
        body: bytes,
    ) -> None:
        self.method = method
        self.path = path
        self.query_string = query_string
        self.headers = headers
        self.body = body


def envelope_response(
    status: int,
    message: str,
    headers: dict[str, str] | None = None,
) -> HandlerResponse:
    """Build a failure response in the JSON envelope format."""
    return HandlerResponse(
        status=status,
        headers={"content-type": "application/json", **(headers or {})},
        body=ResponseBody(success=False, message=message).render(),
    )


class DedupMiddleware:
    """Runs tokenized, state-mutating requests at most once.

    Attributes:
        store: Shared coordination store.
        config: Middleware configuration.
        locks: Lock manager bound to ``store``.
        cache: Response cache bound to ``store``.
    """

    SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}

    def __init__(self, store: CoordinationStore, config: DedupConfig) -> None:
        self.store = store
        self.config = config
        self.locks = LockManager(
            store,
            namespace=config.lock_namespace,
            ttl_seconds=config.lock_ttl_seconds,
            atomic=config.atomic_lock_acquire,
        )
        self.cache = ResponseCache(
            store,
            namespace=config.lock_namespace,
            ttl_seconds=config.cache_ttl_seconds,
            cacheable_statuses=config.cacheable_statuses,
        )

    def applies_to(self, method: str) -> bool:
        method = method.upper()
        return method not in self.SAFE_METHODS and method in self.config.enabled_methods

    def check_token(self, token: str) -> None:
        """Raise InvalidTokenError if ``token`` cannot be used as a store key."""
        if len(token) > self.config.max_token_length:
            raise InvalidTokenError(
                f"{self.config.header_name} exceeds {self.config.max_token_length} characters"
            )

    async def process(
        self,
        request: Request,
        handler: Callable[[Request], Awaitable[HandlerResponse]],
    ) -> HandlerResponse:
        """Process a request with deduplication.

        Args:
            request: The incoming request.
            handler: Downstream operation; awaited at most once, and not at
                all for replays, conflicts and early store failures.

        Returns:
            The response to send.

        Raises:
            Exception: Whatever ``handler`` raises (the lock is released first).
        """
        token = extract_token(request.headers, self.config.header_name)
        if token is None or not self.applies_to(request.method):
            response = await handler(request)
            record_request(RequestOutcome.SKIPPED.value, response.status)
            return response

        try:
            self.check_token(token)
        except InvalidTokenError as e:
            logger.info("dedup.token_rejected", length=len(token), error=e.message)
            response = envelope_response(400, e.message)
            record_request(RequestOutcome.REJECTED.value, response.status)
            return response

        fingerprint = None
        if self.config.verify_fingerprint:
            fingerprint = compute_fingerprint(
                method=request.method,
                path=request.path,
                query_string=request.query_string,
                headers=request.headers,
                body=request.body,
                included_headers=list(self.config.fingerprint_headers),
            )

        try:
            result = await process_request(
                locks=self.locks,
                cache=self.cache,
                token=token,
                fingerprint=fingerprint,
                handler=handler,
                request=request,
                config=self.config,
            )
        except ContentionError:
            response = envelope_response(409, DUPLICATE_REQUEST_MESSAGE)
            record_request(RequestOutcome.REJECTED.value, response.status)
            return response
        except FingerprintMismatchError as e:
            logger.warning(
                "dedup.fingerprint_mismatch",
                token=token,
                stored_fingerprint=e.stored_fingerprint,
                request_fingerprint=e.request_fingerprint,
            )
            response = envelope_response(422, MISMATCH_MESSAGE)
            record_request(RequestOutcome.MISMATCHED.value, response.status)
            return response
        except InfrastructureError as e:
            logger.error(
                "dedup.failed",
                token=token,
                step=e.step.name,
                code=e.code,
                error=e.message,
            )
            headers = None
            if isinstance(e, CorruptCacheEntryError):
                headers = mark_retry({}, self.config.retry_header_name, replayed=False)
            response = envelope_response(500, FAILURE_MESSAGE.format(code=e.code), headers)
            record_request(RequestOutcome.FAILED.value, response.status)
            return response

        record_request(result.outcome.value, result.response.status)
        return result.response

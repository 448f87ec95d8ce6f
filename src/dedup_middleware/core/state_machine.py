"""State machine for a request that carries an idempotency token.

Transitions for token ``T``::

    Acquiring --contended--> Rejected (ContentionError)
        |
      owner
        v
    CacheCheck --hit--> Replay
        |
       miss
        v
    Execute --> Publish (cacheable statuses only)
        |
        v
    Release (always, after any cache write)

Any store failure surfaces as an InfrastructureError subclass at the step
where it happened. Release runs from the lock guard's ``finally`` block, so
it covers replays, handler exceptions and publish failures alike, and it
always runs after the cache write.

Examples:
    Processing a request::

        result = await process_request(
            locks=locks,
            cache=cache,
            token="abc",
            fingerprint=fingerprint,
            handler=handler,
            request=request,
            config=config,
        )
        if result.outcome is RequestOutcome.REPLAYED:
            ...
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from dedup_middleware.config import DedupConfig
from dedup_middleware.core.cache import ResponseCache
from dedup_middleware.core.lock import LockManager
from dedup_middleware.core.replay import HandlerResponse, replay_response, snapshot_response
from dedup_middleware.exceptions import (
    CacheEncodeError,
    ContentionError,
    FingerprintMismatchError,
)
from dedup_middleware.models import AcquireResult, CachedResponse, RequestOutcome
from dedup_middleware.observability.logging import get_logger
from dedup_middleware.observability.metrics import record_execution_time, record_store_error

logger = get_logger(__name__)


class StateResult:
    """Result of running a request through the state machine.

    Attributes:
        response: The response to send (handler's own or replayed).
        outcome: EXECUTED or REPLAYED.
        execution_time_ms: Handler run time in milliseconds (None for replays).
        cached: Whether the executed response was written to the cache.
    """

    def __init__(
        self,
        response: HandlerResponse,
        outcome: RequestOutcome,
        execution_time_ms: int | None = None,
        cached: bool = False,
    ) -> None:
        self.response = response
        self.outcome = outcome
        self.execution_time_ms = execution_time_ms
        self.cached = cached


async def process_request(
    locks: LockManager,
    cache: ResponseCache,
    token: str,
    fingerprint: str | None,
    handler: Callable[[Any], Awaitable[HandlerResponse]],
    request: Any,
    config: DedupConfig,
) -> StateResult:
    """Run one tokenized request through lock, cache check, execute, publish.

    Args:
        locks: Lock manager for the token's mutual exclusion.
        cache: Response cache for replays.
        token: The idempotency token (already stripped and non-empty).
        fingerprint: Request fingerprint, or None when not computed.
        handler: Downstream operation, awaited at most once.
        request: Passed to ``handler`` unchanged.
        config: Middleware configuration.

    Returns:
        StateResult for an executed or replayed request.

    Raises:
        ContentionError: Another request with this token holds the lock.
        FingerprintMismatchError: The cached response belongs to a different request.
        InfrastructureError: A store step failed (subclass names the step).
        Exception: Whatever ``handler`` raises, after the lock is released.
    """
    async with locks.guard(token) as acquired:
        if acquired is AcquireResult.CONTENDED:
            logger.info("dedup.lock.contended", token=token)
            raise ContentionError(f"Request with key {token} is already in flight", token)

        cached = await cache.lookup(token)
        if cached is not None:
            return replay_cached(cached, token, fingerprint, config)

        return await execute_and_publish(cache, token, fingerprint, handler, request)


def replay_cached(
    cached: CachedResponse,
    token: str,
    fingerprint: str | None,
    config: DedupConfig,
) -> StateResult:
    """Turn a cache hit into a replay, refusing it for a different request.

    Entries written without a fingerprint are replayed unconditionally.
    """
    if (
        config.verify_fingerprint
        and fingerprint is not None
        and cached.fingerprint is not None
        and cached.fingerprint != fingerprint
    ):
        raise FingerprintMismatchError(
            message=f"Request fingerprint mismatch for key {token}",
            token=token,
            stored_fingerprint=cached.fingerprint,
            request_fingerprint=fingerprint,
        )

    logger.info("dedup.replayed", token=token, status=cached.status)
    return StateResult(
        response=replay_response(cached, config.retry_header_name),
        outcome=RequestOutcome.REPLAYED,
    )


async def execute_and_publish(
    cache: ResponseCache,
    token: str,
    fingerprint: str | None,
    handler: Callable[[Any], Awaitable[HandlerResponse]],
    request: Any,
) -> StateResult:
    """Run the handler and cache its response when the status allows it.

    Must be called with the token's lock held. A failed cache write is raised
    even though the handler's side effect has already happened.
    """
    start = time.perf_counter()
    try:
        response = await handler(request)
    except Exception as e:
        logger.warning(
            "dedup.handler_failed",
            token=token,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    elapsed = time.perf_counter() - start
    record_execution_time(elapsed)
    execution_time_ms = int(elapsed * 1000)

    logger.info(
        "dedup.executed",
        token=token,
        status=response.status,
        execution_time_ms=execution_time_ms,
    )

    if not cache.is_cacheable(response.status):
        return StateResult(
            response=response,
            outcome=RequestOutcome.EXECUTED,
            execution_time_ms=execution_time_ms,
        )

    try:
        snapshot = snapshot_response(response, fingerprint)
    except ValidationError as e:
        record_store_error(CacheEncodeError.step.name)
        raise CacheEncodeError(f"Response for key {token} cannot be cached: {e}", token, e) from e
    await cache.store(token, snapshot)
    logger.debug("dedup.cached", token=token, status=response.status)

    return StateResult(
        response=response,
        outcome=RequestOutcome.EXECUTED,
        execution_time_ms=execution_time_ms,
        cached=True,
    )

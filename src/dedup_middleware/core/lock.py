"""Token-scoped mutual exclusion on top of the coordination store.

A lock is a counter at ``<namespace>-Lock-<token>``. Every acquire attempt
increments it; the attempt that reads back 1 owns the token, every other
attempt is a contender. The key always gets the safety-window TTL right
after the increment, so a crashed owner blocks its token for at most
``ttl_seconds``.

Release deletes the key. The middleware only releases through ``guard()``,
which does it in ``finally`` and only for the owner, so no exit path can
skip it and a contender can never free someone else's lock.

Examples:
    Scoped acquisition::

        locks = LockManager(store, namespace="Idempotency-Key", ttl_seconds=60)

        async with locks.guard("abc") as result:
            if result is AcquireResult.CONTENDED:
                return conflict()
            ...  # lock held here, released on the way out
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dedup_middleware.exceptions import (
    LockAcquireError,
    LockExpiryError,
    LockReleaseError,
    StoreError,
)
from dedup_middleware.models import AcquireResult
from dedup_middleware.observability.logging import get_logger
from dedup_middleware.observability.metrics import record_contention, record_store_error
from dedup_middleware.store.base import CoordinationStore

logger = get_logger(__name__)


class LockManager:
    """Acquires and releases per-token locks.

    Attributes:
        backend: Shared coordination store.
        namespace: Key prefix shared with the response cache.
        ttl_seconds: Safety window applied on every acquire attempt.
        atomic: Send increment and expire as a single transaction.
    """

    def __init__(
        self,
        store: CoordinationStore,
        namespace: str,
        ttl_seconds: int = 60,
        atomic: bool = True,
    ) -> None:
        self.backend = store
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.atomic = atomic

    def lock_key(self, token: str) -> str:
        return f"{self.namespace}-Lock-{token}"

    async def acquire(self, token: str) -> AcquireResult:
        """Increment the token's lock counter and refresh its TTL.

        Args:
            token: The idempotency token.

        Returns:
            OWNER if the counter reads 1 after the increment, else CONTENDED.

        Raises:
            LockAcquireError: If the increment fails.
            LockExpiryError: If the TTL could not be set.
        """
        key = self.lock_key(token)

        if self.atomic:
            try:
                count, expiry_set = await self.backend.incr_with_expiry(key, self.ttl_seconds)
            except StoreError as e:
                record_store_error(LockAcquireError.step.name)
                raise LockAcquireError(f"Failed to acquire lock {key}: {e}", token, e) from e
        else:
            try:
                count = await self.backend.incr(key)
            except StoreError as e:
                record_store_error(LockAcquireError.step.name)
                raise LockAcquireError(f"Failed to acquire lock {key}: {e}", token, e) from e
            # A crash here leaves the counter without a TTL
            try:
                expiry_set = await self.backend.expire(key, self.ttl_seconds)
            except StoreError as e:
                record_store_error(LockExpiryError.step.name)
                await self._discard_untimed(token, key, count)
                raise LockExpiryError(f"Failed to set TTL on lock {key}: {e}", token, e) from e

        if not expiry_set:
            record_store_error(LockExpiryError.step.name)
            await self._discard_untimed(token, key, count)
            raise LockExpiryError(f"Lock {key} vanished before its TTL was set", token)

        logger.debug("dedup.lock.incremented", token=token, count=count)

        if count == 1:
            return AcquireResult.OWNER

        record_contention()
        return AcquireResult.CONTENDED

    async def _discard_untimed(self, token: str, key: str, count: int) -> None:
        """Delete a lock this attempt created but could not give a TTL.

        Only the attempt that created the key (count 1) removes it; a counter
        above 1 belongs to an owner still in flight.
        """
        if count != 1:
            return
        try:
            await self.backend.delete(key)
        except StoreError as e:
            record_store_error(LockReleaseError.step.name)
            logger.error(
                "dedup.lock.discard_failed",
                token=token,
                code=LockReleaseError.step.value,
                error=e.message,
            )

    async def release(self, token: str) -> None:
        """Delete the token's lock. Deleting an absent lock is not an error.

        Raises:
            LockReleaseError: If the store could not delete the key.
        """
        key = self.lock_key(token)
        try:
            await self.backend.delete(key)
        except StoreError as e:
            record_store_error(LockReleaseError.step.name)
            raise LockReleaseError(f"Failed to release lock {key}: {e}", token, e) from e

    @asynccontextmanager
    async def guard(self, token: str) -> AsyncIterator[AcquireResult]:
        """Acquire the lock for the duration of the ``async with`` block.

        Yields the AcquireResult. When it is OWNER the lock is released on
        every exit from the block, including exceptions. A failed release is
        logged and counted; it does not replace the block's own result or
        exception, and the TTL still bounds the lock's lifetime.

        Raises:
            LockAcquireError: If the increment fails (block never entered).
            LockExpiryError: If the TTL could not be set (block never entered).
        """
        result = await self.acquire(token)
        try:
            yield result
        finally:
            if result is AcquireResult.OWNER:
                try:
                    await self.release(token)
                except LockReleaseError as e:
                    logger.error(
                        "dedup.lock.release_failed",
                        token=token,
                        code=e.code,
                        error=e.message,
                        ttl_seconds=self.ttl_seconds,
                    )

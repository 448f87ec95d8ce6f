"""Coordination store protocol for the deduplication middleware.

The lock manager and response cache talk to a shared key/value store through
this interface. It mirrors the handful of primitives the protocol needs from
Redis: an atomic counter, key expiry, get, set-with-TTL and delete. No
multi-key transactions are assumed; the only compound operation,
``incr_with_expiry``, touches a single key.

Examples:
    Implementing a custom store::

        from dedup_middleware.exceptions import StoreError

        class MyStore:
            async def incr(self, key: str) -> int:
                try:
                    return await self.backend.incr(key)
                except BackendError as e:
                    raise StoreError(f"INCR {key} failed: {e}", cause=e) from e
            ...

Requirements for implementations:
    1. **Single-key atomicity**: ``incr`` must be atomic across every process
       sharing the store. Exactly one caller observes 1 per key lifetime.

    2. **TTL semantics**: expired keys behave as absent for every operation,
       including ``incr`` (which then starts again from 1).

    3. **Error wrapping**: backend failures surface as ``StoreError``; a
       missing key is never an error.

    4. **Concurrency**: all methods are safe to call concurrently from many
       tasks, threads and processes.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CoordinationStore(Protocol):
    """Protocol defining the shared store used for locks and cached responses.

    Values are strings. Counters created by ``incr`` read back through ``get``
    as their decimal string form, as they do in Redis.
    """

    async def incr(self, key: str) -> int:
        """Atomically increment the integer at ``key`` and return the new value.

        A missing or expired key counts as 0, so the first caller gets 1.

        Raises:
            StoreError: If the backend fails or the value is not an integer.
        """
        ...

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a key's time-to-live.

        Returns:
            True if the TTL was set, False if the key does not exist.

        Raises:
            StoreError: If the backend fails.
        """
        ...

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> tuple[int, bool]:
        """Increment ``key`` and set its TTL as one atomic unit.

        Returns:
            The post-increment value and whether the TTL was applied.

        Raises:
            StoreError: If the backend fails.
        """
        ...

    async def get(self, key: str) -> str | None:
        """Return the value at ``key``, or None if it is absent or expired.

        Raises:
            StoreError: If the backend fails.
        """
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` at ``key`` with the given TTL, replacing any value.

        Raises:
            StoreError: If the backend fails.
        """
        ...

    async def delete(self, key: str) -> int:
        """Delete ``key``.

        Returns:
            The number of keys removed (0 when the key was already gone).

        Raises:
            StoreError: If the backend fails.
        """
        ...

    async def close(self) -> None:
        """Release any connections held by the store."""
        ...

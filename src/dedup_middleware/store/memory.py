"""In-process coordination store with TTL support.

This module provides a thread-safe, single-process implementation of the
CoordinationStore protocol. It is suitable for:

    - Development and tests
    - Single-process deployments where every request shares one store

Multi-instance deployments need a shared backend; use RedisStore there.

Thread Safety:
    - One threading.Lock guards the key table
    - No method awaits while holding the lock, so operations are atomic
      across threads and across event loops

Expiry:
    - Keys carry an absolute deadline from an injectable monotonic clock
    - Expired keys are dropped lazily when touched
    - purge_expired() sweeps keys nobody touches (see core.sweeper)

Examples:
    Driving TTL expiry from a test::

        now = [0.0]
        store = MemoryStore(clock=lambda: now[0])

        await store.incr_with_expiry("k", 60)
        now[0] += 61
        assert await store.get("k") is None
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from dedup_middleware.exceptions import StoreError
from dedup_middleware.store.base import CoordinationStore


@dataclass
class _Entry:
    value: str
    expires_at: float | None = None


class MemoryStore(CoordinationStore):
    """In-memory store with per-key TTLs.

    Attributes:
        _entries: Mapping of keys to values and their deadlines.
        _lock: Lock protecting _entries.
        _clock: Monotonic time source in seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> _Entry | None:
        # Caller holds self._lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _incr_locked(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            self._entries[key] = _Entry(value="1")
            return 1
        try:
            value = int(entry.value) + 1
        except ValueError as e:
            raise StoreError(f"Value at {key} is not an integer", cause=e) from e
        entry.value = str(value)
        return value

    def _expire_locked(self, key: str, ttl_seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        entry.expires_at = self._clock() + ttl_seconds
        return True

    async def incr(self, key: str) -> int:
        with self._lock:
            return self._incr_locked(key)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            return self._expire_locked(key, ttl_seconds)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> tuple[int, bool]:
        with self._lock:
            value = self._incr_locked(key)
            return value, self._expire_locked(key, ttl_seconds)

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    async def delete(self, key: str) -> int:
        with self._lock:
            return 1 if self._entries.pop(key, None) is not None else 0

    async def ttl(self, key: str) -> float | None:
        """Return seconds until ``key`` expires, or None if absent or persistent."""
        with self._lock:
            entry = self._live(key)
            if entry is None or entry.expires_at is None:
                return None
            return entry.expires_at - self._clock()

    async def purge_expired(self) -> int:
        """Remove every expired key.

        Returns:
            The number of keys removed.
        """
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.expires_at is not None and entry.expires_at <= now
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    async def close(self) -> None:
        """Nothing to release; entries stay readable."""

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

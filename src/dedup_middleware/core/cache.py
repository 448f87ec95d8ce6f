"""Cached response storage keyed by idempotency token.

A completed response lives at ``<namespace>-<token>`` as the JSON form of a
CachedResponse, with a retention TTL long enough to cover client retries.
Only statuses in the cacheable set are ever written: a failed request is
expected to be retried with the same token and must run again.

Lookup keeps three results apart: a miss (``None``), a hit, and a present
value that does not decode (``CorruptCacheEntryError``). A corrupt entry is
never treated as a miss, since re-running would repeat the side effect.
"""

from collections.abc import Iterable

from pydantic import ValidationError

from dedup_middleware.exceptions import (
    CacheEncodeError,
    CacheLookupError,
    CacheStoreError,
    CorruptCacheEntryError,
    StoreError,
)
from dedup_middleware.models import CachedResponse
from dedup_middleware.observability.metrics import record_store_error
from dedup_middleware.store.base import CoordinationStore


class ResponseCache:
    """Reads and writes CachedResponse snapshots.

    Attributes:
        backend: Shared coordination store.
        namespace: Key prefix shared with the lock manager.
        ttl_seconds: Retention of cached responses.
        cacheable_statuses: Status codes that may be stored.
    """

    def __init__(
        self,
        store: CoordinationStore,
        namespace: str,
        ttl_seconds: int = 86400,
        cacheable_statuses: Iterable[int] = (200, 201),
    ) -> None:
        self.backend = store
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.cacheable_statuses = frozenset(cacheable_statuses)

    def cache_key(self, token: str) -> str:
        return f"{self.namespace}-{token}"

    def is_cacheable(self, status: int) -> bool:
        return status in self.cacheable_statuses

    async def lookup(self, token: str) -> CachedResponse | None:
        """Fetch the cached response for ``token``.

        Returns:
            The cached response, or None on a miss.

        Raises:
            CacheLookupError: If the store read fails.
            CorruptCacheEntryError: If a value exists but cannot be decoded.
        """
        key = self.cache_key(token)
        try:
            raw = await self.backend.get(key)
        except StoreError as e:
            record_store_error(CacheLookupError.step.name)
            raise CacheLookupError(f"Failed to read cache entry {key}: {e}", token, e) from e

        if raw is None:
            return None

        try:
            return CachedResponse.model_validate_json(raw)
        except ValidationError as e:
            record_store_error(CorruptCacheEntryError.step.name)
            raise CorruptCacheEntryError(
                f"Cache entry {key} could not be decoded: {e.error_count()} error(s)",
                token,
                e,
            ) from e

    async def store(self, token: str, cached: CachedResponse) -> None:
        """Write ``cached`` under ``token`` with the retention TTL.

        Raises:
            CacheEncodeError: If the snapshot cannot be serialized.
            CacheStoreError: If the store write fails.
        """
        key = self.cache_key(token)
        try:
            payload = cached.model_dump_json()
        except (ValueError, TypeError) as e:
            record_store_error(CacheEncodeError.step.name)
            raise CacheEncodeError(f"Failed to encode cache entry {key}: {e}", token, e) from e

        try:
            await self.backend.set(key, payload, self.ttl_seconds)
        except StoreError as e:
            record_store_error(CacheStoreError.step.name)
            raise CacheStoreError(f"Failed to write cache entry {key}: {e}", token, e) from e

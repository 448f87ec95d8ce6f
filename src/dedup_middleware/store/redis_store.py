"""Redis-backed coordination store.

This is the production backend: every service instance points at the same
Redis, whose single-threaded command execution gives the atomic increment
the lock protocol relies on. ``incr_with_expiry`` wraps INCR and EXPIRE in a
MULTI/EXEC transaction so a crash cannot leave a counter without a TTL.

Examples:
    Connecting from a URL::

        from dedup_middleware.store.redis_store import RedisStore

        store = RedisStore.from_url("redis://localhost:6379/0")
        value, applied = await store.incr_with_expiry("Idempotency-Key-Lock-abc", 60)
        await store.close()

    Reusing an existing client::

        from redis.asyncio import Redis

        store = RedisStore(Redis(host="cache", decode_responses=True))
"""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from dedup_middleware.exceptions import StoreError
from dedup_middleware.store.base import CoordinationStore


class RedisStore(CoordinationStore):
    """CoordinationStore implementation on top of ``redis.asyncio``.

    All Redis exceptions are wrapped in StoreError.

    Attributes:
        _client: The async Redis client. Connection pooling is the client's.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        """Build a store with a client connected to ``url``."""
        return cls(Redis.from_url(url, decode_responses=True))

    async def incr(self, key: str) -> int:
        try:
            return int(await self._client.incr(key))
        except RedisError as e:
            raise StoreError(f"INCR {key} failed: {e}", cause=e) from e

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        try:
            return bool(await self._client.expire(key, ttl_seconds))
        except RedisError as e:
            raise StoreError(f"EXPIRE {key} failed: {e}", cause=e) from e

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> tuple[int, bool]:
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                value, applied = await pipe.incr(key).expire(key, ttl_seconds).execute()
        except RedisError as e:
            raise StoreError(f"INCR+EXPIRE {key} failed: {e}", cause=e) from e
        return int(value), bool(applied)

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise StoreError(f"GET {key} failed: {e}", cause=e) from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            raise StoreError(f"SET {key} failed: {e}", cause=e) from e

    async def delete(self, key: str) -> int:
        try:
            return int(await self._client.delete(key))
        except RedisError as e:
            raise StoreError(f"DEL {key} failed: {e}", cause=e) from e

    async def close(self) -> None:
        await self._client.aclose()

"""
Pytest configuration and shared fixtures for dedup_middleware tests.
"""

import json
from collections.abc import Callable

import pytest

from dedup_middleware.config import DedupConfig
from dedup_middleware.exceptions import StoreError
from dedup_middleware.store.memory import MemoryStore


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FaultyStore:
    """Wraps a MemoryStore and fails chosen operations on demand.

    Attributes:
        inner: The wrapped store, inspectable after a failure.
        fail_on: Method names that raise StoreError when called.
        expire_result: When not None, forced return value of expire().
        calls: Method names in call order.
    """

    def __init__(self, inner: MemoryStore) -> None:
        self.inner = inner
        self.fail_on: set[str] = set()
        self.expire_result: bool | None = None
        self.calls: list[str] = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise StoreError(f"simulated {name} failure")

    async def incr(self, key: str) -> int:
        self._check("incr")
        return await self.inner.incr(key)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        self._check("expire")
        applied = await self.inner.expire(key, ttl_seconds)
        return applied if self.expire_result is None else self.expire_result

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> tuple[int, bool]:
        self._check("incr_with_expiry")
        value, applied = await self.inner.incr_with_expiry(key, ttl_seconds)
        return value, applied if self.expire_result is None else self.expire_result

    async def get(self, key: str) -> str | None:
        self._check("get")
        return await self.inner.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check("set")
        await self.inner.set(key, value, ttl_seconds)

    async def delete(self, key: str) -> int:
        self._check("delete")
        return await self.inner.delete(key)

    async def close(self) -> None:
        await self.inner.close()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryStore:
    """Provide a fresh in-memory store driven by the fake clock."""
    return MemoryStore(clock=clock)


@pytest.fixture
def faulty_store(store: MemoryStore) -> FaultyStore:
    """Provide a store whose operations can be made to fail."""
    return FaultyStore(store)


@pytest.fixture
def config() -> DedupConfig:
    """Provide the default configuration."""
    return DedupConfig()


@pytest.fixture
def sample_token() -> str:
    """Provide a sample idempotency token."""
    return "test-key-12345"


@pytest.fixture
def envelope_body() -> Callable[..., bytes]:
    """Build envelope bodies the way a FastAPI handler renders them."""

    def build(success: bool = True, message: str = "success", **data: object) -> bytes:
        payload: dict[str, object] = {"success": success, "message": message}
        if data:
            payload["data"] = data
        return json.dumps(payload, separators=(",", ":")).encode()

    return build

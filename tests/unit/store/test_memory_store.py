"""Unit tests for MemoryStore.

Covers the CoordinationStore contract (atomic counter, TTLs, get/set/delete),
lazy and swept expiry, and thread safety of the counter.
"""

import asyncio
import threading

import pytest

from dedup_middleware.exceptions import StoreError
from dedup_middleware.store.base import CoordinationStore
from dedup_middleware.store.memory import MemoryStore


def test_implements_protocol(store: MemoryStore) -> None:
    assert isinstance(store, CoordinationStore)


class TestCounter:
    @pytest.mark.asyncio
    async def test_incr_starts_at_one(self, store: MemoryStore) -> None:
        assert await store.incr("k") == 1
        assert await store.incr("k") == 2
        assert await store.get("k") == "2"

    @pytest.mark.asyncio
    async def test_incr_non_integer_raises(self, store: MemoryStore) -> None:
        await store.set("k", "not-a-number", 60)
        with pytest.raises(StoreError):
            await store.incr("k")

    @pytest.mark.asyncio
    async def test_incr_restarts_after_expiry(self, store: MemoryStore, clock) -> None:
        await store.incr_with_expiry("k", 60)
        await store.incr("k")
        clock.advance(60)
        assert await store.incr("k") == 1

    @pytest.mark.asyncio
    async def test_incr_keeps_existing_ttl(self, store: MemoryStore, clock) -> None:
        await store.incr_with_expiry("k", 60)
        clock.advance(30)
        await store.incr("k")
        assert await store.ttl("k") == pytest.approx(30)

    def test_concurrent_incr_from_threads(self, store: MemoryStore) -> None:
        results: list[int] = []
        results_lock = threading.Lock()

        def worker() -> None:
            value = asyncio.run(store.incr("shared"))
            with results_lock:
                results.append(value)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == list(range(1, 51))


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expire_missing_key(self, store: MemoryStore) -> None:
        assert await store.expire("missing", 60) is False

    @pytest.mark.asyncio
    async def test_expire_sets_ttl(self, store: MemoryStore, clock) -> None:
        await store.incr("k")
        assert await store.ttl("k") is None
        assert await store.expire("k", 10) is True
        clock.advance(9.9)
        assert await store.get("k") == "1"
        clock.advance(0.1)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_incr_with_expiry(self, store: MemoryStore) -> None:
        assert await store.incr_with_expiry("k", 60) == (1, True)
        assert await store.incr_with_expiry("k", 60) == (2, True)
        assert await store.ttl("k") == pytest.approx(60)

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, store: MemoryStore, clock) -> None:
        await store.set("k", "v", 5)
        assert await store.get("k") == "v"
        clock.advance(5)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_set_overwrites(self, store: MemoryStore) -> None:
        await store.set("k", "one", 60)
        await store.set("k", "two", 60)
        assert await store.get("k") == "two"

    @pytest.mark.asyncio
    async def test_purge_expired(self, store: MemoryStore, clock) -> None:
        await store.set("short", "v", 1)
        await store.set("long", "v", 100)
        await store.incr("forever")
        clock.advance(2)

        assert await store.purge_expired() == 1
        assert len(store) == 2
        assert await store.purge_expired() == 0


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_existing(self, store: MemoryStore) -> None:
        await store.set("k", "v", 60)
        assert await store.delete("k") == 1
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_an_error(self, store: MemoryStore) -> None:
        assert await store.delete("missing") == 0

    @pytest.mark.asyncio
    async def test_close_keeps_entries(self, store: MemoryStore) -> None:
        await store.set("k", "v", 60)
        await store.close()
        assert await store.get("k") == "v"

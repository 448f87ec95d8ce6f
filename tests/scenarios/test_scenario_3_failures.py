"""Scenario 3: Failures leave the token retryable.

- Only fully completed responses (200, 201) are cached; anything else runs
  again on retry
- A handler exception releases the lock and the retry executes
- Store failures answer 500 with a code naming the failed step
- No path leaves the lock key behind
"""

import pytest
from fastapi.testclient import TestClient

from dedup_middleware.config import DedupConfig
from dedup_middleware.store.memory import MemoryStore

LOCK_KEY = "Idempotency-Key-Lock-abc"
CACHE_KEY = "Idempotency-Key-abc"
HEADERS = {"Idempotency-Key": "abc"}


def failure_body(code: str) -> dict:
    return {
        "success": False,
        "message": f"Something went wrong, please try again later. [Code: {code}]",
    }


@pytest.fixture
def client(app_factory, faulty_store) -> TestClient:
    return TestClient(app_factory(faulty_store), raise_server_exceptions=False)


class TestUncacheableResponses:
    @pytest.mark.parametrize("code", [202, 400, 422, 500, 503])
    @pytest.mark.asyncio
    async def test_reexecuted_on_retry(
        self, client: TestClient, store: MemoryStore, code: int
    ) -> None:
        first = client.post(f"/status/{code}", headers=HEADERS)
        second = client.post(f"/status/{code}", headers=HEADERS)

        assert first.status_code == second.status_code == code
        assert "idempotency-retry" not in second.headers
        assert client.app.state.counter.count == 2
        assert await store.get(CACHE_KEY) is None
        assert await store.get(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_failure_then_success_is_cached(self, client: TestClient) -> None:
        client.post("/status/503", headers=HEADERS)
        created = client.post("/status/201", headers=HEADERS)
        replayed = client.post("/status/201", headers=HEADERS)

        assert created.status_code == 201
        assert replayed.headers["Idempotency-Retry"] == "true"
        assert client.app.state.counter.count == 2


class TestHandlerException:
    @pytest.mark.asyncio
    async def test_lock_released_and_retry_executes(
        self, client: TestClient, store: MemoryStore
    ) -> None:
        first = client.post("/explode", headers=HEADERS)

        assert first.status_code == 500
        assert await store.get(LOCK_KEY) is None
        assert await store.get(CACHE_KEY) is None

        second = client.post("/explode", headers=HEADERS)
        assert second.status_code == 500
        assert client.app.state.counter.count == 2


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_store_unreachable(self, client: TestClient, faulty_store) -> None:
        faulty_store.fail_on = {"incr_with_expiry"}

        response = client.post("/user", headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == failure_body("0x00057")
        assert client.app.state.counter.count == 0

    @pytest.mark.asyncio
    async def test_expiry_failure(self, app_factory, faulty_store, store: MemoryStore) -> None:
        client = TestClient(app_factory(faulty_store, DedupConfig(atomic_lock_acquire=False)))
        faulty_store.fail_on = {"expire"}

        response = client.post("/user", headers=HEADERS)

        assert response.json() == failure_body("0x00075")
        assert client.app.state.counter.count == 0
        assert await store.get(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_lookup_failure(
        self, client: TestClient, faulty_store, store: MemoryStore
    ) -> None:
        faulty_store.fail_on = {"get"}

        response = client.post("/user", headers=HEADERS)

        assert response.json() == failure_body("0x00095")
        assert client.app.state.counter.count == 0
        assert await store.get(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_corrupt_entry(self, client: TestClient, store: MemoryStore) -> None:
        await store.set(CACHE_KEY, "{not a response", 3600)

        response = client.post("/user", headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == failure_body("0x00106")
        assert response.headers["Idempotency-Retry"] == "false"
        assert client.app.state.counter.count == 0
        assert await store.get(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_cache_write_failure(
        self, client: TestClient, faulty_store, store: MemoryStore
    ) -> None:
        faulty_store.fail_on = {"set"}

        response = client.post("/user", headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == failure_body("0x00132")
        assert client.app.state.counter.count == 1
        assert await store.get(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_release_failure_keeps_response(
        self, client: TestClient, faulty_store, store: MemoryStore
    ) -> None:
        faulty_store.fail_on = {"delete"}

        response = client.post("/user", headers=HEADERS)

        assert response.status_code == 201
        # The lock survives until its TTL runs out
        assert await store.get(LOCK_KEY) == "1"

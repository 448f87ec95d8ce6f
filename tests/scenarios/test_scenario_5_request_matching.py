"""Scenario 5: A token only replays for the request that created it.

- Reusing a token with a different body gets 422 and never executes
- Cosmetic differences (query order, trailing slash) still replay
- With verification disabled the stored response is replayed regardless
- Only configured methods are deduplicated
"""

import pytest
from fastapi.testclient import TestClient

from dedup_middleware.config import DedupConfig
from dedup_middleware.store.memory import MemoryStore

HEADERS = {"Idempotency-Key": "abc"}


@pytest.fixture
def client(app_factory, store: MemoryStore) -> TestClient:
    return TestClient(app_factory(store))


def test_different_body_rejected(client: TestClient) -> None:
    client.post("/user", headers=HEADERS, json={"name": "alice"})

    response = client.post("/user", headers=HEADERS, json={"name": "bob"})

    assert response.status_code == 422
    assert response.json() == {
        "success": False,
        "message": "Idempotency key reused with a different request",
    }
    assert client.app.state.counter.count == 1


def test_same_body_replays(client: TestClient) -> None:
    client.post("/user", headers=HEADERS, json={"name": "alice"})
    response = client.post("/user", headers=HEADERS, json={"name": "alice"})
    assert response.headers["Idempotency-Retry"] == "true"


def test_query_order_and_trailing_slash_ignored(client: TestClient) -> None:
    client.post("/user?a=1&b=2", headers=HEADERS)

    response = client.post("/user?b=2&a=1", headers=HEADERS)

    assert response.status_code == 201
    assert response.headers["Idempotency-Retry"] == "true"


def test_different_path_rejected(client: TestClient) -> None:
    client.post("/user", headers=HEADERS)
    response = client.post("/report", headers=HEADERS)
    assert response.status_code == 422


def test_verification_disabled_replays(app_factory, store: MemoryStore) -> None:
    client = TestClient(app_factory(store, DedupConfig(verify_fingerprint=False)))
    client.post("/user", headers=HEADERS, json={"name": "alice"})

    response = client.post("/user", headers=HEADERS, json={"name": "bob"})

    assert response.status_code == 201
    assert response.headers["Idempotency-Retry"] == "true"
    assert client.app.state.counter.count == 1


def test_method_not_enabled_passes_through(app_factory, store: MemoryStore) -> None:
    client = TestClient(app_factory(store, DedupConfig(enabled_methods=["PUT"])))

    client.post("/user", headers=HEADERS)
    client.post("/user", headers=HEADERS)

    assert client.app.state.counter.count == 2
    assert len(store) == 0


def test_custom_header_names(app_factory, store: MemoryStore) -> None:
    config = DedupConfig(header_name="X-Request-Token", retry_header_name="X-Replayed")
    client = TestClient(app_factory(store, config))

    client.post("/user", headers={"X-Request-Token": "t1"})
    response = client.post("/user", headers={"X-Request-Token": "t1"})

    assert response.headers["X-Replayed"] == "true"
    assert "idempotency-retry" not in response.headers
    assert client.app.state.counter.count == 1


def test_oversized_token_rejected(client: TestClient) -> None:
    response = client.post("/user", headers={"Idempotency-Key": "x" * 256})

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert client.app.state.counter.count == 0

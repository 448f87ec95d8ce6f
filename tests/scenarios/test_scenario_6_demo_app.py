"""Scenario 6: The demo service.

Reproduces the walkthrough from the demo's docstring: two simultaneous
POST /user calls with key "abc" yield one 201 and one 409, a later retry
replays the 201, and GET / shows a single user was created.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from dedup_middleware.config import DedupConfig
from demo_app import create_app


@pytest.fixture
def client():
    app = create_app(DedupConfig(), processing_seconds=0.5)
    with TestClient(app) as test_client:
        yield test_client


def test_current_user_starts_at_zero(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Success",
        "data": {"current_user_id": 0},
    }


@pytest.mark.asyncio
async def test_duplicate_submission_walkthrough(client: TestClient) -> None:
    def create_user():
        return client.post("/user", headers={"Idempotency-Key": "abc"})

    racing = await asyncio.gather(
        asyncio.to_thread(create_user),
        asyncio.to_thread(create_user),
    )

    assert sorted(r.status_code for r in racing) == [201, 409]
    created = next(r for r in racing if r.status_code == 201)
    assert created.json() == {"success": True, "message": "success", "data": {"user_id": 1}}

    retry = create_user()
    assert retry.status_code == 201
    assert retry.content == created.content
    assert retry.headers["Idempotency-Retry"] == "true"

    assert client.get("/").json()["data"]["current_user_id"] == 1


def test_requests_without_key_each_create_a_user(client: TestClient) -> None:
    client.post("/user")
    client.post("/user")
    assert client.get("/").json()["data"]["current_user_id"] == 2


def test_apps_do_not_share_state() -> None:
    first = create_app(DedupConfig(), processing_seconds=0)
    second = create_app(DedupConfig(), processing_seconds=0)

    TestClient(first).post("/user", headers={"Idempotency-Key": "abc"})
    response = TestClient(second).post("/user", headers={"Idempotency-Key": "abc"})

    assert "idempotency-retry" not in response.headers
    assert response.json()["data"]["user_id"] == 1

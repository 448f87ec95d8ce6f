"""Shared application factory for scenario tests."""

import threading
import time

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from dedup_middleware.adapters.asgi import ASGIDedupMiddleware
from dedup_middleware.config import DedupConfig
from dedup_middleware.store.base import CoordinationStore


class ExecutionCounter:
    """Counts handler executions across TestClient threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.count = 0

    def increment(self) -> int:
        with self._lock:
            self.count += 1
            return self.count


def build_app(
    store: CoordinationStore,
    config: DedupConfig | None = None,
    processing_seconds: float = 0.0,
) -> FastAPI:
    """Build a small service with one side-effecting endpoint per behaviour.

    ``app.state.counter`` counts executions of every POST endpoint.
    """
    app = FastAPI()
    app.add_middleware(ASGIDedupMiddleware, store=store, config=config or DedupConfig())
    counter = ExecutionCounter()
    app.state.counter = counter

    @app.post("/user")
    def create_user() -> JSONResponse:
        time.sleep(processing_seconds)
        user_id = counter.increment()
        return JSONResponse(
            status_code=201,
            content={"success": True, "message": "success", "data": {"user_id": user_id}},
        )

    @app.post("/report")
    def create_report() -> PlainTextResponse:
        run = counter.increment()
        return PlainTextResponse(f"report #{run}\n")

    @app.post("/status/{code}")
    def respond_with(code: int) -> JSONResponse:
        counter.increment()
        return JSONResponse(status_code=code, content={"success": code < 400, "message": str(code)})

    @app.post("/explode")
    def explode() -> JSONResponse:
        counter.increment()
        raise RuntimeError("handler failed")

    @app.get("/session")
    def read_session() -> JSONResponse:
        response = JSONResponse(content={"success": True, "message": "Success"})
        response.set_cookie("theme", "dark")
        response.set_cookie("locale", "en")
        return response

    @app.post("/session")
    def create_session() -> JSONResponse:
        run = counter.increment()
        response = JSONResponse(
            status_code=201,
            content={"success": True, "message": "success", "data": {"session": run}},
        )
        response.set_cookie("session", str(run))
        response.set_cookie("csrf", f"token-{run}")
        return response

    @app.get("/user")
    def read_user() -> JSONResponse:
        return JSONResponse(content={"success": True, "message": "Success"})

    return app


@pytest.fixture
def app_factory():
    """Provide build_app to scenario tests."""
    return build_app

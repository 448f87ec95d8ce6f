"""Demo FastAPI application with the deduplication middleware.

POST /user pretends to create a user: it sleeps, then hands out the next id.
Send it twice with the same Idempotency-Key and the second call replays the
first response instead of creating another user; send it twice at once and
one of them gets 409 Duplicate request.

Run with: python demo_app.py
Then try:
    curl -i -X POST localhost:3000/user -H "Idempotency-Key: abc"
    curl -i localhost:3000/

Set DEDUP_STORE_BACKEND=redis and DEDUP_REDIS_URL=redis://host:6379/0 to share
state between several instances. DEDUP_REDIS_ADDRESS, DEDUP_REDIS_USERNAME,
DEDUP_REDIS_PASSWORD and DEDUP_REDIS_DB may be given instead of the URL.
"""

import threading
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dedup_middleware.adapters.asgi import ASGIDedupMiddleware
from dedup_middleware.config import DedupConfig
from dedup_middleware.core.sweeper import start_sweeper, stop_sweeper
from dedup_middleware.observability.logging import configure_logging
from dedup_middleware.store import MemoryStore, create_store


class UserCounter:
    """Process-local id sequence used as the demo's side effect."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Envelope(BaseModel):
    success: bool
    message: str
    data: Optional[dict[str, Any]] = None


def create_app(config: DedupConfig | None = None, processing_seconds: float = 3.0) -> FastAPI:
    """Build the demo app with its own store and counter."""
    config = config or DedupConfig.from_env()
    store = create_store(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = await start_sweeper(store) if isinstance(store, MemoryStore) else None
        yield
        if sweeper is not None:
            await stop_sweeper(sweeper)
        await store.close()

    app = FastAPI(
        title="Deduplication Middleware Demo",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.counter = UserCounter()
    app.add_middleware(ASGIDedupMiddleware, store=store, config=config)

    @app.get("/")
    async def current_user(request: Request) -> JSONResponse:
        """Show the latest user id (safe method, never deduplicated)."""
        body = Envelope(
            success=True,
            message="Success",
            data={"current_user_id": request.app.state.counter.value},
        )
        return JSONResponse(status_code=200, content=body.model_dump(exclude_none=True))

    @app.post("/user")
    def create_user(request: Request) -> JSONResponse:
        """Create a user (slow on purpose, to make duplicates easy to trigger)."""
        time.sleep(processing_seconds)
        user_id = request.app.state.counter.increment()
        body = Envelope(success=True, message="success", data={"user_id": user_id})
        return JSONResponse(status_code=201, content=body.model_dump(exclude_none=True))

    return app


if __name__ == "__main__":
    configure_logging(level="INFO", json_output=False)
    uvicorn.run(create_app(), host="0.0.0.0", port=3000, log_level="info")

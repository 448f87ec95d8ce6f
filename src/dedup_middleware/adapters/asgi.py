"""ASGI middleware adapter for Starlette and FastAPI applications.

The adapter:
1. Converts the Starlette request to the internal Request format
2. Runs it through DedupMiddleware, with the rest of the app as the handler
3. Converts the resulting HandlerResponse back into a Starlette Response

Examples:
    FastAPI integration::

        from fastapi import FastAPI
        from dedup_middleware.adapters.asgi import ASGIDedupMiddleware
        from dedup_middleware.config import DedupConfig
        from dedup_middleware.store import create_store

        config = DedupConfig.from_env()
        app = FastAPI()
        app.add_middleware(ASGIDedupMiddleware, store=create_store(config), config=config)

    Starlette integration::

        from starlette.applications import Starlette
        from starlette.middleware import Middleware

        app = Starlette(middleware=[Middleware(ASGIDedupMiddleware, store=store)])
"""

from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response

from dedup_middleware.config import DedupConfig
from dedup_middleware.core.middleware import DedupMiddleware, Request
from dedup_middleware.core.replay import HandlerResponse
from dedup_middleware.store.base import CoordinationStore


class ASGIDedupMiddleware(BaseHTTPMiddleware):
    """Starlette middleware running requests through DedupMiddleware.

    Attributes:
        store: Shared coordination store.
        config: Middleware configuration.
        middleware: Core middleware instance.
    """

    def __init__(
        self,
        app: Any,
        store: CoordinationStore,
        config: DedupConfig | None = None,
    ) -> None:
        super().__init__(app)
        self.store = store
        self.config = config or DedupConfig()
        self.middleware = DedupMiddleware(store, self.config)

    async def dispatch(
        self,
        request: StarletteRequest,
        call_next: Callable[[StarletteRequest], Awaitable[Response]],
    ) -> Response:
        internal_request = await self._convert_request(request)

        async def handler(_req: Request) -> HandlerResponse:
            response = await call_next(request)

            body = b""
            if hasattr(response, "body_iterator"):
                async for chunk in response.body_iterator:
                    body += chunk if isinstance(chunk, bytes) else bytes(chunk, "utf-8")
            else:
                body = bytes(getattr(response, "body", b""))

            return HandlerResponse(
                status=response.status_code,
                headers=dict(response.headers),
                body=body,
                raw_headers=list(response.raw_headers),
            )

        result = await self.middleware.process(internal_request, handler)
        return self._convert_response(result)

    async def _convert_request(self, request: StarletteRequest) -> Request:
        return Request(
            method=request.method,
            path=request.url.path,
            query_string=request.url.query or "",
            headers=dict(request.headers.items()),
            body=await request.body(),
        )

    def _convert_response(self, response: HandlerResponse) -> Response:
        if response.raw_headers is None:
            return Response(
                content=response.body,
                status_code=response.status,
                headers=response.headers,
            )

        # Handler output goes back with its original header list, so repeated
        # headers such as Set-Cookie survive
        converted = Response(content=response.body, status_code=response.status)
        converted.raw_headers = list(response.raw_headers)
        return converted

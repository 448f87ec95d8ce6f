"""Framework adapters for the deduplication middleware.

- asgi.py: Starlette/FastAPI middleware
"""

from dedup_middleware.adapters.asgi import ASGIDedupMiddleware

__all__ = ["ASGIDedupMiddleware"]

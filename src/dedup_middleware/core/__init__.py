"""Core deduplication protocol.

- Lock manager: per-token mutual exclusion via the store's atomic counter
- Response cache: cached snapshots and the cacheability policy
- State machine: acquire, cache check, execute, publish, release
- Middleware: framework-agnostic outcome-to-response mapping
- Sweeper: expiry sweeps for the in-process store
"""

from dedup_middleware.core.cache import ResponseCache
from dedup_middleware.core.lock import LockManager
from dedup_middleware.core.middleware import DedupMiddleware, Request
from dedup_middleware.core.replay import HandlerResponse

__all__ = [
    "DedupMiddleware",
    "HandlerResponse",
    "LockManager",
    "Request",
    "ResponseCache",
]

"""Coordination stores for the deduplication middleware.

All stores implement the CoordinationStore protocol defined in base.py.

Available Stores:
    - MemoryStore: In-process store with TTLs, for development and tests
    - RedisStore: Shared Redis store for multi-instance deployments
"""

from dedup_middleware.config import DedupConfig
from dedup_middleware.store.base import CoordinationStore
from dedup_middleware.store.memory import MemoryStore
from dedup_middleware.store.redis_store import RedisStore


def create_store(config: DedupConfig) -> CoordinationStore:
    """Build the store selected by ``config.store_backend``."""
    if config.store_backend == "redis":
        return RedisStore.from_url(config.redis_url)
    return MemoryStore()


__all__ = [
    "CoordinationStore",
    "MemoryStore",
    "RedisStore",
    "create_store",
]

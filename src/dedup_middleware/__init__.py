"""
Request deduplication middleware for Python web applications.

Requests carrying an ``Idempotency-Key`` header run at most once per key;
retries receive the original response. Coordination goes through a shared
key/value store (Redis, or an in-process store for development).
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

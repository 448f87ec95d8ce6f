"""Background sweeper for the in-process store.

MemoryStore only drops an expired key when something touches it, so cache
entries for tokens that are never retried would pile up. The sweeper calls
``MemoryStore.purge_expired()`` on an interval. Redis expires keys itself and
needs no sweeper.

Examples:
    Run alongside an application::

        task = await start_sweeper(store, interval_seconds=300)
        ...
        await stop_sweeper(task)
"""

import asyncio

from dedup_middleware.observability.logging import get_logger
from dedup_middleware.observability.metrics import record_sweep
from dedup_middleware.store.memory import MemoryStore

logger = get_logger(__name__)


async def sweep_loop(
    store: MemoryStore,
    interval_seconds: float = 300,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Purge expired keys every ``interval_seconds`` until ``stop_event`` is set."""
    if stop_event is None:
        stop_event = asyncio.Event()

    logger.info("store.sweep.started", interval_seconds=interval_seconds)

    while not stop_event.is_set():
        removed = await store.purge_expired()
        record_sweep(removed)
        logger.debug("store.sweep.completed", removed=removed, remaining=len(store))

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            continue

    logger.info("store.sweep.stopped")


async def start_sweeper(
    store: MemoryStore,
    interval_seconds: float = 300,
) -> asyncio.Task[None]:
    """Start ``sweep_loop`` as a task; stop it with ``stop_sweeper``."""
    stop_event = asyncio.Event()
    task = asyncio.create_task(
        sweep_loop(store, interval_seconds=interval_seconds, stop_event=stop_event)
    )
    task._stop_event = stop_event  # type: ignore[attr-defined]
    return task


async def stop_sweeper(task: asyncio.Task[None], timeout: float = 5.0) -> None:
    """Signal the sweeper to stop and wait for it, cancelling if it overruns."""
    stop_event: asyncio.Event | None = getattr(task, "_stop_event", None)
    if stop_event is not None:
        stop_event.set()

    try:
        await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("store.sweep.stop_timeout", timeout=timeout)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("store.sweep.cancelled")

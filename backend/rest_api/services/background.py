"""
Fire-and-forget delivery for notifications and receipts.

Mutations schedule delivery here and return without waiting on Redis, so
a slow or failing channel never holds the order's mutation lock. Tasks
are kept referenced until they finish; failures are logged from the done
callback. `drain_background` awaits whatever is still in flight (shutdown,
tests).
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from shared.config.logging import get_logger

logger = get_logger(__name__)

_pending: set[asyncio.Task] = set()


def _task_done(task: asyncio.Task) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background task failed",
            task_name=task.get_name(),
            error=str(exc),
            error_type=type(exc).__name__,
        )


def run_in_background(coro: Coroutine[Any, Any, Any], task_name: str) -> asyncio.Task:
    """Schedule `coro` on the running loop and return its task."""
    task = asyncio.create_task(coro, name=task_name)
    _pending.add(task)
    task.add_done_callback(_task_done)
    return task


def pending_count() -> int:
    return len(_pending)


async def drain_background(timeout: float | None = None) -> None:
    """Wait for in-flight deliveries, including any they schedule."""
    while _pending:
        _, not_done = await asyncio.wait(set(_pending), timeout=timeout)
        if not_done:
            logger.warning("Background tasks still running", count=len(not_done))
            return

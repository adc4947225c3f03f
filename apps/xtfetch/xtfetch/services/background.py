"""Fire-and-forget execution of bookkeeping coroutines.

Usage counters and cookie outcomes must never block or fail the request that
produced them. Tasks are referenced until done so the event loop cannot
garbage-collect them mid-flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    """Schedules coroutines on the running loop and logs their failures."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task | None:
        try:
            task = asyncio.get_running_loop().create_task(coro, name=name)
        except RuntimeError:
            # No running loop (sync caller); drop the work
            coro.close()
            logger.debug("No event loop, dropped background task %s", name)
            return None
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = 5.0) -> None:
        """Wait for in-flight tasks (shutdown and tests)."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d background tasks on drain", len(pending))

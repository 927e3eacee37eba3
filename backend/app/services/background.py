"""Tracked fire-and-forget tasks whose failures go to logs and metrics only."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Set

from app.observability.metrics import log_metric

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable[object], *, name: str) -> asyncio.Task:
        """Schedule ``coro`` on the running loop without awaiting it."""
        task = asyncio.ensure_future(self._guard(coro, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Awaitable[object], name: str) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            logger.info("Background task %s cancelled", name)
            raise
        except Exception as exc:
            logger.exception("Background task %s failed", name)
            log_metric("background.task.failed", 1, {"task": name, "error": str(exc)[:200]})

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for tasks spawned so far (and any they spawn) to settle."""
        while self._tasks:
            done, _ = await asyncio.wait(set(self._tasks), timeout=timeout)
            self._tasks.difference_update(done)
            if not done:
                logger.warning("Background drain timed out with %s task(s) pending", len(self._tasks))
                return

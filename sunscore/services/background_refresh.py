"""
Fire-and-forget recomputation of stale cache entries.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class BackgroundRefresher:
    """
    Runs refresh jobs as independent tasks, at most one per cache key.

    A failed job is logged and dropped; the stale entry it was meant to
    replace stays in the cache so the next read retries.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def schedule(self, key: str, job: Callable[[], Awaitable[object]]) -> bool:
        """
        Start ``job`` in the background unless a refresh for ``key`` is running.

        Returns:
            True if a new task was started
        """
        running = self._tasks.get(key)
        if running is not None and not running.done():
            logger.debug(f"Refresh already running for {key}")
            return False

        task = asyncio.create_task(self._run(key, job))
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return True

    async def drain(self) -> None:
        """Wait for every running refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, key: str, job: Callable[[], Awaitable[object]]) -> None:
        logger.info(f"🔄 Background refresh started for {key}")
        try:
            await job()
        except asyncio.CancelledError:
            logger.info(f"Background refresh cancelled for {key}")
            raise
        except Exception as e:
            logger.error(f"❌ Background refresh failed for {key}: {e}", exc_info=True)
            return
        logger.info(f"✅ Background refresh completed for {key}")

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

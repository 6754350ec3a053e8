"""
Single-flight wrapper around the liquidation attempt.
"""

import asyncio
from typing import Optional, Set

from .liquidator import try_to_liquidate
from .logging_config import setup_logger
from .models import LiquidationOutcome

logger = setup_logger()


class LiquidationTask:
    """
    Runs at most one liquidation attempt at a time for a connection.

    Triggers that arrive while an attempt is in flight are collapsed into a
    single re-run once it finishes; the re-run reads whatever state is current
    at that point.
    """

    def __init__(self, connection, executor=None):
        self.connection = connection
        self.executor = executor
        self.last_outcome: Optional[LiquidationOutcome] = None
        self.attempts = 0

        self._running = False
        self._deferred = False
        self._pending: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    async def _run_once(self) -> None:
        self.attempts += 1
        self.last_outcome = await try_to_liquidate(self.connection, self.executor)
        logger.info("LiquidationTask: Attempt %s finished with %s.", self.attempts, self.last_outcome.name)

    async def trigger(self) -> None:
        if self._running:
            self._deferred = True
            return

        self._running = True
        try:
            await self._run_once()
            while self._deferred:
                self._deferred = False
                await self._run_once()
        finally:
            self._running = False

    def schedule(self) -> asyncio.Task:
        """Fire-and-forget `trigger()` on the running event loop."""
        task = asyncio.get_running_loop().create_task(self.trigger())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

"""
StepTimer - periodic elapsed-time reporting for the active step.

The timer only reads the engine's clock state; durations are recorded by
the engine itself when a step is left. Starting a running timer or stopping
a stopped one does nothing.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from ..config import settings

logger = logging.getLogger(__name__)

TickCallback = Callable[[str, int], Union[None, Awaitable[None]]]


class StepTimer:
    def __init__(
        self,
        engine: Any,
        on_tick: TickCallback,
        interval: float = settings.TIMER_POLL_INTERVAL_SECONDS,
    ):
        self.engine = engine
        self.on_tick = on_tick
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def tick(self) -> None:
        """Reports the active step's elapsed time once. No active step, no report."""
        active = self.engine.instance.active_step
        if active is None:
            return
        result = self.on_tick(active.id, self.engine.elapsed_ms(active.id))
        if inspect.isawaitable(result):
            await result

    async def _poll(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Timer callback failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)

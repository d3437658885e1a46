import asyncio
from typing import Awaitable, Callable, Optional

from core.logger import logger


class Timer:
    """
    One-shot countdown owned by a single session.

    ``tick()`` takes one second off; reaching zero calls ``on_expire`` exactly
    once and stops the timer for good. ``start()`` drives the ticks from an
    asyncio task, ``stop()`` cancels it. A stopped timer never restarts.
    """

    def __init__(self, seconds: int, on_expire: Callable[[], Awaitable[None]], tick_seconds: float = 1.0):
        if seconds <= 0:
            raise ValueError("Timer needs a positive number of seconds")
        self.total_seconds = seconds
        self.remaining = seconds
        self.tick_seconds = tick_seconds
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._stopped = False
        self._fired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped

    @property
    def fired(self) -> bool:
        return self._fired

    def start(self):
        if self._task is not None or self._stopped:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self):
        while not self._stopped:
            await asyncio.sleep(self.tick_seconds)
            try:
                await self.tick()
            except Exception as e:
                # Nobody awaits this task, so expiry failures end here
                logger.error("Timer expiry callback failed", error=str(e), error_type=type(e).__name__)

    async def tick(self):
        if self._stopped:
            return
        self.remaining -= 1
        if self.remaining > 0:
            return

        self._fired = True
        self._stopped = True
        logger.info("Timer expired", total_seconds=self.total_seconds)
        await self._on_expire()

    def stop(self):
        self._stopped = True
        task = self._task
        # The expiry callback runs inside the task; it must not cancel itself
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

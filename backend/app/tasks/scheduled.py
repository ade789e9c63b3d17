"""Cancellable interval task used by the status poller and the auto-post scheduler"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Runs an async tick on a fixed interval.

    Ticks of the same task never overlap; tick_now() waits for a running tick to finish.
    Exceptions raised by a tick are logged and the loop keeps going.
    """

    def __init__(self, name: str, interval: float, tick: Callable[[], Awaitable[None]],
                 on_error: Optional[Callable[[Exception], None]] = None):
        self.name = name
        self.interval = interval
        self._tick = tick
        self._on_error = on_error
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, run_immediately: bool = True) -> None:
        if self.is_running:
            logger.warning(f"{self.name} is already running")
            return
        self._task = asyncio.create_task(self._run(run_immediately), name=self.name)
        logger.info(f"✅ Started {self.name} (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Stopped {self.name}")

    async def tick_now(self) -> None:
        """Run one tick inline"""
        async with self._lock:
            try:
                await self._tick()
            except Exception as e:
                logger.error(f"❌ {self.name} tick failed: {e}", exc_info=True, extra={"task": self.name})
                if self._on_error:
                    self._on_error(e)

    async def _run(self, run_immediately: bool) -> None:
        if run_immediately:
            await self.tick_now()
        while True:
            await asyncio.sleep(self.interval)
            await self.tick_now()

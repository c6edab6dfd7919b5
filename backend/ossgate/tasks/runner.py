import asyncio
import logging
from typing import Awaitable, Callable

from ossgate.core.config import get_settings

logger = logging.getLogger(__name__)


StartupHook = Callable[[], Awaitable[object]]
SweepFactory = Callable[[], Awaitable[object]]


class CleanupRunner:
    """Runs the periodic ledger/cache sweep inside the FastAPI process."""

    def __init__(self, interval: float | None = None) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None
        self._running = False
        self._interval = interval
        self._startup_hook: StartupHook | None = None
        self._sweep: SweepFactory | None = None

    @property
    def running(self) -> bool:
        return self._running

    def set_startup_hook(self, hook: StartupHook) -> None:
        self._startup_hook = hook

    def set_sweep(self, sweep: SweepFactory) -> None:
        self._sweep = sweep

    async def start(self) -> None:
        if self._running:
            return
        self._loop = asyncio.get_running_loop()
        if self._interval is None:
            self._interval = get_settings().cleanup_interval_secs
        self._running = True
        if self._startup_hook:
            await self._startup_hook()
        if self._sweep is not None and self._interval > 0:
            self._task = self._loop.create_task(self._loop_forever())

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        self._loop = None

    async def run_once(self) -> None:
        if self._sweep is None:
            return
        try:
            await self._sweep()
        except asyncio.CancelledError:
            raise
        except Exception:  # pragma: no cover - logged for observability
            logger.exception("Unhandled error in cleanup sweep")

    async def _loop_forever(self) -> None:
        assert self._interval is not None
        while self._running:
            await asyncio.sleep(self._interval)
            await self.run_once()

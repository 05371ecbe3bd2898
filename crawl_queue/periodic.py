"""Timer-driven background tasks."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``tick()`` on a fixed interval without overlapping runs.

    The next run is scheduled only once the current one has finished,
    whether it succeeded or failed. Failures are logged and never stop the
    task. ``stop()`` cancels the pending timer but lets a running tick finish.
    """

    name = "periodic task"

    def __init__(self, interval_ms: int):
        self.interval_ms = interval_ms
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._current: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def tick(self) -> None:
        raise NotImplementedError

    def start(self, run_immediately: bool = False) -> None:
        """Start the task on the running event loop."""
        if self._running:
            raise RuntimeError(f"{self.name} is already running")
        self._loop = asyncio.get_running_loop()
        self._running = True
        logger.info(f"Starting {self.name} (every {self.interval_ms} ms)")
        if self._current is not None:
            # Restarted mid-tick: the running tick schedules the next one
            return
        if run_immediately:
            self._fire()
        else:
            self._schedule()

    def stop(self) -> None:
        """Cancel the pending run. A tick already in progress is not interrupted."""
        if not self._running:
            return
        self._running = False
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.info(f"Stopped {self.name}")

    async def wait_idle(self) -> None:
        """Wait for an in-flight tick, if any, to complete."""
        if self._current is not None:
            await asyncio.shield(self._current)

    def _schedule(self) -> None:
        if not self._running or self._handle is not None:
            return
        self._handle = self._loop.call_later(self.interval_ms / 1000, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._current is not None:
            return
        self._current = self._loop.create_task(self._run_tick())

    async def _run_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}", exc_info=True)
        finally:
            self._current = None
            self._schedule()

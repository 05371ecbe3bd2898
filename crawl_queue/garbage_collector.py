"""Background task that recycles abandoned queue items."""

import logging
from typing import Optional

from .operations import gc_task
from .periodic import PeriodicTask
from .store import AsyncCollection

logger = logging.getLogger(__name__)


class GarbageCollector(PeriodicTask):
    """Puts items claimed by dead or stuck workers back in the queue.

    Anything not fetched, not queued and untouched for longer than the
    staleness window is returned to ``queued`` on every tick.
    """

    name = "garbage collector"

    def __init__(
        self,
        collection: AsyncCollection,
        interval_ms: int = 1000 * 60 * 2,
        stale_interval_ms: Optional[int] = None,
    ):
        super().__init__(interval_ms)
        self.collection = collection
        self.stale_interval_ms = stale_interval_ms or interval_ms
        self.last_recycled = 0

    async def tick(self) -> None:
        self.last_recycled = await gc_task(self.collection, self.stale_interval_ms)
        if self.last_recycled:
            logger.info(f"{self.last_recycled} items were rolled back to queued status")

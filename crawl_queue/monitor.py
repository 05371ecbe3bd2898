"""Background task that snapshots queue statistics."""

import logging
from typing import Optional

from .models import AggregationResult
from .operations import monitor_task
from .periodic import PeriodicTask
from .store import AsyncCollection

logger = logging.getLogger(__name__)


class Monitor(PeriodicTask):
    """Appends an AggregationResult to the statistics collection on every tick."""

    name = "monitor"

    def __init__(
        self,
        queue_collection: AsyncCollection,
        statistic_collection: AsyncCollection,
        interval_ms: int = 1000 * 60,
    ):
        super().__init__(interval_ms)
        self.queue_collection = queue_collection
        self.statistic_collection = statistic_collection
        self.last_result: Optional[AggregationResult] = None

    def start(self, run_immediately: bool = True) -> None:
        super().start(run_immediately=run_immediately)

    async def tick(self) -> None:
        self.last_result = await monitor_task(
            self.queue_collection, self.statistic_collection
        )

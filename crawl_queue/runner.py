"""Standalone maintenance jobs that run until the crawl has finished.

Both jobs stop on their own once every item in the queue has been fetched
for ``max_idle_ticks`` consecutive ticks.
"""

import asyncio
import logging
from typing import Optional

from .config import QueueConfig
from .operations import gc_task, monitor_task
from .store import DataStore

logger = logging.getLogger(__name__)

STANDALONE_STALE_INTERVAL_MS = 1000 * 60 * 10


class IdleTracker:
    """Counts consecutive ticks where the whole queue was fetched."""

    def __init__(self, max_idle_ticks: int):
        self.max_idle_ticks = max_idle_ticks
        self.idle_ticks = 0

    def record(self, total_count: int, fetched_count: int) -> bool:
        """Record one tick.

        Args:
            total_count: Items in the queue
            fetched_count: Items already fetched

        Returns:
            True once the job should stop
        """
        if total_count == fetched_count:
            self.idle_ticks += 1
        else:
            self.idle_ticks = 0
        return self.idle_ticks >= self.max_idle_ticks


async def drop_queue(config: QueueConfig, store: Optional[DataStore] = None) -> None:
    """Drop the queue and statistics collections."""
    store = store or DataStore(config.url, config.db_name)
    await store.connect()
    try:
        await store.collection(config.monitor.statistic_collection_name).drop()
        await store.collection(config.collection_name).drop()
    finally:
        await store.close()
    logger.info(f"Queue '{config.collection_name}' dropped")


async def run_monitor(
    config: QueueConfig,
    max_idle_ticks: int = 15,
    store: Optional[DataStore] = None,
) -> int:
    """Snapshot queue statistics every ``config.monitor.interval_ms`` until idle.

    Returns:
        Number of ticks run
    """
    store = store or DataStore(config.url, config.db_name)
    await store.connect()
    queue = store.collection(config.collection_name)
    statistics = store.collection(config.monitor.statistic_collection_name)
    tracker = IdleTracker(max_idle_ticks)
    ticks = 0

    logger.info(f"Starting monitor job (every {config.monitor.interval_ms} ms)")
    try:
        while True:
            ticks += 1
            try:
                result = await monitor_task(queue, statistics)
            except Exception as e:
                logger.error(f"Error in monitor job: {e}", exc_info=True)
            else:
                if tracker.record(result.total_count, result.fetched_count):
                    logger.info(
                        f"All {result.total_count} items fetched for {max_idle_ticks} ticks. "
                        "Stopping the monitor"
                    )
                    break
            await asyncio.sleep(config.monitor.interval_ms / 1000)
    finally:
        await store.close()
    return ticks


async def run_gc(
    config: QueueConfig,
    max_idle_ticks: int = 15,
    stale_interval_ms: int = STANDALONE_STALE_INTERVAL_MS,
    store: Optional[DataStore] = None,
) -> int:
    """Recycle stale items every ``stale_interval_ms`` until idle.

    Returns:
        Number of ticks run
    """
    store = store or DataStore(config.url, config.db_name)
    await store.connect()
    queue = store.collection(config.collection_name)
    tracker = IdleTracker(max_idle_ticks)
    ticks = 0

    logger.info(f"Starting garbage collector job (staleness {stale_interval_ms} ms)")
    try:
        while True:
            ticks += 1
            try:
                total_count, fetched_count = await asyncio.gather(
                    queue.count_documents({}),
                    queue.count_documents({"fetched": True}),
                )
                logger.info(f"Total count: {total_count}, fetched count: {fetched_count}")
                recycled = await gc_task(queue, stale_interval_ms)
                logger.info(f"{recycled} items were rolled back to queued status")
            except Exception as e:
                logger.error(f"Error in garbage collector job: {e}", exc_info=True)
            else:
                if tracker.record(total_count, fetched_count):
                    logger.info(
                        f"All {total_count} items fetched for {max_idle_ticks} ticks. "
                        "Stopping the garbage collector"
                    )
                    break
            await asyncio.sleep(stale_interval_ms / 1000)
    finally:
        await store.close()
    return ticks

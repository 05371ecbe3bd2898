"""Single-run maintenance operations on the queue collection."""

import asyncio
import logging
import time
from typing import Iterable, Optional

from .models import AggregationResult, Aggregator, AllowedStatistic, QueueItemStatus
from .store import AsyncCollection

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def statistic_pipeline(
    statistic: AllowedStatistic,
    aggregators: Iterable[Aggregator] = tuple(Aggregator),
) -> list[dict]:
    """Aggregation pipeline over fetched items with a numeric value.

    The single output document has one field per aggregator name.
    """
    path = f"stateData.{statistic.value}"
    return [
        {"$match": {"fetched": True, path: {"$type": "number"}}},
        {
            "$group": {
                "_id": None,
                **{agg.value: {f"${agg.value}": f"${path}"} for agg in aggregators},
            }
        },
    ]


async def gc_task(collection: AsyncCollection, stale_interval_ms: int) -> int:
    """Return stale, unfinished items to the queued state.

    An item is stale when it is not fetched, not queued, and has not been
    written for longer than ``stale_interval_ms``.

    Args:
        collection: Queue collection
        stale_interval_ms: Staleness window in milliseconds

    Returns:
        Number of items put back in the queue
    """
    current_time = now_ms()
    result = await collection.update_many(
        {
            "$and": [
                {"fetched": {"$ne": True}},
                {"status": {"$ne": QueueItemStatus.QUEUED.value}},
                {"modificationTimestamp": {"$lt": current_time - stale_interval_ms}},
            ]
        },
        {
            "$set": {
                "status": QueueItemStatus.QUEUED.value,
                "modificationTimestamp": current_time,
            }
        },
    )
    return result.modified_count


async def _statistic_values(
    collection: AsyncCollection, statistic: AllowedStatistic
) -> dict[str, Optional[float]]:
    docs = await collection.aggregate(statistic_pipeline(statistic))
    if not docs:
        return {}
    prefix = statistic.value
    return {
        f"{prefix}{agg.value.capitalize()}": docs[0].get(agg.value)
        for agg in Aggregator
    }


async def _status_counts(collection: AsyncCollection) -> dict[str, int]:
    docs = await collection.aggregate(
        [{"$group": {"_id": "$status", "total": {"$sum": 1}}}]
    )
    return {doc["_id"]: doc["total"] for doc in docs if doc.get("_id") is not None}


async def collect_statistics(queue_collection: AsyncCollection) -> AggregationResult:
    """Compute a statistics snapshot of the queue without storing it."""
    started = now_ms()
    total, fetched, status_counts, *values = await asyncio.gather(
        queue_collection.count_documents({}),
        queue_collection.count_documents({"fetched": True}),
        _status_counts(queue_collection),
        *(_statistic_values(queue_collection, stat) for stat in AllowedStatistic),
    )

    data: dict = {}
    for stat_values in values:
        data.update(stat_values)
    data.update(status_counts)
    data.update(
        totalCount=total,
        fetchedCount=fetched,
        timestamp=started,
        timestampFinish=now_ms(),
    )
    return AggregationResult.model_validate(data)


async def monitor_task(
    queue_collection: AsyncCollection, statistic_collection: AsyncCollection
) -> AggregationResult:
    """Compute a statistics snapshot and append it to the statistics collection.

    Args:
        queue_collection: Queue collection to measure
        statistic_collection: Collection that receives the snapshot

    Returns:
        The stored AggregationResult
    """
    result = await collect_statistics(queue_collection)
    await statistic_collection.insert_one(result.to_document())
    logger.debug(
        f"Queue snapshot: {result.total_count} total, {result.fetched_count} fetched"
    )
    return result

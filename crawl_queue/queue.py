"""MongoDB-backed crawl queue shared by concurrent crawler workers.

All coordination goes through the store's atomic primitives (upsert and
find-and-update), so any number of worker processes can share one
collection without double-processing an item.
"""

import logging
from typing import Any, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, HASHED, ReturnDocument

from .config import QueueConfig
from .errors import ErrorKind, QueueError
from .filters import coerce_identifier, to_filter, to_update
from .garbage_collector import GarbageCollector
from .models import Aggregator, AllowedStatistic, QueueItem, QueueItemStatus
from .monitor import Monitor
from .operations import now_ms, statistic_pipeline
from .store import AsyncCollection, DataStore

logger = logging.getLogger(__name__)

ItemLike = Union[QueueItem, dict[str, Any]]


class MongoQueue:
    """Crawl queue stored in a MongoDB collection."""

    def __init__(self, config: Optional[QueueConfig] = None, store: Optional[DataStore] = None):
        self.config = config or QueueConfig()
        self.store = store or DataStore(self.config.url, self.config.db_name)
        self._collection: Optional[AsyncCollection] = None
        self.garbage_collector: Optional[GarbageCollector] = None
        self.monitor: Optional[Monitor] = None

    @property
    def collection(self) -> AsyncCollection:
        if self._collection is None:
            raise QueueError(ErrorKind.STORE_UNAVAILABLE, "Queue is not initialised")
        return self._collection

    def _stamp(self) -> dict[str, Any]:
        return {
            "modificationTimestamp": now_ms(),
            "modifiedBy": self.config.crawler_name,
        }

    async def init(self) -> None:
        """Connect, create indexes and start the configured background tasks."""
        await self.store.connect()
        collection = self.store.collection(self.config.collection_name)

        await collection.create_index(
            [("status", ASCENDING)],
            partialFilterExpression={"status": {"$eq": QueueItemStatus.QUEUED.value}},
        )
        await collection.create_index([("url", HASHED)])
        self._collection = collection

        if self.config.gc.run:
            self.garbage_collector = GarbageCollector(
                collection,
                interval_ms=self.config.gc.interval_ms,
                stale_interval_ms=self.config.gc.stale_interval_ms,
            )
            self.garbage_collector.start()

        if self.config.monitor.run:
            statistic_collection = self.store.collection(
                self.config.monitor.statistic_collection_name
            )
            self.monitor = Monitor(
                collection, statistic_collection, interval_ms=self.config.monitor.interval_ms
            )
            self.monitor.start()

        logger.info(f"Queue '{self.config.collection_name}' initialised")

    async def finalize(self) -> None:
        """Stop background tasks and close the connection."""
        for task in (self.garbage_collector, self.monitor):
            if task is not None:
                task.stop()
                await task.wait_idle()
        self._collection = None
        await self.store.close()
        logger.info(f"Queue '{self.config.collection_name}' finalized")

    async def drop(self) -> None:
        """Drop the whole queue collection."""
        await self.collection.drop()

    async def _insert_if_absent(self, document: dict[str, Any], filter: dict[str, Any]) -> Optional[QueueItem]:
        result = await self.collection.update_one(
            filter, {"$setOnInsert": document}, upsert=True
        )
        if not result.acknowledged:
            raise QueueError(ErrorKind.UNEXPECTED_STATE, "Upsert was not acknowledged")
        if result.upserted_id is None:
            return None

        inserted = await self.collection.find_one({"_id": result.upserted_id})
        if inserted is None:
            raise QueueError(ErrorKind.UNEXPECTED_STATE, "Inserted item disappeared")
        return QueueItem.from_document(inserted)

    async def add(self, item: ItemLike, force: bool = False) -> QueueItem:
        """Add an item to the queue in the queued state.

        Args:
            item: Item to add; any ``id`` it carries is ignored
            force: Allow several items with the same URL. Only an exact copy
                of an existing item is rejected.

        Returns:
            The stored item with its new id

        Raises:
            QueueError: DUPLICATE_RESOURCE if the URL (or, with ``force``,
                the exact item) is already queued
        """
        if not isinstance(item, QueueItem):
            item = QueueItem.model_validate(item)

        document = {**self._stamp(), **item.to_document()}
        document.pop("_id", None)
        document["status"] = QueueItemStatus.QUEUED.value

        if force:
            # The whole payload is the key, so only an identical copy collides
            added = await self._insert_if_absent(document, dict(document))
            if added is None:
                raise QueueError(
                    ErrorKind.DUPLICATE_RESOURCE,
                    "Can't add a queue item twice. You may create a new one from the same URL however.",
                )
        else:
            added = await self._insert_if_absent(document, {"url": document["url"]})
            if added is None:
                raise QueueError(ErrorKind.DUPLICATE_RESOURCE, "Resource already exists in queue!")
        return added

    async def exists(self, url: str) -> bool:
        return await self.collection.find_one({"url": url}) is not None

    async def get(self, index: int) -> QueueItem:
        """Get the item at a position in store order.

        Deprecated: the collection has no meaningful order.

        Raises:
            QueueError: NOT_FOUND if the index is out of range
        """
        if index < 0:
            raise QueueError(ErrorKind.NOT_FOUND, "out of range")
        document = await self.collection.find_one({}, skip=index)
        if document is None:
            raise QueueError(ErrorKind.NOT_FOUND, "out of range")
        return QueueItem.from_document(document)

    async def update(self, id: Union[str, ObjectId], updates: ItemLike) -> QueueItem:
        """Overwrite fields of an item.

        Nested records are applied field by field, so updating
        ``{"stateData": {"downloadTime": 3}}`` keeps the other stateData values.

        Args:
            id: Item id
            updates: Partial item

        Returns:
            The item after the update

        Raises:
            QueueError: NOT_FOUND if no item has this id, INVALID_IDENTIFIER
                if the id is malformed
        """
        object_id = coerce_identifier(id)
        assignments = to_update(updates)
        assignments.update(self._stamp())

        document = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": assignments},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            raise QueueError(ErrorKind.NOT_FOUND, "No queue item found with that ID")
        return QueueItem.from_document(document)

    async def claim_oldest_unfetched(self) -> Optional[QueueItem]:
        """Atomically move one queued item to ``pulled`` and return it.

        Concurrent callers never receive the same item.

        Returns:
            The claimed item as it was before the claim, or None if nothing is queued
        """
        document = await self.collection.find_one_and_update(
            {"status": QueueItemStatus.QUEUED.value},
            {"$set": {"status": QueueItemStatus.PULLED.value, **self._stamp()}},
        )
        if document is None:
            return None
        return QueueItem.from_document(document)

    oldest_unfetched_item = claim_oldest_unfetched

    async def statistic(self, name: str, aggregator: Union[Aggregator, str]) -> Optional[float]:
        """Aggregate a stateData metric over fetched items.

        Args:
            name: One of the AllowedStatistic values
            aggregator: max, min or avg

        Returns:
            The aggregated value, or None if no fetched item has a numeric value

        Raises:
            QueueError: INVALID_STATISTIC for an unknown name or aggregator
        """
        try:
            statistic = AllowedStatistic(name)
            aggregator = Aggregator(aggregator)
        except ValueError as e:
            raise QueueError(ErrorKind.INVALID_STATISTIC, f"Invalid statistic: {name}") from e

        docs = await self.collection.aggregate(statistic_pipeline(statistic, [aggregator]))
        if not docs:
            return None
        return docs[0].get(aggregator.value)

    async def max(self, name: str) -> Optional[float]:
        return await self.statistic(name, Aggregator.MAX)

    async def min(self, name: str) -> Optional[float]:
        return await self.statistic(name, Aggregator.MIN)

    async def avg(self, name: str) -> Optional[float]:
        return await self.statistic(name, Aggregator.AVG)

    async def count_items(self, match_spec: dict[str, Any]) -> int:
        """Count items whose fields equal every leaf of ``match_spec``."""
        return await self.collection.count_documents(to_filter(match_spec))

    async def filter_items(self, match_spec: dict[str, Any]) -> list[QueueItem]:
        """Return items whose fields equal every leaf of ``match_spec``."""
        documents = await self.collection.find(to_filter(match_spec))
        return [QueueItem.from_document(doc) for doc in documents]

    async def get_length(self) -> int:
        return await self.collection.count_documents({})

    async def freeze(self, filename: Optional[str] = None) -> bool:
        """Kept for crawler compatibility; the queue is already persistent."""
        return True

    async def defrost(self, filename: Optional[str] = None) -> bool:
        """Kept for crawler compatibility; the queue is already persistent."""
        return True

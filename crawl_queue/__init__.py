"""MongoDB-backed crawl queue."""

from .callbacks import CallbackQueue
from .config import GCConfig, MonitorConfig, QueueConfig
from .errors import ErrorKind, QueueError
from .garbage_collector import GarbageCollector
from .models import (
    AggregationResult,
    Aggregator,
    AllowedStatistic,
    QueueItem,
    QueueItemStatus,
    StateData,
)
from .monitor import Monitor
from .operations import gc_task, monitor_task
from .queue import MongoQueue
from .store import AsyncCollection, DataStore

__all__ = [
    "MongoQueue",
    "CallbackQueue",
    "QueueConfig",
    "GCConfig",
    "MonitorConfig",
    "ErrorKind",
    "QueueError",
    "GarbageCollector",
    "Monitor",
    "AggregationResult",
    "Aggregator",
    "AllowedStatistic",
    "QueueItem",
    "QueueItemStatus",
    "StateData",
    "gc_task",
    "monitor_task",
    "AsyncCollection",
    "DataStore",
]

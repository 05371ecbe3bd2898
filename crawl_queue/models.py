"""Data models for the crawl queue."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class QueueItemStatus(str, Enum):
    """Lifecycle status of a queue item.

    ``PULLED`` only exists in this queue: it marks an item claimed by a
    worker that has not reported back yet.
    """
    QUEUED = "queued"
    SPOOLED = "spooled"
    HEADERS = "headers"
    DOWNLOADED = "downloaded"
    REDIRECTED = "redirected"
    NOT_FOUND = "notfound"
    FAILED = "failed"
    CREATED = "created"
    TIMEOUT = "timeout"
    DOWNLOAD_PREVENTED = "downloadprevented"
    PULLED = "pulled"


class AllowedStatistic(str, Enum):
    """Numeric ``stateData`` fields that can be aggregated."""
    ACTUAL_DATA_SIZE = "actualDataSize"
    CONTENT_LENGTH = "contentLength"
    DOWNLOAD_TIME = "downloadTime"
    REQUEST_LATENCY = "requestLatency"
    REQUEST_TIME = "requestTime"


class Aggregator(str, Enum):
    MAX = "max"
    MIN = "min"
    AVG = "avg"


class _Document(BaseModel):
    """Base for models stored with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="allow",
    )


class StateData(_Document):
    """Request/response metrics recorded by the crawler."""
    request_latency: Optional[float] = None
    request_time: Optional[float] = None
    download_time: Optional[float] = None
    content_length: Optional[int] = None
    content_type: Optional[str] = None
    response_code: Optional[int] = None
    headers: Optional[dict[str, Any]] = None
    actual_data_size: Optional[int] = None
    sent_incorrect_size: Optional[bool] = None


class QueueItem(_Document):
    """A single resource to crawl."""
    id: Optional[str] = None
    url: str
    protocol: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    uri_path: Optional[str] = None
    depth: Optional[int] = Field(default=None, ge=1)
    referrer: Optional[str] = None
    fetched: bool = False
    status: QueueItemStatus = QueueItemStatus.QUEUED
    state_data: StateData = Field(default_factory=StateData)
    modification_timestamp: Optional[int] = None
    modified_by: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        """Convert to a store document (no id, unset fields left out)."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"id"})

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "QueueItem":
        """Create from a store document, exposing ``_id`` as ``id``."""
        data = dict(document)
        object_id = data.pop("_id", None)
        if object_id is not None:
            data["id"] = str(object_id)
        return cls.model_validate(data)


class AggregationResult(_Document):
    """Snapshot of queue statistics written by the monitor."""
    actual_data_size_max: Optional[float] = None
    content_length_max: Optional[float] = None
    download_time_max: Optional[float] = None
    request_latency_max: Optional[float] = None
    request_time_max: Optional[float] = None
    actual_data_size_min: Optional[float] = None
    content_length_min: Optional[float] = None
    download_time_min: Optional[float] = None
    request_latency_min: Optional[float] = None
    request_time_min: Optional[float] = None
    actual_data_size_avg: Optional[float] = None
    content_length_avg: Optional[float] = None
    download_time_avg: Optional[float] = None
    request_latency_avg: Optional[float] = None
    request_time_avg: Optional[float] = None

    queued: Optional[int] = None
    spooled: Optional[int] = None
    headers: Optional[int] = None
    downloaded: Optional[int] = None
    redirected: Optional[int] = None
    notfound: Optional[int] = None
    failed: Optional[int] = None
    created: Optional[int] = None
    timeout: Optional[int] = None
    downloadprevented: Optional[int] = None
    pulled: Optional[int] = None

    total_count: int = 0
    fetched_count: int = 0
    timestamp: int
    timestamp_finish: Optional[int] = None

    def to_document(self) -> dict[str, Any]:
        """Convert to a store document; absent aggregates stay absent."""
        return self.model_dump(by_alias=True, exclude_none=True)

"""Queue configuration."""

import json
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_URL = "mongodb://localhost:27017"
DEFAULT_DB_NAME = "crawler"


class GCConfig(BaseModel):
    """Garbage collector settings."""
    run: bool = False
    interval_ms: int = Field(default=1000 * 60 * 2, gt=0)
    # Defaults to interval_ms
    stale_interval_ms: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _default_stale_interval(self) -> "GCConfig":
        if self.stale_interval_ms is None:
            self.stale_interval_ms = self.interval_ms
        return self


class MonitorConfig(BaseModel):
    """Monitor settings."""
    run: bool = False
    interval_ms: int = Field(default=1000 * 60, gt=0)
    statistic_collection_name: str = Field(default="statistic", min_length=1)


class QueueConfig(BaseModel):
    """Connection and background task settings for a queue."""
    url: str = Field(default=DEFAULT_URL, min_length=1)
    db_name: str = Field(default=DEFAULT_DB_NAME, min_length=1)
    collection_name: str = Field(default="queue", min_length=1)
    crawler_name: str = Field(default="crawler", min_length=1)
    gc: GCConfig = Field(default_factory=GCConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "QueueConfig":
        """Build a config from environment variables.

        A ``VCAP_SERVICES`` MongoDB binding takes precedence over
        ``MONGO_URL``/``MONGO_DB``.

        Args:
            environ: Mapping to read instead of ``os.environ``
            **overrides: Extra fields passed to the config

        Returns:
            QueueConfig instance
        """
        environ = os.environ if environ is None else environ
        url = environ.get("MONGO_URL") or DEFAULT_URL
        db_name = environ.get("MONGO_DB") or DEFAULT_DB_NAME

        services = environ.get("VCAP_SERVICES")
        if services:
            bindings = json.loads(services).get("mongodb") or []
            if bindings:
                credentials = bindings[0].get("credentials", {})
                url = credentials.get("uri") or url
                db_name = credentials.get("dbname") or db_name

        return cls(url=url, db_name=db_name, **overrides)

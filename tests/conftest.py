"""Shared fixtures for the crawl queue tests."""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

import mongomock
import pytest
import pytest_asyncio

from crawl_queue.config import QueueConfig
from crawl_queue.queue import MongoQueue
from crawl_queue.store import DataStore

DB_NAME = "crawler_test"


def make_item(url: str, **fields) -> dict:
    """Build a crawler-style queue item for a URL."""
    parsed = urlparse(url)
    item = {
        "url": url,
        "protocol": parsed.scheme,
        "host": parsed.hostname,
        "port": parsed.port or 80,
        "path": parsed.path or "/",
        "uriPath": parsed.path or "/",
        "depth": 1,
        "fetched": False,
        "status": "created",
        "stateData": {},
    }
    item.update(fields)
    return item


@pytest.fixture
def mongo_client():
    """In-memory MongoDB client shared by everything in a test."""
    return mongomock.MongoClient()


@pytest.fixture
def executor():
    # mongomock's find-and-modify is not atomic across threads, so store calls
    # run one at a time. Tests of simultaneous callers check that each call
    # is atomic; interleaving across connections is the server's guarantee.
    with ThreadPoolExecutor(max_workers=1) as pool:
        yield pool


@pytest.fixture
def store(mongo_client, executor):
    return DataStore(
        "mongodb://localhost:27017",
        DB_NAME,
        client_factory=lambda url: mongo_client,
        executor=executor,
    )


@pytest.fixture
def config():
    return QueueConfig(db_name=DB_NAME, crawler_name="test-crawler")


@pytest.fixture
def raw_queue(mongo_client):
    """Direct (synchronous) access to the queue collection."""
    return mongo_client[DB_NAME]["queue"]


@pytest.fixture
def raw_statistics(mongo_client):
    return mongo_client[DB_NAME]["statistic"]


@pytest_asyncio.fixture
async def queue(config, store):
    """An initialised queue without background tasks."""
    queue = MongoQueue(config, store=store)
    await queue.init()
    yield queue
    await queue.finalize()


async def wait_for(condition, timeout=2.0):
    """Poll until condition() is true."""
    deadline = time.monotonic() + timeout
    while not condition():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)

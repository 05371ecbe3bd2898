"""Tests for the garbage collector."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_item, wait_for
from crawl_queue.errors import ErrorKind, QueueError
from crawl_queue.garbage_collector import GarbageCollector
from crawl_queue.operations import gc_task

MINUTE_MS = 60 * 1000


def now_ms():
    return int(time.time() * 1000)


@pytest.mark.asyncio
async def test_gc_task_recycles_stale_items(queue, raw_queue):
    """Test that only stale, unfinished, non-queued items are recycled."""
    now = now_ms()
    raw_queue.insert_many([
        make_item("https://example.com/stale", status="pulled", modificationTimestamp=now - 11 * MINUTE_MS),
        make_item("https://example.com/recent", status="pulled", modificationTimestamp=now - 5 * MINUTE_MS),
        make_item("https://example.com/done", status="downloaded", fetched=True,
                  modificationTimestamp=now - 60 * MINUTE_MS),
        make_item("https://example.com/waiting", status="queued", modificationTimestamp=now - 60 * MINUTE_MS),
    ])

    recycled = await gc_task(queue.collection, 10 * MINUTE_MS)

    assert recycled == 1
    stale = raw_queue.find_one({"url": "https://example.com/stale"})
    assert stale["status"] == "queued"
    assert stale["modificationTimestamp"] >= now

    recent = raw_queue.find_one({"url": "https://example.com/recent"})
    assert recent["status"] == "pulled"
    assert recent["modificationTimestamp"] == now - 5 * MINUTE_MS

    assert raw_queue.find_one({"url": "https://example.com/done"})["status"] == "downloaded"
    waiting = raw_queue.find_one({"url": "https://example.com/waiting"})
    assert waiting["modificationTimestamp"] == now - 60 * MINUTE_MS


@pytest.mark.asyncio
async def test_recycled_item_can_be_claimed_again(queue, raw_queue):
    """Test that a lost claim becomes claimable after collection."""
    raw_queue.insert_one(
        make_item("https://example.com/a", status="pulled", modificationTimestamp=now_ms() - 11 * MINUTE_MS)
    )
    assert await queue.claim_oldest_unfetched() is None

    await gc_task(queue.collection, 10 * MINUTE_MS)

    claimed = await queue.claim_oldest_unfetched()
    assert claimed.url == "https://example.com/a"


@pytest.mark.asyncio
async def test_garbage_collector_runs_periodically(queue, raw_queue):
    """Test that the collector recycles items on its timer."""
    raw_queue.insert_one(
        make_item("https://example.com/a", status="spooled", modificationTimestamp=now_ms() - MINUTE_MS)
    )
    gc = GarbageCollector(queue.collection, interval_ms=10, stale_interval_ms=1000)

    gc.start()
    try:
        await wait_for(lambda: raw_queue.find_one({"status": "queued"}) is not None)
    finally:
        gc.stop()
        await gc.wait_idle()

    assert gc.last_recycled in (0, 1)
    assert gc.is_running is False


@pytest.mark.asyncio
async def test_garbage_collector_survives_errors():
    """Test that a failing tick does not stop the collector."""
    calls = []

    async def update_many(filter, update):
        calls.append(filter)
        if len(calls) == 1:
            raise QueueError(ErrorKind.STORE_UNAVAILABLE, "connection reset")
        return MagicMock(modified_count=3)

    collection = MagicMock()
    collection.update_many = AsyncMock(side_effect=update_many)
    gc = GarbageCollector(collection, interval_ms=10)

    gc.start()
    try:
        await wait_for(lambda: len(calls) >= 2)
    finally:
        gc.stop()
        await gc.wait_idle()

    assert gc.last_recycled == 3


@pytest.mark.asyncio
async def test_stop_cancels_pending_tick():
    """Test that no tick runs after stop()."""
    collection = MagicMock()
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=0))
    gc = GarbageCollector(collection, interval_ms=20)

    gc.start()
    gc.stop()
    await asyncio.sleep(0.1)

    collection.update_many.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_twice_fails():
    """Test that a running collector cannot be started again."""
    gc = GarbageCollector(MagicMock(), interval_ms=1000)
    gc.start()
    try:
        with pytest.raises(RuntimeError, match="already running"):
            gc.start()
    finally:
        gc.stop()


def test_stale_interval_defaults_to_interval():
    """Test the staleness window default."""
    gc = GarbageCollector(MagicMock(), interval_ms=5000)

    assert gc.stale_interval_ms == 5000

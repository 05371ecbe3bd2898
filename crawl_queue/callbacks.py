"""Callback calling convention for crawlers that expect ``callback(error, result)``."""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional

from .queue import ItemLike, MongoQueue

Callback = Callable[[Optional[BaseException], Any], Any]


async def call_with_callback(operation: Awaitable[Any], callback: Callback) -> Any:
    """Await ``operation`` and report the outcome to ``callback``.

    The callback receives ``(error, None)`` on failure and ``(None, result)``
    on success. Its own return value (awaited if it is a coroutine) is
    returned.
    """
    try:
        result = await operation
    except Exception as e:
        outcome = callback(e, None)
    else:
        outcome = callback(None, result)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class CallbackQueue:
    """Wraps a MongoQueue so every operation reports through a callback.

    Each method schedules the operation on the running event loop and
    returns the task.
    """

    def __init__(self, queue: MongoQueue):
        self.queue = queue

    def _schedule(self, operation: Awaitable[Any], callback: Callback) -> asyncio.Task:
        return asyncio.ensure_future(call_with_callback(operation, callback))

    def init(self, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.init(), callback)

    def finalize(self, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.finalize(), callback)

    def add(self, item: ItemLike, force: bool, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.add(item, force), callback)

    def exists(self, url: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.exists(url), callback)

    def get(self, index: int, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.get(index), callback)

    def update(self, id: str, updates: ItemLike, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.update(id, updates), callback)

    def oldest_unfetched_item(self, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.claim_oldest_unfetched(), callback)

    def max(self, name: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.max(name), callback)

    def min(self, name: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.min(name), callback)

    def avg(self, name: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.avg(name), callback)

    def count_items(self, match_spec: dict, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.count_items(match_spec), callback)

    def filter_items(self, match_spec: dict, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.filter_items(match_spec), callback)

    def get_length(self, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.get_length(), callback)

    def freeze(self, filename: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.freeze(filename), callback)

    def defrost(self, filename: str, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.defrost(filename), callback)

    def drop(self, callback: Callback) -> asyncio.Task:
        return self._schedule(self.queue.drop(), callback)

"""MongoDB access for the queue.

pymongo is synchronous, so every call is pushed to an executor and awaited.
"""

import asyncio
import functools
import logging
from concurrent.futures import Executor
from typing import Any, Callable, Optional

from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .errors import ErrorKind, QueueError

logger = logging.getLogger(__name__)


class AsyncCollection:
    """Awaitable wrapper around a pymongo collection."""

    def __init__(self, collection, executor: Optional[Executor] = None):
        self.collection = collection
        self.executor = executor

    @property
    def name(self) -> str:
        return self.collection.name

    async def _run(self, func: Callable, *args, **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self.executor, functools.partial(func, *args, **kwargs)
            )
        except PyMongoError as e:
            raise QueueError(ErrorKind.STORE_UNAVAILABLE, str(e)) from e

    async def find_one(self, filter: dict, skip: int = 0) -> Optional[dict]:
        return await self._run(self.collection.find_one, filter, skip=skip)

    async def find(self, filter: dict) -> list[dict]:
        return await self._run(lambda: list(self.collection.find(filter)))

    async def count_documents(self, filter: dict) -> int:
        return await self._run(self.collection.count_documents, filter)

    async def update_one(self, filter: dict, update: dict, upsert: bool = False):
        return await self._run(self.collection.update_one, filter, update, upsert=upsert)

    async def update_many(self, filter: dict, update: dict):
        return await self._run(self.collection.update_many, filter, update)

    async def find_one_and_update(
        self,
        filter: dict,
        update: dict,
        return_document: bool = ReturnDocument.BEFORE,
    ) -> Optional[dict]:
        return await self._run(
            self.collection.find_one_and_update,
            filter,
            update,
            return_document=return_document,
        )

    async def aggregate(self, pipeline: list[dict]) -> list[dict]:
        return await self._run(lambda: list(self.collection.aggregate(pipeline)))

    async def insert_one(self, document: dict):
        return await self._run(self.collection.insert_one, document)

    async def create_index(self, keys: list, **kwargs) -> str:
        return await self._run(self.collection.create_index, keys, **kwargs)

    async def drop(self) -> None:
        await self._run(self.collection.drop)


class DataStore:
    """Connection to one MongoDB database."""

    def __init__(
        self,
        url: str,
        db_name: str,
        client_factory: Callable[..., Any] = MongoClient,
        executor: Optional[Executor] = None,
    ):
        self.url = url
        self.db_name = db_name
        self.client_factory = client_factory
        self.executor = executor
        self.client = None

    async def connect(self) -> None:
        """Create the client and make sure the server answers."""
        loop = asyncio.get_running_loop()

        def _connect():
            client = self.client_factory(self.url)
            try:
                client.admin.command("ping")
            except PyMongoError:
                client.close()
                raise
            return client

        try:
            self.client = await loop.run_in_executor(self.executor, _connect)
        except PyMongoError as e:
            raise QueueError(
                ErrorKind.STORE_UNAVAILABLE, f"Cannot connect to {self.db_name}: {e}"
            ) from e
        logger.info(f"Connected to database '{self.db_name}'")

    def collection(self, name: str) -> AsyncCollection:
        if self.client is None:
            raise QueueError(ErrorKind.STORE_UNAVAILABLE, "Data store is not connected")
        return AsyncCollection(self.client[self.db_name][name], self.executor)

    async def close(self) -> None:
        if self.client is None:
            return
        client, self.client = self.client, None
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self.executor, client.close)

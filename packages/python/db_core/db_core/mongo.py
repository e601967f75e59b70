"""Async MongoDB helpers built on top of Motor.

Only generic utilities live here; domain repositories receive a ``MongoStore``
(or any other ``DocumentStore``) and build their own schemas and rules on top.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, MutableMapping, Optional, TypeVar

from loguru import logger
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import PyMongoError

from .errors import StoreError
from .settings import MongoSettings, settings as default_settings
from .typing import MongoDocument, MongoFilter, WriteOutcome

T = TypeVar("T")


class MotorCollection:
    """``Collection`` implementation over a Motor collection with bounded calls."""

    def __init__(self, collection: AsyncIOMotorCollection, timeout: float):
        self._collection = collection
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self._collection.name

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "{op} on {name} timed out after {timeout}s",
                op=op,
                name=self.name,
                timeout=self._timeout,
            )
            raise StoreError(f"{op} timed out") from exc
        except PyMongoError as exc:
            logger.error("{op} on {name} failed: {error}", op=op, name=self.name, error=exc)
            raise StoreError(f"{op} failed") from exc

    async def find_one(
        self, filter: MongoFilter, *, session: Any = None
    ) -> Optional[MutableMapping[str, Any]]:
        return await self._call("find_one", self._collection.find_one(filter, session=session))

    async def find(
        self, filter: MongoFilter, *, session: Any = None
    ) -> list[MutableMapping[str, Any]]:
        cursor = self._collection.find(filter, session=session)
        return await self._call("find", cursor.to_list(length=None))

    async def insert_one(self, document: MongoDocument, *, session: Any = None) -> WriteOutcome:
        result = await self._call(
            "insert_one", self._collection.insert_one(document, session=session)
        )
        return WriteOutcome(acknowledged=result.acknowledged, inserted_id=result.inserted_id)

    async def update_one(
        self, filter: MongoFilter, update: MongoDocument, *, session: Any = None
    ) -> WriteOutcome:
        result = await self._call(
            "update_one", self._collection.update_one(filter, update, session=session)
        )
        return WriteOutcome(
            acknowledged=result.acknowledged,
            matched=result.matched_count,
            modified=result.modified_count,
        )

    async def delete_one(self, filter: MongoFilter, *, session: Any = None) -> WriteOutcome:
        result = await self._call(
            "delete_one", self._collection.delete_one(filter, session=session)
        )
        return WriteOutcome(acknowledged=result.acknowledged, deleted=result.deleted_count)

    async def delete_many(self, filter: MongoFilter, *, session: Any = None) -> WriteOutcome:
        result = await self._call(
            "delete_many", self._collection.delete_many(filter, session=session)
        )
        return WriteOutcome(acknowledged=result.acknowledged, deleted=result.deleted_count)

    async def create_index(self, keys: list[tuple[str, int]], **kwargs: Any) -> str:
        return await self._call("create_index", self._collection.create_index(keys, **kwargs))


class MongoStore:
    """Explicitly constructed MongoDB handle with a connect/close lifecycle.

    Usage::

        async with MongoStore(MongoSettings()) as store:
            todos = store.collection("todos")
            await todos.find({"owner_id": "user-123"})
    """

    def __init__(
        self,
        settings: Optional[MongoSettings] = None,
        client_factory: Callable[..., AsyncIOMotorClient] = AsyncIOMotorClient,
    ):
        self.settings = settings or default_settings
        self._client_factory = client_factory
        self._client: Optional[AsyncIOMotorClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        timeout_ms = int(self.settings.timeout_seconds * 1000)
        self._client = self._client_factory(
            self.settings.uri,
            serverSelectionTimeoutMS=timeout_ms,
        )
        logger.info("Connected Mongo client for db {db}", db=self.settings.db_name)

    async def close(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.info("Closed Mongo client for db {db}", db=self.settings.db_name)

    async def __aenter__(self) -> "MongoStore":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _require_client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise StoreError("MongoStore is not connected")
        return self._client

    @property
    def db(self) -> AsyncIOMotorDatabase:
        """Return the main application database defined by ``settings.db_name``."""

        return self._require_client()[self.settings.db_name]

    def collection(self, name: str) -> MotorCollection:
        return MotorCollection(self.db[name], timeout=self.settings.timeout_seconds)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        """Yield a session bound to a multi-document transaction.

        When transactions are disabled the block runs with ``None`` as the
        session and every write commits individually.
        """

        if not self.settings.use_transactions:
            yield None
            return

        client = self._require_client()
        try:
            session = await client.start_session()
        except PyMongoError as exc:
            raise StoreError("start_session failed") from exc
        try:
            async with session.start_transaction():
                yield session
        except PyMongoError as exc:
            logger.error("Transaction aborted: {error}", error=exc)
            raise StoreError("transaction failed") from exc
        finally:
            await session.end_session()

    async def ping(self) -> dict[str, Any]:
        """Run a simple ``ping`` command against the configured MongoDB server."""

        try:
            await asyncio.wait_for(
                self.db.command("ping"), timeout=self.settings.timeout_seconds
            )
        except (asyncio.TimeoutError, PyMongoError) as exc:
            raise StoreError("ping failed") from exc
        return {"ok": True}

"""Lightweight typing helpers shared by Mongo-backed repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    AsyncContextManager,
    Mapping,
    MutableMapping,
    Optional,
    Protocol,
)

MongoDocument = Mapping[str, Any]
MongoFilter = Mapping[str, Any]


@dataclass(frozen=True)
class WriteOutcome:
    """Normalized result of a single write against a collection."""

    acknowledged: bool = True
    matched: int = 0
    modified: int = 0
    deleted: int = 0
    inserted_id: Any = None


class Collection(Protocol):
    """The persistence boundary a domain repository talks to.

    Implementations scope nothing on their own: callers pass complete filters
    (including any owner/tenant keys) and an optional transaction session.
    """

    async def find_one(
        self, filter: MongoFilter, *, session: Any = None
    ) -> Optional[MutableMapping[str, Any]]:  # pragma: no cover - protocol
        ...

    async def find(
        self, filter: MongoFilter, *, session: Any = None
    ) -> list[MutableMapping[str, Any]]:  # pragma: no cover - protocol
        ...

    async def insert_one(
        self, document: MongoDocument, *, session: Any = None
    ) -> WriteOutcome:  # pragma: no cover - protocol
        ...

    async def update_one(
        self, filter: MongoFilter, update: MongoDocument, *, session: Any = None
    ) -> WriteOutcome:  # pragma: no cover - protocol
        ...

    async def delete_one(
        self, filter: MongoFilter, *, session: Any = None
    ) -> WriteOutcome:  # pragma: no cover - protocol
        ...

    async def delete_many(
        self, filter: MongoFilter, *, session: Any = None
    ) -> WriteOutcome:  # pragma: no cover - protocol
        ...


class DocumentStore(Protocol):
    """A connected document database handing out collections and transactions."""

    async def connect(self) -> None:  # pragma: no cover - protocol
        ...

    async def close(self) -> None:  # pragma: no cover - protocol
        ...

    def collection(self, name: str) -> Collection:  # pragma: no cover - protocol
        ...

    def transaction(self) -> AsyncContextManager[Any]:  # pragma: no cover - protocol
        ...

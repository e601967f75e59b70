"""Shared fixtures: an in-memory ``DocumentStore`` for engine and API tests."""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import pytest

from db_core import StoreError, WriteOutcome


def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    return all(doc.get(key) == value for key, value in filter.items())


class InMemoryCollection:
    """Dict-backed collection understanding ``$set``, ``$addToSet`` and ``$pull``."""

    def __init__(self, name: str):
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self._failures: Dict[str, int] = {}

    def fail_after(self, op: str, successes: int = 0) -> None:
        """Make ``op`` raise ``StoreError`` after ``successes`` more calls."""

        self._failures[op] = successes

    def _record(self, op: str) -> None:
        self.calls.append(op)
        if op in self._failures:
            if self._failures[op] <= 0:
                raise StoreError(f"{op} failed")
            self._failures[op] -= 1

    async def find_one(self, filter, *, session=None) -> Optional[Dict[str, Any]]:
        self._record("find_one")
        for doc in self.docs.values():
            if _matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def find(self, filter, *, session=None) -> List[Dict[str, Any]]:
        self._record("find")
        return [copy.deepcopy(doc) for doc in self.docs.values() if _matches(doc, filter)]

    async def insert_one(self, document, *, session=None) -> WriteOutcome:
        self._record("insert_one")
        if document["_id"] in self.docs:
            raise StoreError("duplicate key")
        self.docs[document["_id"]] = copy.deepcopy(dict(document))
        return WriteOutcome(inserted_id=document["_id"])

    async def update_one(self, filter, update, *, session=None) -> WriteOutcome:
        self._record("update_one")
        for doc in self.docs.values():
            if not _matches(doc, filter):
                continue
            before = copy.deepcopy(doc)
            for key, value in update.get("$set", {}).items():
                doc[key] = value
            for key, value in update.get("$addToSet", {}).items():
                values = doc.setdefault(key, [])
                if value not in values:
                    values.append(value)
            for key, value in update.get("$pull", {}).items():
                doc[key] = [item for item in doc.get(key, []) if item != value]
            return WriteOutcome(matched=1, modified=int(before != doc))
        return WriteOutcome()

    async def delete_one(self, filter, *, session=None) -> WriteOutcome:
        self._record("delete_one")
        for key, doc in list(self.docs.items()):
            if _matches(doc, filter):
                del self.docs[key]
                return WriteOutcome(deleted=1)
        return WriteOutcome()

    async def delete_many(self, filter, *, session=None) -> WriteOutcome:
        self._record("delete_many")
        doomed = [key for key, doc in self.docs.items() if _matches(doc, filter)]
        for key in doomed:
            del self.docs[key]
        return WriteOutcome(deleted=len(doomed))


class InMemoryStore:
    """``DocumentStore`` whose transactions roll back every collection on error."""

    def __init__(self):
        self.collections: Dict[str, InMemoryCollection] = {}
        self.connected = False
        self.transactions = 0

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    def collection(self, name: str) -> InMemoryCollection:
        if name not in self.collections:
            self.collections[name] = InMemoryCollection(name)
        return self.collections[name]

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        snapshot = {name: copy.deepcopy(col.docs) for name, col in self.collections.items()}
        try:
            yield object()
        except BaseException:
            for name, docs in snapshot.items():
                self.collections[name].docs = docs
            raise


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def todos(store: InMemoryStore) -> InMemoryCollection:
    return store.collection("todos")

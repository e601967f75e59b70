"""Minimal MongoDB helpers shared across domain repositories.

Example usage in a domain repository:

    from db_core import MongoStore

    async def list_items(store: MongoStore):
        return await store.collection("todos").find({"owner_id": "user-123"})
"""

from .errors import StoreError
from .mongo import MongoStore, MotorCollection
from .settings import MongoSettings, settings
from .typing import Collection, DocumentStore, MongoDocument, MongoFilter, WriteOutcome

__all__ = [
    "Collection",
    "DocumentStore",
    "MongoDocument",
    "MongoFilter",
    "MongoSettings",
    "MongoStore",
    "MotorCollection",
    "StoreError",
    "WriteOutcome",
    "settings",
]

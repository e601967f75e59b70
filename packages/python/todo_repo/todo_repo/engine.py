"""Async persistence layer for todos and the parent/child links between them.

Every todo document mirrors its place in the forest twice: ``parent_id`` on the
child and the child's id inside the parent's ``children`` list. Only this
module writes either field, and multi-document mutations run inside the
store's transaction so readers never observe one side without the other.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Set, Union
from uuid import uuid4

from loguru import logger
from pydantic import ValidationError

from db_core import Collection, DocumentStore, StoreError

from .assembly import assemble_tree
from .errors import (
    InvalidOperationError,
    StoreFailureError,
    TodoNotFoundError,
    TodoValidationError,
)
from .models import STRUCTURAL_FIELDS, UPDATABLE_FIELDS, Todo, TodoStatus, TodoUpdate

COLLECTION_NAME = "todos"


def _doc_to_model(doc: Mapping[str, Any]) -> Todo:
    return Todo(
        id=str(doc.get("_id") or doc["id"]),
        text=doc.get("text") or "",
        status=doc.get("status", TodoStatus.INCOMPLETE),
        parent_id=doc.get("parent_id") or None,
        children=[str(child) for child in doc.get("children") or []],
        collapsed=bool(doc.get("collapsed", False)),
        background_color=doc.get("background_color"),
        created_at=doc["created_at"],
        owner_id=doc["owner_id"],
    )


def _scoped(owner_id: str, todo_id: str) -> Dict[str, Any]:
    return {"_id": todo_id, "owner_id": owner_id}


async def ensure_todo_indexes(store: Any) -> None:
    """Create the indexes owner-scoped queries rely on (Mongo-backed stores only)."""

    collection = store.collection(COLLECTION_NAME)
    await collection.create_index([("owner_id", 1)])
    await collection.create_index([("owner_id", 1), ("parent_id", 1)])
    logger.info("Ensured indexes on {name}", name=COLLECTION_NAME)


class TodoTreeEngine:
    """Structural operations on one owner's forest of todos.

    ``StoreError`` from the persistence layer is translated once, at each
    public operation, into ``StoreFailureError``. Cascading operations stop at
    the first failing step.
    """

    def __init__(self, store: DocumentStore, collection_name: str = COLLECTION_NAME):
        self._store = store
        self._collection_name = collection_name

    @property
    def collection(self) -> Collection:
        return self._store.collection(self._collection_name)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, owner_id: str, todo_id: str) -> Todo:
        logger.debug("Getting todo {todo_id}", todo_id=todo_id)
        try:
            doc = await self._fetch(owner_id, todo_id)
        except StoreError as exc:
            raise StoreFailureError("Failed to read todo") from exc
        return _doc_to_model(doc)

    async def list(self, owner_id: str) -> List[Todo]:
        """Return every todo of the owner, in store order."""

        logger.debug("Listing todos for {owner_id}", owner_id=owner_id)
        try:
            docs = await self.collection.find({"owner_id": owner_id})
        except StoreError as exc:
            raise StoreFailureError("Failed to list todos") from exc
        return [_doc_to_model(doc) for doc in docs]

    async def list_tree(self, owner_id: str) -> List[Todo]:
        """Return every todo of the owner with parents ahead of their subtrees."""

        return assemble_tree(await self.list(owner_id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        owner_id: str,
        text: str,
        parent_id: Optional[str] = None,
        background_color: Optional[str] = None,
    ) -> Todo:
        """Insert a todo, appending it to ``parent_id``'s children when given."""

        if not isinstance(text, str):
            raise TodoValidationError("text must be a string")
        parent_id = parent_id or None
        logger.debug("Creating todo under {parent_id}", parent_id=parent_id)

        doc: Dict[str, Any] = {
            "_id": uuid4().hex,
            "owner_id": owner_id,
            "text": text,
            "status": TodoStatus.INCOMPLETE.value,
            "parent_id": parent_id,
            "children": [],
            "collapsed": False,
            "background_color": background_color,
            "created_at": datetime.now(timezone.utc),
        }

        try:
            async with self._store.transaction() as session:
                if parent_id is not None:
                    await self._fetch(owner_id, parent_id, session=session)
                result = await self.collection.insert_one(doc, session=session)
                if not result.acknowledged:
                    raise StoreFailureError("Insert was not acknowledged")
                if parent_id is not None:
                    await self._append_child(owner_id, parent_id, doc["_id"], session=session)
        except StoreError as exc:
            raise StoreFailureError("Failed to create todo") from exc

        logger.info("Created todo {todo_id}", todo_id=doc["_id"])
        return _doc_to_model(doc)

    async def update(
        self,
        owner_id: str,
        todo_id: str,
        patch: Union[Mapping[str, Any], TodoUpdate],
    ) -> bool:
        """Patch ``text``, ``status`` or ``background_color``.

        Structural and unknown fields are dropped; links change only through
        ``reparent`` and the collapsed flag only through ``set_collapsed``.
        """

        changes = self._clean_patch(patch)
        logger.debug("Updating todo {todo_id} with {fields}", todo_id=todo_id, fields=sorted(changes))

        try:
            result = await self.collection.update_one(
                _scoped(owner_id, todo_id), {"$set": changes}
            )
        except StoreError as exc:
            raise StoreFailureError("Failed to update todo") from exc
        if not result.matched:
            raise TodoNotFoundError(f"Todo {todo_id} not found")

        logger.info("Updated todo {todo_id}", todo_id=todo_id)
        return True

    async def reparent(
        self,
        owner_id: str,
        todo_id: str,
        new_parent_id: Optional[str],
    ) -> bool:
        """Move a todo below ``new_parent_id``, or to the root level when empty.

        Every precondition is checked before the first write, so a rejected
        move leaves the existing links untouched.
        """

        new_parent_id = new_parent_id or None
        if new_parent_id == todo_id:
            raise InvalidOperationError("Cannot parent a todo to itself")
        logger.debug(
            "Reparenting todo {todo_id} to {parent_id}",
            todo_id=todo_id,
            parent_id=new_parent_id,
        )

        try:
            async with self._store.transaction() as session:
                node = await self._fetch(owner_id, todo_id, session=session)
                old_parent_id = node.get("parent_id") or None
                if old_parent_id == new_parent_id:
                    return True
                if new_parent_id is not None:
                    await self._fetch(owner_id, new_parent_id, session=session)
                    await self._reject_cycle(owner_id, todo_id, new_parent_id, session=session)

                if old_parent_id is not None:
                    await self._remove_child(owner_id, old_parent_id, todo_id, session=session)
                if new_parent_id is not None:
                    await self._append_child(owner_id, new_parent_id, todo_id, session=session)
                result = await self.collection.update_one(
                    _scoped(owner_id, todo_id),
                    {"$set": {"parent_id": new_parent_id}},
                    session=session,
                )
                if not result.matched:
                    raise StoreFailureError(f"Failed to set parent of {todo_id}")
        except StoreError as exc:
            raise StoreFailureError("Failed to reparent todo") from exc

        logger.info(
            "Reparented todo {todo_id} from {old} to {new}",
            todo_id=todo_id,
            old=old_parent_id,
            new=new_parent_id,
        )
        return True

    async def delete(self, owner_id: str, todo_id: str) -> bool:
        """Delete a todo and its entire subtree."""

        logger.debug("Deleting todo {todo_id}", todo_id=todo_id)
        try:
            async with self._store.transaction() as session:
                node = await self._fetch(owner_id, todo_id, session=session)
                parent_id = node.get("parent_id") or None
                if parent_id is not None:
                    await self._remove_child(owner_id, parent_id, todo_id, session=session)
                removed = await self._delete_subtree(owner_id, node, set(), session=session)
        except StoreError as exc:
            raise StoreFailureError("Failed to delete todo") from exc

        logger.info("Deleted todo {todo_id} ({count} records)", todo_id=todo_id, count=removed)
        return True

    async def set_collapsed(
        self,
        owner_id: str,
        todo_id: str,
        collapsed: bool,
        recursive: bool = False,
    ) -> bool:
        """Set the UI collapsed flag, optionally on every descendant as well."""

        collapsed = bool(collapsed)
        logger.debug(
            "Setting todo {todo_id} collapsed={collapsed} recursive={recursive}",
            todo_id=todo_id,
            collapsed=collapsed,
            recursive=recursive,
        )
        try:
            async with self._store.transaction() as session:
                pending = [todo_id]
                seen: Set[str] = set()
                is_target = True
                while pending:
                    current = pending.pop(0)
                    if current in seen:
                        continue
                    seen.add(current)
                    result = await self.collection.update_one(
                        _scoped(owner_id, current),
                        {"$set": {"collapsed": collapsed}},
                        session=session,
                    )
                    if not result.matched:
                        if is_target:
                            raise TodoNotFoundError(f"Todo {todo_id} not found")
                        raise StoreFailureError(f"Descendant {current} vanished")
                    is_target = False
                    if recursive:
                        doc = await self._fetch(owner_id, current, session=session)
                        pending.extend(str(child) for child in doc.get("children") or [])
        except StoreError as exc:
            raise StoreFailureError("Failed to set collapsed state") from exc

        logger.info("Set todo {todo_id} collapsed={collapsed}", todo_id=todo_id, collapsed=collapsed)
        return True

    async def clear(self, owner_id: str) -> int:
        """Remove every todo of the owner; returns the number removed."""

        logger.debug("Clearing todos for {owner_id}", owner_id=owner_id)
        try:
            result = await self.collection.delete_many({"owner_id": owner_id})
        except StoreError as exc:
            raise StoreFailureError("Failed to clear todos") from exc
        logger.info("Cleared {count} todos for {owner_id}", count=result.deleted, owner_id=owner_id)
        return result.deleted

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch(self, owner_id: str, todo_id: str, *, session: Any = None) -> Dict[str, Any]:
        doc = await self.collection.find_one(_scoped(owner_id, todo_id), session=session)
        if not doc:
            raise TodoNotFoundError(f"Todo {todo_id} not found")
        return dict(doc)

    async def _append_child(
        self, owner_id: str, parent_id: str, child_id: str, *, session: Any = None
    ) -> None:
        if parent_id == child_id:
            raise InvalidOperationError("Parent cannot equal child")
        result = await self.collection.update_one(
            _scoped(owner_id, parent_id),
            {"$addToSet": {"children": child_id}},
            session=session,
        )
        if not result.matched:
            raise StoreFailureError(f"Failed to add child to {parent_id}")

    async def _remove_child(
        self, owner_id: str, parent_id: str, child_id: str, *, session: Any = None
    ) -> None:
        """Pull ``child_id`` from its parent; a vanished parent only warrants a warning."""

        result = await self.collection.update_one(
            _scoped(owner_id, parent_id),
            {"$pull": {"children": child_id}},
            session=session,
        )
        if not result.matched:
            logger.warning(
                "Parent {parent_id} of {child_id} is missing",
                parent_id=parent_id,
                child_id=child_id,
            )

    async def _reject_cycle(
        self, owner_id: str, todo_id: str, new_parent_id: str, *, session: Any = None
    ) -> None:
        """Walk up from the new parent; reaching ``todo_id`` means a cycle."""

        seen = set()
        current: Optional[str] = new_parent_id
        while current is not None:
            if current == todo_id:
                raise InvalidOperationError("Cannot move a todo below its own descendant")
            if current in seen:
                raise InvalidOperationError(f"Ancestor chain of {new_parent_id} loops")
            seen.add(current)
            doc = await self.collection.find_one(_scoped(owner_id, current), session=session)
            if not doc:
                break
            current = doc.get("parent_id") or None

    async def _delete_subtree(
        self,
        owner_id: str,
        node: Mapping[str, Any],
        visited: Set[str],
        *,
        session: Any = None,
    ) -> int:
        """Post-order delete of ``node`` and everything below it.

        ``visited`` holds ids already claimed by this cascade, so looping
        ``children`` links are deleted once instead of recursed into forever.
        """

        node_id = str(node["_id"])
        visited.add(node_id)
        child_ids = [str(child) for child in node.get("children") or []]
        linked = await self.collection.find(
            {"owner_id": owner_id, "parent_id": node_id}, session=session
        )
        for doc in linked:
            if str(doc["_id"]) not in child_ids:
                child_ids.append(str(doc["_id"]))

        removed = 0
        for child_id in child_ids:
            if child_id in visited:
                logger.warning(
                    "Skipping {child_id} below {node_id}: already in this cascade",
                    child_id=child_id,
                    node_id=node_id,
                )
                continue
            child = await self.collection.find_one(_scoped(owner_id, child_id), session=session)
            if not child:
                logger.warning(
                    "Skipping missing child {child_id} of {node_id}",
                    child_id=child_id,
                    node_id=node_id,
                )
                continue
            removed += await self._delete_subtree(owner_id, child, visited, session=session)

        result = await self.collection.delete_one(_scoped(owner_id, node_id), session=session)
        if not result.deleted:
            raise StoreFailureError(f"Failed to delete todo {node_id}")
        return removed + 1

    @staticmethod
    def _clean_patch(patch: Union[Mapping[str, Any], TodoUpdate]) -> Dict[str, Any]:
        if isinstance(patch, TodoUpdate):
            raw: Dict[str, Any] = patch.model_dump(exclude_unset=True)
        elif isinstance(patch, Mapping):
            raw = dict(patch)
            if "backgroundColor" in raw and "background_color" not in raw:
                raw["background_color"] = raw.pop("backgroundColor")
        else:
            raise TodoValidationError("patch must be an object")

        stripped = sorted(key for key in raw if key not in UPDATABLE_FIELDS)
        if stripped:
            structural = [key for key in stripped if key in STRUCTURAL_FIELDS]
            logger.warning(
                "Ignoring non-updatable fields {fields} (structural: {structural})",
                fields=stripped,
                structural=structural,
            )
        allowed = {key: value for key, value in raw.items() if key in UPDATABLE_FIELDS}
        if not allowed:
            raise TodoValidationError("No updatable fields in patch")

        try:
            validated = TodoUpdate.model_validate(allowed)
        except ValidationError as exc:
            raise TodoValidationError("Invalid todo patch") from exc

        changes = validated.model_dump(include=set(allowed))
        if changes.get("status") is not None:
            changes["status"] = TodoStatus(changes["status"]).value
        if "text" in changes and changes["text"] is None:
            raise TodoValidationError("text cannot be null")
        if "status" in changes and changes["status"] is None:
            raise TodoValidationError("status cannot be null")
        return changes

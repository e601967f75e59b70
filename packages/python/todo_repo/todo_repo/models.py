"""Pydantic models describing todo records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Fields a client may patch through ``update``.
UPDATABLE_FIELDS = frozenset({"text", "status", "background_color"})

# Fields only the engine maintains.
STRUCTURAL_FIELDS = frozenset(
    {"id", "_id", "parent_id", "children", "owner_id", "created_at", "collapsed"}
)


class TodoStatus(str, Enum):
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"

    @classmethod
    def coerce(cls, value: Any) -> "TodoStatus":
        """Accept legacy boolean/int flags alongside enum values."""

        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls.COMPLETE if value else cls.INCOMPLETE
        return cls(value)


class Todo(BaseModel):
    """Representation of a todo entry stored in MongoDB."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    status: TodoStatus = TodoStatus.INCOMPLETE
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    children: List[str] = Field(default_factory=list)
    collapsed: bool = False
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    created_at: datetime = Field(alias="createdAt")
    owner_id: str = Field(alias="ownerId")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> TodoStatus:
        return TodoStatus.coerce(value)

    @property
    def is_root(self) -> bool:
        return not self.parent_id


class TodoCreate(BaseModel):
    """Payload for creating a todo, optionally below an existing parent."""

    model_config = ConfigDict(populate_by_name=True)

    text: str = ""
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")


class TodoUpdate(BaseModel):
    """Payload for patching the non-structural fields of a todo."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: Optional[str] = None
    status: Optional[TodoStatus] = None
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Optional[TodoStatus]:
        if value is None:
            return None
        return TodoStatus.coerce(value)

"""FastAPI router exposing todo tree operations."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from todo_repo import Todo, TodoCreate, TodoTreeEngine

from .identity import get_owner_id

router = APIRouter(prefix="/todo", tags=["todo"])


class ReparentPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parent_id: Optional[str] = Field(default=None, alias="parentId")


class CollapsedPayload(BaseModel):
    collapsed: bool
    recursive: bool = False


class OkResponse(BaseModel):
    ok: bool = True


class ClearedResponse(BaseModel):
    deleted: int


def get_engine(request: Request) -> TodoTreeEngine:
    """Return the engine the application bound at startup."""

    return request.app.state.todo_engine


@router.get("", response_model=list[Todo])
async def list_todos(
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Return every todo of the owner, each parent ahead of its subtree."""

    return await engine.list_tree(owner_id)


@router.get("/{todo_id}", response_model=Todo)
async def get_todo(
    todo_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    return await engine.get(owner_id, todo_id)


@router.post("", response_model=Todo)
async def create_todo(
    payload: TodoCreate,
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Create a todo at the root level or below ``parentId``."""

    return await engine.create(
        owner_id,
        payload.text,
        parent_id=payload.parent_id,
        background_color=payload.background_color,
    )


@router.put("/{todo_id}", response_model=OkResponse)
async def update_todo(
    todo_id: str,
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Update text, status or background colour; other fields are ignored."""

    await engine.update(owner_id, todo_id, payload)
    return OkResponse()


@router.post("/parent/{todo_id}", response_model=OkResponse)
async def reparent_todo(
    todo_id: str,
    payload: ReparentPayload,
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Move a todo below another one, or to the root level when ``parentId`` is empty."""

    await engine.reparent(owner_id, todo_id, payload.parent_id)
    return OkResponse()


@router.post("/collapsed/{todo_id}", response_model=OkResponse)
async def set_collapsed(
    todo_id: str,
    payload: CollapsedPayload,
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    await engine.set_collapsed(owner_id, todo_id, payload.collapsed, recursive=payload.recursive)
    return OkResponse()


@router.delete("/{todo_id}", response_model=OkResponse)
async def delete_todo(
    todo_id: str,
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Delete a todo and its subtree."""

    await engine.delete(owner_id, todo_id)
    return OkResponse()


@router.delete("", response_model=ClearedResponse)
async def clear_todos(
    owner_id: str = Depends(get_owner_id),
    engine: TodoTreeEngine = Depends(get_engine),
):
    """Remove every todo of the owner."""

    return ClearedResponse(deleted=await engine.clear(owner_id))

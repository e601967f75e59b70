"""Todo repository with hierarchical todo operations."""

from .assembly import assemble_tree, iter_tree
from .engine import COLLECTION_NAME, TodoTreeEngine, ensure_todo_indexes
from .errors import (
    InvalidOperationError,
    StoreFailureError,
    TodoError,
    TodoNotFoundError,
    TodoValidationError,
)
from .models import Todo, TodoCreate, TodoStatus, TodoUpdate

__all__ = [
    "COLLECTION_NAME",
    "InvalidOperationError",
    "StoreFailureError",
    "Todo",
    "TodoCreate",
    "TodoError",
    "TodoNotFoundError",
    "TodoStatus",
    "TodoTreeEngine",
    "TodoUpdate",
    "TodoValidationError",
    "assemble_tree",
    "ensure_todo_indexes",
    "iter_tree",
]

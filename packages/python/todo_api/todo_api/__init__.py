"""Expose the todo FastAPI router and its dependencies."""

from .errors import register_error_handlers
from .identity import create_identity_client, extract_owner_id, get_owner_id, whoami
from .router import get_engine, router

__all__ = [
    "create_identity_client",
    "extract_owner_id",
    "get_engine",
    "get_owner_id",
    "register_error_handlers",
    "router",
    "whoami",
]

"""Configuration helpers for MongoDB connections used by db_core.

Applications build a ``MongoSettings`` instance at startup (or rely on the
module-level default) and hand it to ``MongoStore``. Values come from the
environment so a ``.env`` file loaded by the application is honoured.
"""
import os

from loguru import logger
from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class MongoSettings(BaseModel):
    """Basic MongoDB configuration that domain apps can extend if needed."""

    uri: str = Field(
        default_factory=lambda: os.getenv("MONGO_URI", "mongodb://localhost:27017")
    )
    db_name: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "todos"))
    timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("MONGO_TIMEOUT_SECONDS", "5"))
    )
    # Multi-document transactions need a replica set or sharded cluster.
    use_transactions: bool = Field(
        default_factory=lambda: _env_flag("MONGO_USE_TRANSACTIONS")
    )


def _default_settings() -> "MongoSettings":
    """Provide a factory to keep settings override logic simple in the future."""

    return MongoSettings()


settings: MongoSettings = _default_settings()
logger.info(
    "MongoSettings initialized with uri={uri} db_name={db_name} transactions={tx}",
    uri=settings.uri,
    db_name=settings.db_name,
    tx=settings.use_transactions,
)

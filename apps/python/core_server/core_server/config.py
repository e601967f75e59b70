"""Settings for the todo server FastAPI application."""

from __future__ import annotations

import os
from typing import List

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from db_core import MongoSettings

# Search for the nearest .env so running from subdirectories still loads root config.
load_dotenv(find_dotenv(usecwd=True))


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def _default_cors_origins() -> List[str]:
    """Explicit TODO_CORS_ALLOW_ORIGINS wins, else the front-end base URL."""

    raw = os.getenv("TODO_CORS_ALLOW_ORIGINS")
    if raw:
        return _split_origins(raw)
    app_url = os.getenv("APP_BASE_URL")
    return [app_url.strip()] if app_url else []


class CoreSettings(BaseModel):
    """API metadata, logging and storage configuration for the server."""

    api_title: str = "Todo Tree API"
    api_version: str = "0.1.0"
    cors_allow_origins: List[str] = Field(default_factory=_default_cors_origins)
    log_level: str = Field(
        default_factory=lambda: os.getenv("LOG_LEVEL") or os.getenv("LOGURU_LEVEL") or "INFO"
    )
    mongo: MongoSettings = Field(default_factory=MongoSettings)


settings = CoreSettings()

"""Configuration for the todo API package."""

import os

from pydantic import BaseModel, Field


class TodoApiSettings(BaseModel):
    """Settings for resolving the requesting identity."""

    identity_public_url: str = Field(
        default_factory=lambda: os.getenv("IDENTITY_PUBLIC_URL", "http://identity:4433")
    )
    timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5"))
    )


settings = TodoApiSettings()

"""FastAPI application composing the todo API router."""

from __future__ import annotations

import os
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from db_core import DocumentStore, MongoStore
from todo_api import create_identity_client, register_error_handlers, router as todo_router
from todo_repo import TodoTreeEngine, ensure_todo_indexes

from .config import CoreSettings, settings as default_settings


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    logger.info("Logger configured at {level} level", level=level.upper())


def create_app(
    store: Optional[DocumentStore] = None,
    settings: Optional[CoreSettings] = None,
    identity_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the application around ``store`` (a ``MongoStore`` by default).

    The store is connected when the app starts and closed when it stops. An
    identity client is opened for the app's lifetime unless the caller
    passes one, in which case the caller keeps ownership of it.
    """

    settings = settings or default_settings
    _configure_logging(settings.log_level)
    store = store if store is not None else MongoStore(settings.mongo)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await store.connect()
        if isinstance(store, MongoStore):
            await ensure_todo_indexes(store)
        app.state.todo_engine = TodoTreeEngine(store)
        owns_client = identity_client is None
        app.state.identity_client = create_identity_client() if owns_client else identity_client
        try:
            yield
        finally:
            if owns_client:
                await app.state.identity_client.aclose()
            await store.close()

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)

    # Allow the front-end origins (with credentials) to talk to this API.
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    logger.info("CORS middleware added {origins}", origins=settings.cors_allow_origins)

    register_error_handlers(app)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        """Simple liveness endpoint for load balancers and probes."""

        return {"status": "ok"}

    app.include_router(todo_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("TODO_SERVER_PORT", "8000"))
    uvicorn.run(app, host="0.0.0.0", port=port)

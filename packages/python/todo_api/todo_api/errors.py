"""Translate engine errors into ``{"error": ...}`` JSON responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException

from todo_repo import (
    InvalidOperationError,
    StoreFailureError,
    TodoError,
    TodoNotFoundError,
    TodoValidationError,
)

_STATUS_BY_ERROR: dict[type[TodoError], int] = {
    TodoNotFoundError: 404,
    InvalidOperationError: 400,
    TodoValidationError: 400,
    StoreFailureError: 502,
}


def status_for(exc: TodoError) -> int:
    for error_type, status in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 500


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _handle_todo_error(request: Request, exc: TodoError) -> JSONResponse:
    status_code = status_for(exc)
    if isinstance(exc, StoreFailureError):
        # Store internals stay in the logs.
        logger.error(
            "{method} {path} failed: {error!r}",
            method=request.method,
            path=request.url.path,
            error=exc.__cause__ or exc,
        )
        return _error(status_code, "Storage unavailable")
    logger.info(
        "{method} {path} -> {status}: {error}",
        method=request.method,
        path=request.url.path,
        status=status_code,
        error=exc,
    )
    return _error(status_code, str(exc))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return _error(400, f"{location}: {message}" if location else message)


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TodoError, _handle_todo_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(HTTPException, _handle_http_exception)

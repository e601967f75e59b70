"""Resolve which owner a request acts for from its identity session cookie."""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional

import httpx
from fastapi import HTTPException, Request
from loguru import logger

from .config import TodoApiSettings, settings as default_settings

WHOAMI_PATH = "/sessions/whoami"


def create_identity_client(api_settings: Optional[TodoApiSettings] = None) -> httpx.AsyncClient:
    """Build the client the application keeps open for session lookups."""

    api_settings = api_settings or default_settings
    return httpx.AsyncClient(
        base_url=api_settings.identity_public_url.rstrip("/"),
        timeout=api_settings.timeout_seconds,
    )


async def whoami(client: httpx.AsyncClient, cookie: str) -> dict[str, Any]:
    """Exchange a session cookie for the identity document it belongs to.

    A rejected session is a 401; anything else that keeps us from an
    identity is the identity service's fault and surfaces as a 502.
    """

    started = time.perf_counter()
    try:
        resp = await client.get(WHOAMI_PATH, headers={"Cookie": cookie})
    except httpx.RequestError as exc:
        logger.warning("Identity lookup failed: {error}", error=exc)
        raise HTTPException(status_code=502, detail="Identity service unavailable") from exc
    logger.debug(
        "Identity lookup returned {status} after {elapsed:.1f} ms",
        status=resp.status_code,
        elapsed=(time.perf_counter() - started) * 1000,
    )

    if resp.status_code in (401, 403):
        raise HTTPException(status_code=401, detail="Not authenticated")
    if resp.status_code != 200:
        raise HTTPException(status_code=502, detail="Identity service error")

    identity = resp.json().get("identity")
    if not isinstance(identity, dict):
        raise HTTPException(status_code=502, detail="Identity response missing identity")
    return identity


def _non_blank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_owner_id(identity: Mapping[str, Any]) -> str:
    """Return the id every todo query of this identity is scoped to.

    An ``owner_id`` trait lets several identities share one list; without it
    the identity owns its todos itself.
    """

    traits = identity.get("traits") or {}
    owner_id = _non_blank(traits.get("owner_id")) if isinstance(traits, dict) else None
    owner_id = owner_id or _non_blank(identity.get("id"))
    if owner_id is None:
        raise HTTPException(status_code=401, detail="Identity has no id")
    return owner_id


async def get_owner_id(request: Request) -> str:
    """FastAPI dependency yielding the owner id, resolved once per request."""

    owner_id = getattr(request.state, "owner_id", None)
    if owner_id is not None:
        return owner_id

    cookie = request.headers.get("cookie")
    if not cookie:
        raise HTTPException(status_code=401, detail="Not authenticated")

    identity = await whoami(request.app.state.identity_client, cookie)
    owner_id = extract_owner_id(identity)
    request.state.owner_id = owner_id
    return owner_id

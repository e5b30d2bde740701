"""
Auth dependencies for FastAPI routes.

Routes receive an `Actor` (possibly anonymous); services decide whether the
operation needs an authenticated one.
"""

from __future__ import annotations

import asyncpg
from fastapi import Depends, Header

from core import db

from . import service
from .permissions import Actor


def _extract_bearer_token(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    if not raw:
        return None

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        return None

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        return None
    return token


async def get_session_token(
    authorization: str | None = Header(default=None),
    x_authorization: str | None = Header(default=None),
) -> str | None:
    # X-Authorization carries the bare token (older clients).
    return _extract_bearer_token(authorization) or (x_authorization or "").strip() or None


async def get_actor(
    token: str | None = Depends(get_session_token),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Actor:
    return await service.resolve_actor(conn, token)

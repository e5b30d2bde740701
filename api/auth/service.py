"""
Session resolution: bearer token -> actor.
"""

from __future__ import annotations

import asyncpg

from . import repository, security
from .permissions import ANONYMOUS, Actor


async def resolve_actor(conn: asyncpg.Connection, raw_token: str | None) -> Actor:
    """
    Unknown, missing or cleared tokens resolve to ANONYMOUS, never to an error.
    """
    token = security.normalize_token(raw_token)
    if token is None:
        return ANONYMOUS

    row = await repository.get_user_by_token(conn, token)
    if row is None:
        return ANONYMOUS
    return Actor(user_id=int(row["id"]), auth_token=str(row["auth_token"]))

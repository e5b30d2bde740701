"""
Auth persistence helpers.
"""

from __future__ import annotations

import asyncpg

from core import db


async def get_user_by_token(conn: asyncpg.Connection, token: str) -> dict | None:
    return await db.fetch_unique(
        conn,
        """
        SELECT id, auth_token
        FROM "user"
        WHERE auth_token = $1
          AND auth_token IS NOT NULL
        """,
        token,
    )

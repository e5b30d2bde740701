"""
User persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

# Attribute name -> column. Only these may be written by update_user().
EDITABLE_COLUMNS = {
    "email": "email",
    "first_name": "first_name",
    "last_name": "last_name",
    "password": "password",
}


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def email_in_use(
    conn: asyncpg.Connection,
    email: str,
    *,
    exclude_user_id: int | None = None,
) -> bool:
    row = await db.fetch_one(
        conn,
        """
        SELECT 1 AS ok
        FROM "user"
        WHERE lower(email) = lower($1)
          AND ($2::int IS NULL OR id <> $2::int)
        LIMIT 1
        """,
        normalize_email(email),
        exclude_user_id,
    )
    return row is not None


async def insert_user(
    conn: asyncpg.Connection,
    *,
    email: str,
    first_name: str,
    last_name: str,
    password_hash: str,
) -> int:
    row = await db.fetch_one(
        conn,
        """
        INSERT INTO "user" (email, first_name, last_name, password)
        VALUES ($1, $2, $3, $4)
        RETURNING id
        """,
        normalize_email(email),
        first_name,
        last_name,
        password_hash,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return int(row["id"])


async def get_user_by_email(conn: asyncpg.Connection, email: str) -> dict | None:
    return await db.fetch_unique(
        conn,
        """
        SELECT id, email, first_name, last_name, password, auth_token, image_filename
        FROM "user"
        WHERE lower(email) = lower($1)
        """,
        normalize_email(email),
    )


async def get_user_by_id(
    conn: asyncpg.Connection,
    user_id: int,
    *,
    for_update: bool = False,
) -> dict | None:
    lock = " FOR UPDATE" if for_update else ""
    return await db.fetch_one(
        conn,
        f"""
        SELECT id, email, first_name, last_name, password, auth_token, image_filename
        FROM "user"
        WHERE id = $1{lock}
        """,
        user_id,
    )


async def set_auth_token(conn: asyncpg.Connection, user_id: int, token: str) -> int:
    return await db.execute(
        conn,
        """
        UPDATE "user"
        SET auth_token = $2
        WHERE id = $1
        """,
        user_id,
        token,
    )


async def clear_auth_token(conn: asyncpg.Connection, token: str) -> int:
    return await db.execute(
        conn,
        """
        UPDATE "user"
        SET auth_token = NULL
        WHERE auth_token = $1
        """,
        token,
    )


async def update_user(conn: asyncpg.Connection, user_id: int, changes: dict[str, Any]) -> int:
    if not changes:
        return 0
    assignments: list[str] = []
    args: list[Any] = []
    for name, value in changes.items():
        column = EDITABLE_COLUMNS[name]
        if name == "email":
            value = normalize_email(value)
        args.append(value)
        assignments.append(f"{column} = ${len(args)}")
    args.append(user_id)
    return await db.execute(
        conn,
        f'UPDATE "user" SET {", ".join(assignments)} WHERE id = ${len(args)}',
        *args,
    )


async def set_user_image(conn: asyncpg.Connection, user_id: int, filename: str | None) -> int:
    return await db.execute(
        conn,
        """
        UPDATE "user"
        SET image_filename = $2
        WHERE id = $1
        """,
        user_id,
        filename,
    )

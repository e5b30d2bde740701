"""
Support tier persistence (raw SQL).
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

EDITABLE_COLUMNS = {
    "title": "title",
    "description": "description",
    "cost": "cost",
}


async def list_support_tiers(
    conn: asyncpg.Connection,
    petition_id: int,
    *,
    for_update: bool = False,
) -> list[dict[str, Any]]:
    lock = " FOR UPDATE" if for_update else ""
    return await db.fetch_all(
        conn,
        f"""
        SELECT id, petition_id, title, description, cost
        FROM support_tier
        WHERE petition_id = $1
        ORDER BY id ASC{lock}
        """,
        petition_id,
    )


async def insert_support_tier(
    conn: asyncpg.Connection,
    *,
    petition_id: int,
    title: str,
    description: str,
    cost: int,
) -> int:
    row = await db.fetch_one(
        conn,
        """
        INSERT INTO support_tier (petition_id, title, description, cost)
        VALUES ($1, $2, $3, $4)
        RETURNING id
        """,
        petition_id,
        title,
        description,
        cost,
    )
    if row is None:
        raise RuntimeError("Failed to insert support tier.")
    return int(row["id"])


async def count_tier_supporters(conn: asyncpg.Connection, tier_id: int) -> int:
    value = await db.fetch_value(
        conn,
        "SELECT count(*) FROM supporter WHERE support_tier_id = $1",
        tier_id,
    )
    return int(value or 0)


async def update_support_tier(conn: asyncpg.Connection, tier_id: int, changes: dict[str, Any]) -> int:
    if not changes:
        return 0
    assignments: list[str] = []
    args: list[Any] = []
    for name, value in changes.items():
        args.append(value)
        assignments.append(f"{EDITABLE_COLUMNS[name]} = ${len(args)}")
    args.append(tier_id)
    return await db.execute(
        conn,
        f"UPDATE support_tier SET {', '.join(assignments)} WHERE id = ${len(args)}",
        *args,
    )


async def delete_support_tier(conn: asyncpg.Connection, tier_id: int) -> int:
    return await db.execute(conn, "DELETE FROM support_tier WHERE id = $1", tier_id)

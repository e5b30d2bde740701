"""
Petition persistence.
This module is where petition-related SQL lives (listing SQL is assembled
in `listing.py`).
"""

from __future__ import annotations

from typing import Any, Sequence

import asyncpg

from core import db

from . import listing

# Attribute name -> column. Only these may be written by update_petition().
EDITABLE_COLUMNS = {
    "title": "title",
    "description": "description",
    "category_id": "category_id",
}


async def list_categories(conn: asyncpg.Connection) -> list[dict[str, Any]]:
    return await db.fetch_all(
        conn,
        """
        SELECT id AS category_id, name
        FROM category
        ORDER BY id ASC
        """,
    )


async def count_existing_categories(conn: asyncpg.Connection, category_ids: Sequence[int]) -> int:
    value = await db.fetch_value(
        conn,
        """
        SELECT count(*)
        FROM category
        WHERE id = ANY($1::int[])
        """,
        sorted(set(category_ids)),
    )
    return int(value or 0)


async def list_petitions(conn: asyncpg.Connection, criteria: listing.ListingCriteria) -> list[dict[str, Any]]:
    """
    Full filtered and sorted result, not paginated.
    """
    sql, params = listing.build_listing_query(criteria)
    return await db.fetch_all(conn, sql, *params)


async def title_in_use(
    conn: asyncpg.Connection,
    title: str,
    *,
    exclude_petition_id: int | None = None,
) -> bool:
    row = await db.fetch_one(
        conn,
        """
        SELECT 1 AS ok
        FROM petition
        WHERE title = $1
          AND ($2::int IS NULL OR id <> $2::int)
        LIMIT 1
        """,
        title,
        exclude_petition_id,
    )
    return row is not None


async def insert_petition(
    conn: asyncpg.Connection,
    *,
    title: str,
    description: str,
    category_id: int,
    owner_id: int,
) -> int:
    row = await db.fetch_one(
        conn,
        """
        INSERT INTO petition (title, description, creation_date, owner_id, category_id)
        VALUES ($1, $2, now(), $3, $4)
        RETURNING id
        """,
        title,
        description,
        owner_id,
        category_id,
    )
    if row is None:
        raise RuntimeError("Failed to insert petition.")
    return int(row["id"])


async def get_petition(
    conn: asyncpg.Connection,
    petition_id: int,
    *,
    for_update: bool = False,
) -> dict[str, Any] | None:
    lock = " FOR UPDATE" if for_update else ""
    return await db.fetch_one(
        conn,
        f"""
        SELECT id, title, description, category_id, owner_id, creation_date, image_filename
        FROM petition
        WHERE id = $1{lock}
        """,
        petition_id,
    )


async def get_petition_detail(conn: asyncpg.Connection, petition_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        conn,
        """
        SELECT
          p.id AS petition_id,
          p.title,
          p.category_id,
          p.owner_id,
          u.first_name AS owner_first_name,
          u.last_name AS owner_last_name,
          COALESCE(stats.number_of_supporters, 0) AS number_of_supporters,
          p.creation_date,
          p.description,
          COALESCE(stats.money_raised, 0) AS money_raised
        FROM petition p
        JOIN "user" u ON u.id = p.owner_id
        LEFT JOIN LATERAL (
          SELECT
            count(s.id) AS number_of_supporters,
            sum(t.cost) AS money_raised
          FROM supporter s
          JOIN support_tier t ON t.id = s.support_tier_id
          WHERE t.petition_id = p.id
        ) stats ON true
        WHERE p.id = $1
        """,
        petition_id,
    )


async def update_petition(conn: asyncpg.Connection, petition_id: int, changes: dict[str, Any]) -> int:
    if not changes:
        return 0
    assignments: list[str] = []
    args: list[Any] = []
    for name, value in changes.items():
        args.append(value)
        assignments.append(f"{EDITABLE_COLUMNS[name]} = ${len(args)}")
    args.append(petition_id)
    return await db.execute(
        conn,
        f"UPDATE petition SET {', '.join(assignments)} WHERE id = ${len(args)}",
        *args,
    )


async def count_petition_supporters(conn: asyncpg.Connection, petition_id: int) -> int:
    value = await db.fetch_value(
        conn,
        """
        SELECT count(s.id)
        FROM supporter s
        JOIN support_tier t ON t.id = s.support_tier_id
        WHERE t.petition_id = $1
        """,
        petition_id,
    )
    return int(value or 0)


async def delete_petition(conn: asyncpg.Connection, petition_id: int) -> int:
    """
    Delete a petition and its support tiers. Callers check supporters first.
    """
    await db.execute(conn, "DELETE FROM support_tier WHERE petition_id = $1", petition_id)
    return await db.execute(conn, "DELETE FROM petition WHERE id = $1", petition_id)


async def list_supporters(conn: asyncpg.Connection, petition_id: int) -> list[dict[str, Any]]:
    return await db.fetch_all(
        conn,
        """
        SELECT
          s.id AS support_id,
          s.support_tier_id,
          s.message,
          u.id AS supporter_id,
          u.first_name AS supporter_first_name,
          u.last_name AS supporter_last_name,
          s.timestamp
        FROM supporter s
        JOIN support_tier t ON t.id = s.support_tier_id
        JOIN "user" u ON u.id = s.user_id
        WHERE t.petition_id = $1
        ORDER BY s.timestamp DESC, s.id DESC
        """,
        petition_id,
    )


async def set_petition_image(conn: asyncpg.Connection, petition_id: int, filename: str | None) -> int:
    return await db.execute(
        conn,
        """
        UPDATE petition
        SET image_filename = $2
        WHERE id = $1
        """,
        petition_id,
        filename,
    )

"""
Petition business logic.

Mutations follow one shape inside a single transaction:
lock the petition row -> authorize the actor against its owner -> check
invariants -> write. Any ServiceError raised on the way rolls the whole
transaction back.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from auth import permissions
from auth.permissions import Actor
from core import validation
from core.outcomes import OperationResult, Outcome, ServiceError, created, ok
from tiers import repository as tiers_repository

from . import listing, repository, schemas

logger = logging.getLogger(__name__)


def _petition_summary(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "petitionId": int(row["petition_id"]),
        "title": row["title"],
        "categoryId": int(row["category_id"]),
        "ownerId": int(row["owner_id"]),
        "ownerFirstName": row["owner_first_name"],
        "ownerLastName": row["owner_last_name"],
        "numberOfSupporters": int(row["number_of_supporters"] or 0),
        "creationDate": row["creation_date"],
        "supportingCost": row["supporting_cost"],
    }


def _tier_body(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "supportTierId": int(row["id"]),
        "title": row["title"],
        "description": row["description"],
        "cost": int(row["cost"]),
    }


def build_criteria(
    *,
    q: str | None = None,
    category_ids: list[int] | None = None,
    supporting_cost: int | None = None,
    owner_id: int | None = None,
    supporter_id: int | None = None,
    sort_by: str | None = None,
    start_index: int | None = None,
    count: int | None = None,
) -> listing.ListingCriteria:
    try:
        sort_key = listing.parse_sort_key(sort_by)
    except ValueError as exc:
        raise ServiceError(Outcome.BAD_REQUEST, f"Unknown sortBy value '{sort_by}'.") from exc

    for name, value in (("startIndex", start_index), ("count", count), ("supportingCost", supporting_cost)):
        if value is not None and value < 0:
            raise ServiceError(Outcome.BAD_REQUEST, f"{name} must be >= 0.")

    return listing.ListingCriteria(
        q=q,
        category_ids=tuple(category_ids or ()),
        supporting_cost=supporting_cost,
        owner_id=owner_id,
        supporter_id=supporter_id,
        sort_by=sort_key,
        start_index=start_index,
        count=count,
    )


async def list_petitions(conn: asyncpg.Connection, criteria: listing.ListingCriteria) -> OperationResult:
    if criteria.category_ids:
        wanted = set(criteria.category_ids)
        if await repository.count_existing_categories(conn, sorted(wanted)) != len(wanted):
            raise ServiceError(Outcome.BAD_REQUEST, "Unknown categoryIds.")

    rows = await repository.list_petitions(conn, criteria)
    if not rows:
        # Long-standing API contract: an empty result is reported as 400.
        raise ServiceError(Outcome.BAD_REQUEST, "No petitions match the given filters.")

    page = listing.paginate(rows, criteria.start_index, criteria.count)
    return ok({"petitions": [_petition_summary(row) for row in page], "count": len(rows)})


async def get_petition(conn: asyncpg.Connection, petition_id: int) -> OperationResult:
    row = await repository.get_petition_detail(conn, petition_id)
    if row is None:
        raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")

    tiers = await tiers_repository.list_support_tiers(conn, petition_id)
    return ok(
        {
            "petitionId": int(row["petition_id"]),
            "title": row["title"],
            "categoryId": int(row["category_id"]),
            "ownerId": int(row["owner_id"]),
            "ownerFirstName": row["owner_first_name"],
            "ownerLastName": row["owner_last_name"],
            "numberOfSupporters": int(row["number_of_supporters"] or 0),
            "creationDate": row["creation_date"],
            "description": row["description"],
            "moneyRaised": int(row["money_raised"] or 0),
            "supportTiers": [_tier_body(tier) for tier in tiers],
        }
    )


async def list_categories(conn: asyncpg.Connection) -> OperationResult:
    rows = await repository.list_categories(conn)
    return ok([{"categoryId": int(row["category_id"]), "name": row["name"]} for row in rows])


async def list_supporters(conn: asyncpg.Connection, petition_id: int) -> OperationResult:
    if await repository.get_petition(conn, petition_id) is None:
        raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")

    rows = await repository.list_supporters(conn, petition_id)
    return ok(
        [
            {
                "supportId": int(row["support_id"]),
                "supportTierId": int(row["support_tier_id"]),
                "message": row["message"],
                "supporterId": int(row["supporter_id"]),
                "supporterFirstName": row["supporter_first_name"],
                "supporterLastName": row["supporter_last_name"],
                "timestamp": row["timestamp"],
            }
            for row in rows
        ]
    )


async def _require_category(conn: asyncpg.Connection, category_id: int) -> None:
    if await repository.count_existing_categories(conn, [category_id]) != 1:
        raise ServiceError(Outcome.BAD_REQUEST, "Unknown categoryId.")


async def create_petition(conn: asyncpg.Connection, actor: Actor, payload: Any) -> OperationResult:
    owner_id = permissions.require_authenticated(actor)
    request = validation.parse(schemas.PetitionCreate, payload)

    try:
        async with conn.transaction():
            await _require_category(conn, request.category_id)
            if await repository.title_in_use(conn, request.title):
                raise ServiceError(Outcome.CONFLICT, "Petition title already exists.")

            petition_id = await repository.insert_petition(
                conn,
                title=request.title,
                description=request.description,
                category_id=request.category_id,
                owner_id=owner_id,
            )
            for tier in request.support_tiers:
                await tiers_repository.insert_support_tier(
                    conn,
                    petition_id=petition_id,
                    title=tier.title,
                    description=tier.description,
                    cost=tier.cost,
                )
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Petition title already exists.") from exc

    logger.info("petition_created petition_id=%s owner_id=%s", petition_id, owner_id)
    return created({"petitionId": petition_id})


async def edit_petition(
    conn: asyncpg.Connection,
    actor: Actor,
    petition_id: int,
    payload: Any,
) -> OperationResult:
    permissions.require_authenticated(actor)
    request = validation.parse(schemas.PetitionEdit, payload)
    changes = validation.supplied_fields(request)

    try:
        async with conn.transaction():
            petition = await repository.get_petition(conn, petition_id, for_update=True)
            if petition is None:
                raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")
            permissions.require_owner(actor, petition["owner_id"], resource="petition")

            if "category_id" in changes:
                await _require_category(conn, changes["category_id"])
            if "title" in changes and await repository.title_in_use(
                conn, changes["title"], exclude_petition_id=petition_id
            ):
                raise ServiceError(Outcome.CONFLICT, "Petition title already exists.")

            if changes:
                updated = await repository.update_petition(conn, petition_id, changes)
                if updated != 1:
                    raise RuntimeError(f"Petition update touched {updated} rows.")
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Petition title already exists.") from exc

    logger.info("petition_updated petition_id=%s fields=%s", petition_id, sorted(changes))
    return ok()


async def delete_petition(conn: asyncpg.Connection, actor: Actor, petition_id: int) -> OperationResult:
    permissions.require_authenticated(actor)

    async with conn.transaction():
        petition = await repository.get_petition(conn, petition_id, for_update=True)
        if petition is None:
            raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")
        permissions.require_owner(actor, petition["owner_id"], resource="petition")

        # Lock the tiers too so no supporter can be attached mid-delete.
        await tiers_repository.list_support_tiers(conn, petition_id, for_update=True)
        if await repository.count_petition_supporters(conn, petition_id) > 0:
            raise ServiceError(Outcome.FORBIDDEN, "Cannot delete a petition with supporters.")

        deleted = await repository.delete_petition(conn, petition_id)
        if deleted != 1:
            raise RuntimeError(f"Petition delete touched {deleted} rows.")

    logger.info("petition_deleted petition_id=%s owner_id=%s", petition_id, actor.user_id)
    return ok()

"""
Support tier business logic.

Every operation locks the parent petition row first, so the tier count and
title checks below cannot race against a concurrent add/edit on the same
petition. The target tier row is locked before its supporters are counted.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from auth import permissions
from auth.permissions import Actor
from core import validation
from core.outcomes import OperationResult, Outcome, ServiceError, created, ok
from petitions import repository as petitions_repository

from . import repository, schemas

logger = logging.getLogger(__name__)


async def _lock_owned_petition(conn: asyncpg.Connection, actor: Actor, petition_id: int) -> dict[str, Any]:
    petition = await petitions_repository.get_petition(conn, petition_id, for_update=True)
    if petition is None:
        raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")
    permissions.require_owner(actor, petition["owner_id"], resource="petition")
    return petition


def _find_tier(tiers: list[dict[str, Any]], tier_id: int) -> dict[str, Any]:
    for tier in tiers:
        if int(tier["id"]) == tier_id:
            return tier
    raise ServiceError(Outcome.NOT_FOUND, "No support tier with id for this petition.")


def _title_taken(tiers: list[dict[str, Any]], title: str, *, exclude_tier_id: int | None = None) -> bool:
    return any(tier["title"] == title and int(tier["id"]) != exclude_tier_id for tier in tiers)


async def _require_no_supporters(conn: asyncpg.Connection, tier_id: int) -> None:
    if await repository.count_tier_supporters(conn, tier_id) > 0:
        raise ServiceError(Outcome.FORBIDDEN, "Support tier already has supporters.")


async def add_support_tier(
    conn: asyncpg.Connection,
    actor: Actor,
    petition_id: int,
    payload: Any,
) -> OperationResult:
    permissions.require_authenticated(actor)
    request = validation.parse(schemas.SupportTierCreate, payload)

    try:
        async with conn.transaction():
            await _lock_owned_petition(conn, actor, petition_id)
            tiers = await repository.list_support_tiers(conn, petition_id, for_update=True)

            if len(tiers) >= schemas.MAX_SUPPORT_TIERS:
                raise ServiceError(
                    Outcome.FORBIDDEN,
                    f"A petition can have at most {schemas.MAX_SUPPORT_TIERS} support tiers.",
                )
            if _title_taken(tiers, request.title):
                raise ServiceError(Outcome.CONFLICT, "Support tier title already used in this petition.")

            tier_id = await repository.insert_support_tier(
                conn,
                petition_id=petition_id,
                title=request.title,
                description=request.description,
                cost=request.cost,
            )
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Support tier title already used in this petition.") from exc

    logger.info("support_tier_created petition_id=%s tier_id=%s", petition_id, tier_id)
    return created({"supportTierId": tier_id})


async def edit_support_tier(
    conn: asyncpg.Connection,
    actor: Actor,
    petition_id: int,
    tier_id: int,
    payload: Any,
) -> OperationResult:
    permissions.require_authenticated(actor)
    request = validation.parse(schemas.SupportTierEdit, payload)
    changes = validation.supplied_fields(request)

    try:
        async with conn.transaction():
            await _lock_owned_petition(conn, actor, petition_id)
            tiers = await repository.list_support_tiers(conn, petition_id, for_update=True)
            _find_tier(tiers, tier_id)
            await _require_no_supporters(conn, tier_id)

            if "title" in changes and _title_taken(tiers, changes["title"], exclude_tier_id=tier_id):
                raise ServiceError(Outcome.CONFLICT, "Support tier title already used in this petition.")

            if changes:
                updated = await repository.update_support_tier(conn, tier_id, changes)
                if updated != 1:
                    raise RuntimeError(f"Support tier update touched {updated} rows.")
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Support tier title already used in this petition.") from exc

    logger.info("support_tier_updated petition_id=%s tier_id=%s fields=%s", petition_id, tier_id, sorted(changes))
    return ok()


async def delete_support_tier(
    conn: asyncpg.Connection,
    actor: Actor,
    petition_id: int,
    tier_id: int,
) -> OperationResult:
    permissions.require_authenticated(actor)

    async with conn.transaction():
        await _lock_owned_petition(conn, actor, petition_id)
        tiers = await repository.list_support_tiers(conn, petition_id, for_update=True)
        _find_tier(tiers, tier_id)
        await _require_no_supporters(conn, tier_id)

        if len(tiers) <= 1:
            raise ServiceError(Outcome.FORBIDDEN, "A petition must keep at least one support tier.")

        deleted = await repository.delete_support_tier(conn, tier_id)
        if deleted != 1:
            raise RuntimeError(f"Support tier delete touched {deleted} rows.")

    logger.info("support_tier_deleted petition_id=%s tier_id=%s", petition_id, tier_id)
    return ok()

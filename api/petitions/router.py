"""
Petition API endpoints.
"""

from __future__ import annotations

from typing import Any

import asyncpg
from fastapi import APIRouter, Body, Depends, Query, Response

from auth import dependencies as auth_dependencies
from auth.permissions import Actor
from core import db
from core.outcomes import to_response

from . import service

router = APIRouter(prefix="/petitions")


@router.get("")
async def list_petitions(
    q: str | None = Query(default=None, min_length=1, max_length=256),
    category_ids: list[int] | None = Query(default=None, alias="categoryIds"),
    supporting_cost: int | None = Query(default=None, alias="supportingCost"),
    owner_id: int | None = Query(default=None, alias="ownerId"),
    supporter_id: int | None = Query(default=None, alias="supporterId"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    start_index: int | None = Query(default=None, alias="startIndex"),
    count: int | None = Query(default=None),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    criteria = service.build_criteria(
        q=q,
        category_ids=category_ids,
        supporting_cost=supporting_cost,
        owner_id=owner_id,
        supporter_id=supporter_id,
        sort_by=sort_by,
        start_index=start_index,
        count=count,
    )
    return to_response(await service.list_petitions(conn, criteria))


@router.get("/categories")
async def list_categories(conn: asyncpg.Connection = Depends(db.connection)) -> Response:
    return to_response(await service.list_categories(conn))


@router.get("/{petition_id}")
async def get_petition(
    petition_id: int,
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.get_petition(conn, petition_id))


@router.get("/{petition_id}/supporters")
async def list_supporters(
    petition_id: int,
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.list_supporters(conn, petition_id))


@router.post("")
async def create_petition(
    payload: Any = Body(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.create_petition(conn, actor, payload))


@router.patch("/{petition_id}")
async def edit_petition(
    petition_id: int,
    payload: Any = Body(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.edit_petition(conn, actor, petition_id, payload))


@router.delete("/{petition_id}")
async def delete_petition(
    petition_id: int,
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.delete_petition(conn, actor, petition_id))

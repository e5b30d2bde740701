"""
Support tier API endpoints (nested under petitions).
"""

from __future__ import annotations

from typing import Any

import asyncpg
from fastapi import APIRouter, Body, Depends, Response

from auth import dependencies as auth_dependencies
from auth.permissions import Actor
from core import db
from core.outcomes import to_response

from . import service

router = APIRouter(prefix="/petitions/{petition_id}/supportTiers")


@router.post("")
async def add_support_tier(
    petition_id: int,
    payload: Any = Body(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.add_support_tier(conn, actor, petition_id, payload))


@router.patch("/{tier_id}")
async def edit_support_tier(
    petition_id: int,
    tier_id: int,
    payload: Any = Body(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.edit_support_tier(conn, actor, petition_id, tier_id, payload))


@router.delete("/{tier_id}")
async def delete_support_tier(
    petition_id: int,
    tier_id: int,
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.delete_support_tier(conn, actor, petition_id, tier_id))

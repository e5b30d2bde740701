"""
User API endpoints.
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

router = APIRouter(prefix="/users")


@router.post("/register")
async def register(
    payload: Any = Body(default=None),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.register(conn, payload))


@router.post("/login")
async def login(
    payload: Any = Body(default=None),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.login(conn, payload))


@router.post("/logout")
async def logout(
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.logout(conn, actor))


@router.get("/{user_id}")
async def view_user(
    user_id: int,
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.view_user(conn, actor, user_id))


@router.patch("/{user_id}")
async def update_user(
    user_id: int,
    payload: Any = Body(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    return to_response(await service.update_user(conn, actor, user_id, payload))

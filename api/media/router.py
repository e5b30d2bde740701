"""
Image endpoints for users and petitions.

Uploads are the raw request body, read up to MAX_IMAGE_BYTES; the
Content-Type header names the format.
"""

from __future__ import annotations

import asyncpg
from fastapi import APIRouter, Depends, Header, Request, Response

from auth import dependencies as auth_dependencies
from auth.permissions import Actor
from core import config, db
from core.outcomes import to_response

from . import service
from .store import MediaStore, get_media_store

router = APIRouter()


@router.get("/users/{user_id}/image")
async def get_user_image(
    user_id: int,
    conn: asyncpg.Connection = Depends(db.connection),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    image = await service.get_user_image(conn, store, user_id)
    return Response(content=image.data, media_type=image.content_type)


@router.put("/users/{user_id}/image")
async def set_user_image(
    user_id: int,
    request: Request,
    content_type: str | None = Header(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    data = await service.read_upload_bytes(
        request.stream(),
        config.max_image_bytes(),
        content_length=request.headers.get("content-length"),
    )
    result = await service.set_user_image(
        conn, store, actor, user_id, content_type=content_type, data=data
    )
    return to_response(result)


@router.delete("/users/{user_id}/image")
async def delete_user_image(
    user_id: int,
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    return to_response(await service.delete_user_image(conn, store, actor, user_id))


@router.get("/petitions/{petition_id}/image")
async def get_petition_image(
    petition_id: int,
    conn: asyncpg.Connection = Depends(db.connection),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    image = await service.get_petition_image(conn, store, petition_id)
    return Response(content=image.data, media_type=image.content_type)


@router.put("/petitions/{petition_id}/image")
async def set_petition_image(
    petition_id: int,
    request: Request,
    content_type: str | None = Header(default=None),
    actor: Actor = Depends(auth_dependencies.get_actor),
    conn: asyncpg.Connection = Depends(db.connection),
    store: MediaStore = Depends(get_media_store),
) -> Response:
    data = await service.read_upload_bytes(
        request.stream(),
        config.max_image_bytes(),
        content_length=request.headers.get("content-length"),
    )
    result = await service.set_petition_image(
        conn, store, actor, petition_id, content_type=content_type, data=data
    )
    return to_response(result)

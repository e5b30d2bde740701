"""
Image upload, retrieval and removal for users and petitions.

The content type is checked before any row is read or any byte is written.
Replacing an image with a different format removes the old file only after
the new reference has been committed; a failed upload puts back whatever
file it overwrote.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator

import asyncpg

from auth import permissions
from auth.permissions import Actor
from core import config
from core.outcomes import OperationResult, Outcome, ServiceError, created, ok
from petitions import repository as petitions_repository
from users import repository as users_repository

from . import store as media_store
from .store import MediaStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    data: bytes
    content_type: str


def _require_image(content_type: str | None, data: bytes) -> str:
    extension = media_store.extension_for(content_type)
    if extension is None:
        raise ServiceError(Outcome.BAD_REQUEST, "Unsupported image type. Use image/png, image/jpeg or image/gif.")
    if not data:
        raise ServiceError(Outcome.BAD_REQUEST, "Image body is empty.")
    if len(data) > config.max_image_bytes():
        raise ServiceError(Outcome.BAD_REQUEST, f"Image too large. Max is {config.max_image_bytes()} bytes.")
    return extension


async def read_upload_bytes(
    chunks: AsyncIterator[bytes],
    max_bytes: int,
    *,
    content_length: str | None = None,
) -> bytes:
    """
    Read a raw request body into memory, enforcing a maximum size.

    A declared Content-Length over the limit is rejected before reading.
    """
    try:
        declared = int(content_length) if content_length else None
    except ValueError:
        declared = None
    if declared is not None and declared > max_bytes:
        raise ServiceError(Outcome.BAD_REQUEST, f"Image too large. Max is {max_bytes} bytes.")

    buf = bytearray()
    async for chunk in chunks:
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise ServiceError(Outcome.BAD_REQUEST, f"Image too large. Max is {max_bytes} bytes.")
    return bytes(buf)


@dataclass(frozen=True)
class _PendingWrite:
    key: str
    prior: bytes | None


async def _write_pending(store: MediaStore, key: str, data: bytes, previous: str | None) -> _PendingWrite:
    prior = await store.read(key) if previous == key else None
    await store.write(key, data)
    return _PendingWrite(key=key, prior=prior)


async def _undo_write(store: MediaStore, pending: _PendingWrite) -> None:
    # Put back the bytes the failed upload overwrote, or drop the new file.
    if pending.prior is None:
        await store.delete(pending.key)
    else:
        await store.write(pending.key, pending.prior)
    logger.warning("image_write_undone key=%s restored=%s", pending.key, pending.prior is not None)


async def _replace_stale(store: MediaStore, previous: str | None, current: str) -> None:
    if previous and previous != current:
        await store.delete(previous)


async def set_user_image(
    conn: asyncpg.Connection,
    store: MediaStore,
    actor: Actor,
    user_id: int,
    *,
    content_type: str | None,
    data: bytes,
) -> OperationResult:
    permissions.require_authenticated(actor)
    extension = _require_image(content_type, data)

    pending: _PendingWrite | None = None
    try:
        async with conn.transaction():
            user_row = await users_repository.get_user_by_id(conn, user_id, for_update=True)
            if user_row is None:
                raise ServiceError(Outcome.NOT_FOUND, "No user with specified id.")
            permissions.require_owner(actor, int(user_row["id"]), resource="user")

            previous = user_row.get("image_filename")
            key = media_store.media_key("user", user_id, extension)
            pending = await _write_pending(store, key, data, previous)
            await users_repository.set_user_image(conn, user_id, key)
    except Exception:
        if pending is not None:
            await _undo_write(store, pending)
        raise

    await _replace_stale(store, previous, key)
    logger.info("user_image_saved user_id=%s key=%s replaced=%s", user_id, key, bool(previous))
    return ok() if previous else created()


async def set_petition_image(
    conn: asyncpg.Connection,
    store: MediaStore,
    actor: Actor,
    petition_id: int,
    *,
    content_type: str | None,
    data: bytes,
) -> OperationResult:
    permissions.require_authenticated(actor)
    extension = _require_image(content_type, data)

    pending: _PendingWrite | None = None
    try:
        async with conn.transaction():
            petition = await petitions_repository.get_petition(conn, petition_id, for_update=True)
            if petition is None:
                raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")
            permissions.require_owner(actor, petition["owner_id"], resource="petition")

            previous = petition.get("image_filename")
            key = media_store.media_key("petition", petition_id, extension)
            pending = await _write_pending(store, key, data, previous)
            await petitions_repository.set_petition_image(conn, petition_id, key)
    except Exception:
        if pending is not None:
            await _undo_write(store, pending)
        raise

    await _replace_stale(store, previous, key)
    logger.info("petition_image_saved petition_id=%s key=%s replaced=%s", petition_id, key, bool(previous))
    return ok() if previous else created()


async def _load(store: MediaStore, key: str | None) -> StoredImage:
    if not key:
        raise ServiceError(Outcome.NOT_FOUND, "No image.")
    data = await store.read(key)
    if data is None:
        logger.warning("image_missing_from_store key=%s", key)
        raise ServiceError(Outcome.NOT_FOUND, "No image.")
    return StoredImage(data=data, content_type=media_store.content_type_for(key))


async def get_user_image(conn: asyncpg.Connection, store: MediaStore, user_id: int) -> StoredImage:
    user_row = await users_repository.get_user_by_id(conn, user_id)
    if user_row is None:
        raise ServiceError(Outcome.NOT_FOUND, "No user with specified id.")
    return await _load(store, user_row.get("image_filename"))


async def get_petition_image(conn: asyncpg.Connection, store: MediaStore, petition_id: int) -> StoredImage:
    petition = await petitions_repository.get_petition(conn, petition_id)
    if petition is None:
        raise ServiceError(Outcome.NOT_FOUND, "No petition with id.")
    return await _load(store, petition.get("image_filename"))


async def delete_user_image(
    conn: asyncpg.Connection,
    store: MediaStore,
    actor: Actor,
    user_id: int,
) -> OperationResult:
    permissions.require_authenticated(actor)

    async with conn.transaction():
        user_row = await users_repository.get_user_by_id(conn, user_id, for_update=True)
        if user_row is None:
            raise ServiceError(Outcome.NOT_FOUND, "No user with specified id.")
        permissions.require_owner(actor, int(user_row["id"]), resource="user")

        previous = user_row.get("image_filename")
        if not previous:
            raise ServiceError(Outcome.NOT_FOUND, "User has no image.")
        await users_repository.set_user_image(conn, user_id, None)

    await store.delete(previous)
    logger.info("user_image_deleted user_id=%s key=%s", user_id, previous)
    return ok()

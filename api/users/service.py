"""
User business logic: registration, sessions and profiles.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from auth import permissions, security
from auth.permissions import Actor
from core import db, validation
from core.outcomes import OperationResult, Outcome, ServiceError, created, ok

from . import repository, schemas

logger = logging.getLogger(__name__)


async def register(conn: asyncpg.Connection, payload: Any) -> OperationResult:
    request = validation.parse(schemas.RegisterRequest, payload)
    password_hash = security.hash_password(request.password)

    try:
        async with conn.transaction():
            if await repository.email_in_use(conn, request.email):
                raise ServiceError(Outcome.CONFLICT, "Email is already registered.")
            user_id = await repository.insert_user(
                conn,
                email=request.email,
                first_name=request.first_name,
                last_name=request.last_name,
                password_hash=password_hash,
            )
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Email is already registered.") from exc

    logger.info("user_registered user_id=%s", user_id)
    return created({"userId": user_id})


async def login(conn: asyncpg.Connection, payload: Any) -> OperationResult:
    request = validation.parse(schemas.LoginRequest, payload)

    async with conn.transaction():
        user_row = await repository.get_user_by_email(conn, request.email)
        if user_row is None:
            raise ServiceError(Outcome.UNAUTHORIZED, "Invalid email or password.")

        if not security.verify_password(request.password, str(user_row.get("password") or "")):
            raise ServiceError(Outcome.UNAUTHORIZED, "Invalid email or password.")

        user_id = int(user_row["id"])
        token = security.build_session_token()
        await repository.set_auth_token(conn, user_id, token)

    logger.info("user_logged_in user_id=%s", user_id)
    return ok({"userId": user_id, "token": token})


async def logout(conn: asyncpg.Connection, actor: Actor) -> OperationResult:
    permissions.require_authenticated(actor)

    async with conn.transaction():
        cleared = await repository.clear_auth_token(conn, str(actor.auth_token))
        if cleared == 0:
            raise ServiceError(Outcome.UNAUTHORIZED, "Cannot log out without an active session.")
        if cleared > 1:
            logger.error("duplicate_auth_token rows=%s", cleared)
            raise db.IntegrityViolation("Duplicate auth_token present in database.")

    logger.info("user_logged_out user_id=%s", actor.user_id)
    return ok()


async def view_user(conn: asyncpg.Connection, actor: Actor, user_id: int) -> OperationResult:
    user_row = await repository.get_user_by_id(conn, user_id)
    if user_row is None:
        raise ServiceError(Outcome.NOT_FOUND, "No user with specified id.")

    body = {
        "firstName": user_row["first_name"],
        "lastName": user_row["last_name"],
    }
    if permissions.is_self(actor, user_id):
        body["email"] = user_row["email"]
    return ok(body)


async def update_user(
    conn: asyncpg.Connection,
    actor: Actor,
    user_id: int,
    payload: Any,
) -> OperationResult:
    permissions.require_authenticated(actor)
    request = validation.parse(schemas.UserEditRequest, payload)
    changes = validation.supplied_fields(request)
    current_password = changes.pop("current_password", None)

    try:
        async with conn.transaction():
            user_row = await repository.get_user_by_id(conn, user_id, for_update=True)
            if user_row is None:
                raise ServiceError(Outcome.NOT_FOUND, "No user with specified id.")
            permissions.require_owner(actor, int(user_row["id"]), resource="user")

            if "email" in changes and await repository.email_in_use(
                conn, changes["email"], exclude_user_id=user_id
            ):
                raise ServiceError(Outcome.CONFLICT, "Email is already in use.")

            if "password" in changes:
                changes["password"] = _new_password_hash(
                    new_password=changes["password"],
                    current_password=current_password,
                    stored_hash=str(user_row.get("password") or ""),
                )

            if changes:
                updated = await repository.update_user(conn, user_id, changes)
                if updated != 1:
                    raise RuntimeError(f"User update touched {updated} rows.")
    except asyncpg.UniqueViolationError as exc:
        raise ServiceError(Outcome.CONFLICT, "Email is already in use.") from exc

    logger.info("user_updated user_id=%s fields=%s", user_id, sorted(changes))
    return ok()


def _new_password_hash(*, new_password: str, current_password: str | None, stored_hash: str) -> str:
    if current_password is None:
        raise ServiceError(Outcome.UNAUTHORIZED, "currentPassword is required to change password.")
    if not security.verify_password(current_password, stored_hash):
        raise ServiceError(Outcome.UNAUTHORIZED, "Invalid currentPassword.")
    if new_password == current_password:
        raise ServiceError(Outcome.FORBIDDEN, "New password must differ from the current password.")
    return security.hash_password(new_password)

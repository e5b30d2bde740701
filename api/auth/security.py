"""
Auth security helpers.
"""

from __future__ import annotations

import secrets

import bcrypt

# 48 random bytes -> 64 URL-safe characters.
SESSION_TOKEN_BYTES = 48


class AuthSecurityError(RuntimeError):
    pass


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise AuthSecurityError("Password is empty.")
    return bcrypt.hashpw(password, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


def build_session_token() -> str:
    # Opaque, stored as-is on the user row and cleared on logout.
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def normalize_token(raw_token: str | None) -> str | None:
    token = (raw_token or "").strip()
    return token or None

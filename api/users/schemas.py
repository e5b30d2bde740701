"""
User API schemas (request models).
"""

from __future__ import annotations

from pydantic import EmailStr, Field

from core.schemas import PatchModel, RequestModel


class RegisterRequest(RequestModel):
    email: EmailStr = Field(..., max_length=256)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=64)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=64)
    password: str = Field(..., min_length=6, max_length=64)


class LoginRequest(RequestModel):
    email: EmailStr = Field(..., max_length=256)
    password: str = Field(..., min_length=1, max_length=64)


class UserEditRequest(PatchModel):
    email: EmailStr | None = Field(default=None, max_length=256)
    first_name: str | None = Field(default=None, alias="firstName", min_length=1, max_length=64)
    last_name: str | None = Field(default=None, alias="lastName", min_length=1, max_length=64)
    password: str | None = Field(default=None, min_length=6, max_length=64)
    current_password: str | None = Field(default=None, alias="currentPassword", min_length=1, max_length=64)

"""
Support tier request schemas.
"""

from __future__ import annotations

from pydantic import Field

from core.schemas import PatchModel, RequestModel

MAX_SUPPORT_TIERS = 3


class SupportTierCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1, max_length=1024)
    cost: int = Field(..., ge=0)


class SupportTierEdit(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = Field(default=None, min_length=1, max_length=1024)
    cost: int | None = Field(default=None, ge=0)

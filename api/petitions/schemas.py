"""
Petition request schemas.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from core.schemas import PatchModel, RequestModel
from tiers.schemas import MAX_SUPPORT_TIERS, SupportTierCreate


class PetitionCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1, max_length=1024)
    category_id: int = Field(..., alias="categoryId", ge=0)
    support_tiers: list[SupportTierCreate] = Field(
        ...,
        alias="supportTiers",
        min_length=1,
        max_length=MAX_SUPPORT_TIERS,
    )

    @field_validator("support_tiers")
    @classmethod
    def _unique_tier_titles(cls, tiers: list[SupportTierCreate]) -> list[SupportTierCreate]:
        titles = [tier.title for tier in tiers]
        if len(set(titles)) != len(titles):
            raise ValueError("support tier titles must be unique within a petition")
        return tiers


class PetitionEdit(PatchModel):
    title: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = Field(default=None, min_length=1, max_length=1024)
    category_id: int | None = Field(default=None, alias="categoryId", ge=0)

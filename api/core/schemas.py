"""
Base classes for request schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator


class RequestModel(BaseModel):
    # Clients send camelCase; services read snake_case attributes.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=False)


class PatchModel(RequestModel):
    """
    Partial update: every field is optional, but a field that is present
    must carry a value.
    """

    @model_validator(mode="after")
    def _reject_explicit_nulls(self) -> "PatchModel":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

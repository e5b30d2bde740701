"""
Validation gate for inbound JSON payloads.

Schemas are pydantic models. Unknown fields are dropped rather than
rejected; anything else that does not fit the model is bad input.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .outcomes import Outcome, ServiceError

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate(schema: type[BaseModel], payload: Any) -> bool:
    """
    Yes/no check. Services call `parse()`, which raises bad-input instead.
    """
    try:
        schema.model_validate(payload)
    except ValidationError:
        return False
    return True


def parse(schema: type[ModelT], payload: Any) -> ModelT:
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors()})
        raise ServiceError(Outcome.BAD_REQUEST, f"Invalid fields: {', '.join(fields)}") from exc


def supplied_fields(model: BaseModel) -> dict[str, Any]:
    """
    Fields the client actually sent, keyed by attribute name.

    Patch operations only touch these.
    """
    return model.model_dump(exclude_unset=True)

"""
Authorization predicates.

Every mutating operation asks the same question: may this actor act on a
resource owned by `owner_id`? `authorize()` answers it once; `require_*`
helpers turn a denial into the matching ServiceError. Per-operation rules
(tier cap, supporter counts, uniqueness) live in the feature services and
are checked after authorization, against the same locked rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.outcomes import Outcome, ServiceError


@dataclass(frozen=True)
class Actor:
    user_id: int | None = None
    auth_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = Actor()


class Decision(str, Enum):
    ALLOW = "allow"
    DENY_UNAUTHENTICATED = "deny_unauthenticated"
    DENY_NOT_OWNER = "deny_not_owner"


def authorize(actor: Actor, owner_id: int | None) -> Decision:
    if not actor.is_authenticated:
        return Decision.DENY_UNAUTHENTICATED
    if owner_id is None or int(owner_id) != actor.user_id:
        return Decision.DENY_NOT_OWNER
    return Decision.ALLOW


def require_authenticated(actor: Actor) -> int:
    if not actor.is_authenticated:
        raise ServiceError(Outcome.UNAUTHORIZED, "Authentication required.")
    return int(actor.user_id)  # type: ignore[arg-type]


def require_owner(actor: Actor, owner_id: int | None, *, resource: str = "resource") -> None:
    decision = authorize(actor, owner_id)
    if decision is Decision.DENY_UNAUTHENTICATED:
        raise ServiceError(Outcome.UNAUTHORIZED, "Authentication required.")
    if decision is Decision.DENY_NOT_OWNER:
        raise ServiceError(Outcome.FORBIDDEN, f"Only the owner can modify this {resource}.")


def is_self(actor: Actor, user_id: int) -> bool:
    return authorize(actor, user_id) is Decision.ALLOW

"""
Operation outcomes and their HTTP translation.

Services report success by returning an `OperationResult` and report every
expected failure by raising `ServiceError`. Routers and the exception
handlers in `api/main.py` are the only places that turn an outcome into a
status code, and they all go through `status_code()`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    OK = "ok"
    CREATED = "created"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"


# Conflicts (title/email collisions) share 403 with the other invariant
# failures; clients of the petition API have always received 403 for them.
STATUS_CODES: dict[Outcome, int] = {
    Outcome.OK: 200,
    Outcome.CREATED: 201,
    Outcome.BAD_REQUEST: 400,
    Outcome.UNAUTHORIZED: 401,
    Outcome.FORBIDDEN: 403,
    Outcome.NOT_FOUND: 404,
    Outcome.CONFLICT: 403,
    Outcome.INTERNAL_ERROR: 500,
}


class ServiceError(RuntimeError):
    def __init__(self, outcome: Outcome, detail: str = "") -> None:
        super().__init__(detail or outcome.value)
        self.outcome = outcome
        self.detail = detail or outcome.value


@dataclass(frozen=True)
class OperationResult:
    outcome: Outcome
    body: Any = None


def ok(body: Any = None) -> OperationResult:
    return OperationResult(Outcome.OK, body)


def created(body: Any = None) -> OperationResult:
    return OperationResult(Outcome.CREATED, body)


def status_code(outcome: Any) -> int:
    code = STATUS_CODES.get(outcome)
    if code is None:
        logger.error("unmapped_outcome outcome=%r", outcome)
        return STATUS_CODES[Outcome.INTERNAL_ERROR]
    return code


def to_response(result: OperationResult) -> Response:
    code = status_code(result.outcome)
    if result.body is None:
        return Response(status_code=code)
    return JSONResponse(status_code=code, content=jsonable_encoder(result.body))


def error_response(exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=status_code(exc.outcome), content={"detail": exc.detail})

"""Error taxonomy shared by services and the HTTP layer.

Services raise these before mutating anything; the app-level handler turns
them into ``{"detail": ..., "error": kind}`` responses.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
VALIDATION = "VALIDATION"
CONFLICT = "CONFLICT"

_STATUS_BY_KIND = {
    NOT_FOUND: 404,
    VALIDATION: 422,
    CONFLICT: 409,
}


class DomainError(Exception):
    kind = VALIDATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return _STATUS_BY_KIND[self.kind]


class NotFoundError(DomainError):
    kind = NOT_FOUND


class InvalidInputError(DomainError):
    kind = VALIDATION


class ConflictError(DomainError):
    kind = CONFLICT


class OrderNumberExhaustedError(ConflictError):
    pass


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(
        "domain error kind=%s detail=%s",
        exc.kind,
        exc.message,
        extra={"endpoint": request.url.path, "method": request.method, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": exc.kind})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)

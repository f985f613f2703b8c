"""Ledger error taxonomy and the JSON envelope the API reports it with."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for failures surfaced by ledger operations."""

    code = "ledger_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LedgerError):
    """Malformed input: a missing required field or a bad import document."""

    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(LedgerError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(LedgerError):
    """The record exists but its state forbids the requested transition."""

    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT


class StorageError(LedgerError):
    code = "storage_error"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def ledger_exception_handler(request: Request, exc: LedgerError):
    level = logging.ERROR if isinstance(exc, StorageError) else logging.INFO
    logger.log(
        level,
        "ledger.error",
        extra={"extra_data": {"code": exc.code, "path": request.url.path, "error": exc.message}},
    )
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    code = "authorization_denied" if exc.status_code == status.HTTP_403_FORBIDDEN else "http_error"
    return ErrorEnvelope(status_code=exc.status_code, code=code, message=message, details=details)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )


def validation_error_from(exc: Exception, message: str) -> ValidationError:
    """Translate a pydantic validation failure into a ledger ``ValidationError``."""

    errors = getattr(exc, "errors", None)
    details = None
    if callable(errors):
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in errors()
        ]
    return ValidationError(message, details=details)

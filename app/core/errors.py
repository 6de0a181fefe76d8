"""
Ledger error taxonomy and the FastAPI handlers that render it.

- FieldValidationError       -> 400 {"error": "Validation failed", "details": {...}}
- NotFoundError              -> 404 {"error": message}
- AuthorizationError         -> 403 {"error": message}
- anything else              -> 500 {"error": "Internal server error"}
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for errors raised by the ledger core."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FieldValidationError(LedgerError):
    """Per-field validation failure; nothing was persisted."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, details: Dict[str, str], message: str = "Validation failed"):
        super().__init__(message)
        self.details = details


class ExpenditureValidationError(FieldValidationError):
    """Structural or split-sum violation on an expenditure."""


class NotFoundError(LedgerError):
    """Unknown id, or an id the caller is not allowed to see."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(LedgerError):
    """Caller can see the expenditure but may not perform the operation."""

    status_code = status.HTTP_403_FORBIDDEN


def _error_body(error: str, details: Optional[Dict[str, str]] = None) -> dict:
    body = {"error": error}
    if details:
        body["details"] = details
    return body


def _field_name(loc) -> str:
    # drop the "body"/"query" prefix FastAPI puts in front of the field path
    parts = [str(part) for part in loc if part not in ("body", "query", "path")]
    return ".".join(parts) or "body"


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    details = getattr(exc, "details", None)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, details)
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    details = {_field_name(err.get("loc", ())): err.get("msg", "Invalid value") for err in errors}

    if any(err.get("type") == "extra_forbidden" for err in errors):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Invalid updates", details)
        )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("Validation failed", details)
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"error": "Internal server error"}
    if not settings.is_production:
        body["message"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

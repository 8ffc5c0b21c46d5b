"""Error envelope and exception handlers for the linecalc API.

Every rejected request is answered with the same body::

    {"code": "INVALID_SETTINGS", "message": "...", "details": null, "request_id": "..."}

and the request id is echoed in the X-Request-Id header. Line-level calculation
errors are not API errors: they are part of a successful evaluation response.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Final

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from linecalc.api.middleware.request_id import REQUEST_ID_HEADER
from linecalc.config import SettingsConfigError

logger = logging.getLogger(__name__)


class ApiErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    REQUEST_VALIDATION_FAILED = "REQUEST_VALIDATION_FAILED"
    INVALID_SETTINGS = "INVALID_SETTINGS"
    DUPLICATE_LINE_ID = "DUPLICATE_LINE_ID"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_CODES_BY_STATUS: Final[dict[int, ApiErrorCode]] = {
    400: ApiErrorCode.BAD_REQUEST,
    404: ApiErrorCode.NOT_FOUND,
    405: ApiErrorCode.METHOD_NOT_ALLOWED,
    415: ApiErrorCode.UNSUPPORTED_MEDIA_TYPE,
    422: ApiErrorCode.REQUEST_VALIDATION_FAILED,
}

# Location prefixes FastAPI adds that say nothing about the document itself.
_LOCATION_ROOTS: Final[frozenset[str]] = frozenset({"body", "query", "path"})


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None
    request_id: str | None = None


class DocumentRequestError(Exception):
    """A document request that cannot be evaluated as submitted.

    Attributes:
        code: Envelope code.
        message: Human-readable reason.
        status_code: HTTP status (400 unless given).
        details: Optional structured context.
    """

    def __init__(
        self,
        code: ApiErrorCode,
        message: str,
        *,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


def _request_id(request: Request) -> str:
    # The middleware normally sets this; handlers can run before it does.
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())


def error_envelope(
    request: Request,
    code: ApiErrorCode,
    message: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    request_id = _request_id(request)
    body = ErrorResponse(
        code=code.value, message=message, details=details, request_id=request_id
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={REQUEST_ID_HEADER: request_id},
    )


def _field_path(location: tuple[Any, ...]) -> str:
    parts = [str(part) for part in location if part not in _LOCATION_ROOTS]
    return ".".join(parts) if parts else "request"


async def document_request_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, DocumentRequestError)
    return error_envelope(request, exc.code, exc.message, exc.status_code, exc.details)


async def settings_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Settings that pass schema validation but fail CalcSettings checks."""
    assert isinstance(exc, SettingsConfigError)
    return error_envelope(request, ApiErrorCode.INVALID_SETTINGS, str(exc), 400)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unknown routes and wrong methods."""
    assert isinstance(exc, HTTPException)
    code = _CODES_BY_STATUS.get(exc.status_code, ApiErrorCode.BAD_REQUEST)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"
    return error_envelope(request, code, message, exc.status_code)


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report each invalid field by its dotted path (``lines.0.text``) and message only."""
    assert isinstance(exc, RequestValidationError)
    errors = [
        {
            "field": _field_path(tuple(error.get("loc", ()))),
            "message": error.get("msg", "Validation error"),
        }
        for error in exc.errors()
    ]
    return error_envelope(
        request,
        ApiErrorCode.REQUEST_VALIDATION_FAILED,
        "Request validation failed",
        422,
        {"errors": errors} if errors else None,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception while serving %s: %s",
        request.url.path,
        type(exc).__name__,
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    return error_envelope(
        request, ApiErrorCode.INTERNAL_ERROR, "An internal error occurred", 500
    )

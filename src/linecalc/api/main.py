"""linecalc FastAPI application factory."""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from linecalc.api.errors import (
    DocumentRequestError,
    document_request_error_handler,
    http_exception_handler,
    request_validation_error_handler,
    settings_error_handler,
    unhandled_exception_handler,
)
from linecalc.api.middleware.request_id import RequestIdMiddleware
from linecalc.api.routes.documents import router as documents_router
from linecalc.api.routes.health import LINECALC_VERSION
from linecalc.api.routes.health import router as health_router
from linecalc.config import SettingsConfigError
from linecalc.observability.tracing import configure_tracing, instrument_fastapi


def create_app() -> FastAPI:
    """Build the document evaluation service.

    Tracing is configured from LINECALC_OTEL_* before the app is instrumented.
    Every response carries X-Request-Id, and every rejected request (bad
    settings, duplicate line ids, schema violations, unknown routes) is
    answered with the error envelope from linecalc.api.errors.
    """
    app = FastAPI(
        title="linecalc API",
        description="Evaluate calculator documents line by line",
        version=LINECALC_VERSION,
    )

    configure_tracing()
    app.add_middleware(RequestIdMiddleware)
    instrument_fastapi(app)

    app.add_exception_handler(DocumentRequestError, document_request_error_handler)
    app.add_exception_handler(SettingsConfigError, settings_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(health_router)
    app.include_router(documents_router)
    return app

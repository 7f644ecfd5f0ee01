"""
Maps engine exceptions to HTTP responses.

Access denials always read "Site not found" so callers cannot test for
other tenants' site ids. Unexpected errors are logged with their traceback
and answered with a generic 500.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from trackflow.core.errors import (
    AccessDeniedError,
    InvalidFunnelError,
    QueryTimeoutError,
    UnknownTenantError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def access_denied_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Site not found"})


async def invalid_funnel_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationError) else []
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"ok": False, "errors": [e.to_dict() for e in errors]},
    )


async def unknown_tenant_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "ok": False,
            "errors": [{"code": "unknown_site", "message": "Unknown site", "field": "site_id"}],
        },
    )


async def query_timeout_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Query timed out on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Query timed out, try a shorter period"},
    )


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessDeniedError, access_denied_handler)
    app.add_exception_handler(InvalidFunnelError, invalid_funnel_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(UnknownTenantError, unknown_tenant_handler)
    app.add_exception_handler(QueryTimeoutError, query_timeout_handler)
    app.add_exception_handler(Exception, internal_error_handler)

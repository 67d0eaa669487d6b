# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""EduRecords API application factory.

Domain errors (AcademicRecordsError subclasses) are rendered here as
{"detail", "hint"} bodies, plus "details" when the error carries them.
"""

import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from edurecords import __version__
from edurecords.api.middleware import AuthMiddleware, TenantMiddleware
from edurecords.api.routes import health
from edurecords.api.v1 import router as v1_router
from edurecords.core.config import get_settings
from edurecords.domains.exceptions import (
    AcademicRecordsError,
    BlockedByClosedYearError,
    NotFoundOrForeignTenantError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from edurecords.infrastructure.background import (
    setup_dramatiq,
    shutdown_dramatiq,
    start_scheduler,
    stop_scheduler,
)
from edurecords.infrastructure.database.connection import close_database, init_database
from edurecords.utils.logging import setup_logging

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type[AcademicRecordsError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundOrForeignTenantError: status.HTTP_404_NOT_FOUND,
    StateConflictError: status.HTTP_409_CONFLICT,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    BlockedByClosedYearError: status.HTTP_403_FORBIDDEN,
}


def status_code_for(exc: AcademicRecordsError) -> int:
    for error_class in type(exc).__mro__:
        if error_class in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_class]
    return status.HTTP_400_BAD_REQUEST


async def academic_records_error_handler(
    request: Request, exc: AcademicRecordsError
) -> JSONResponse:
    """Render domain errors as {"detail", "hint"} with the mapped status."""
    status_code = status_code_for(exc)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Unhandled academic records error: %s", exc)
    else:
        logger.info(
            "%s on %s %s: %s",
            exc.__class__.__name__,
            request.method,
            request.url.path,
            exc.message,
        )

    content: dict = {"detail": exc.message, "hint": exc.hint}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed request bodies and parameters as 400 with a hint."""
    errors = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    first = errors[0] if errors else {"loc": [], "msg": "Invalid request"}
    field = ".".join(part for part in first["loc"] if part not in ("body", "query", "path"))
    detail = f"Invalid {field}: {first['msg']}" if field else first["msg"]
    logger.info("Rejected %s %s: %s", request.method, request.url.path, detail)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": detail,
            "hint": "Check the request fields against the API documentation",
            "details": {"errors": errors},
        },
    )


async def _run_step(description: str, step: Callable[[], Any]) -> None:
    """Run one startup or shutdown step; a failure is logged, not raised.

    The API must come up without Redis or the database so /health can
    report the degraded state.
    """
    try:
        result = step()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning("%s failed: %s", description, e)
    else:
        logger.info("%s done", description)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Bring up the database, the broker and the window expiry scheduler.

    Shutdown releases them in reverse order.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info("Starting EduRecords API (%s)", settings.environment)

    await _run_step("Database initialization", lambda: init_database(settings))
    await _run_step("Dramatiq broker setup", setup_dramatiq)
    if settings.scheduler.enabled:
        await _run_step("Window expiry scheduler start", start_scheduler)

    yield

    await _run_step("Window expiry scheduler stop", stop_scheduler)
    await _run_step("Dramatiq broker shutdown", shutdown_dramatiq)
    await _run_step("Database close", close_database)
    logger.info("EduRecords API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="EduRecords API",
        description="Academic year lifecycle and consolidation",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Redirects from /path to /path/ drop the Authorization header
        redirect_slashes=False,
    )

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(AcademicRecordsError, academic_records_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # Tenant middleware reads the user set by AuthMiddleware
    app.add_middleware(TenantMiddleware)
    app.add_middleware(AuthMiddleware)

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app

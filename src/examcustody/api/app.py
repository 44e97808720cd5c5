"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from examcustody.api.dependencies import close_engine, init_engine
from examcustody.api.models import APIResponse
from examcustody.api.routes import batches, enrollment, submissions
from examcustody.batches import BatchTransitionError, ScriptTransitionError
from examcustody.config import load_config
from examcustody.enrollment import AttendanceConflictError, EnrollmentConflictError
from examcustody.identifiers import IdentifierError
from examcustody.state_store import (
    BatchNotFoundError,
    CustodyError,
    ExamEntryNotFoundError,
    RegistrationNotFoundError,
    ScriptNotFoundError,
    TimetableNotFoundError,
    UserNotFoundError,
)
from examcustody.submissions import (
    AlreadySubmittedError,
    BatchNotProvisionedError,
    NotRegisteredError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from examcustody.config import CustodyConfig

logger = logging.getLogger(__name__)

NOT_FOUND_ERRORS: tuple[type[CustodyError], ...] = (
    TimetableNotFoundError,
    ExamEntryNotFoundError,
    BatchNotFoundError,
    ScriptNotFoundError,
    RegistrationNotFoundError,
    UserNotFoundError,
)
CONFLICT_ERRORS: tuple[type[CustodyError], ...] = (
    AlreadySubmittedError,
    BatchTransitionError,
    ScriptTransitionError,
    AttendanceConflictError,
    EnrollmentConflictError,
)
UNPROCESSABLE_ERRORS: tuple[type[CustodyError], ...] = (
    NotRegisteredError,
    BatchNotProvisionedError,
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](data=None, error=message).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    config = app.state.config if app.state.config is not None else load_config()
    if app.state.db_path is not None:
        config.database.path = app.state.db_path
    init_engine(config)
    logger.info("Custody API started on database %s", config.database.path)

    yield
    # Shutdown
    close_engine()


def create_app(db_path: str | None = None, config: CustodyConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Database path, overriding the configured one.
        config: Loaded configuration. Loaded from file and environment on
            startup when omitted.
    """
    app = FastAPI(
        title="Exam Custody API",
        description="REST API for exam script registration and chain of custody",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.db_path = db_path
    app.state.config = config

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    async def not_found_handler(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, str(exc))

    async def conflict_handler(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, str(exc))

    async def unprocessable_handler(_request: Request, exc: Exception) -> JSONResponse:
        return _error_response(422, str(exc))

    for error in NOT_FOUND_ERRORS:
        app.add_exception_handler(error, not_found_handler)
    for error in CONFLICT_ERRORS:
        app.add_exception_handler(error, conflict_handler)
    for error in UNPROCESSABLE_ERRORS:
        app.add_exception_handler(error, unprocessable_handler)

    @app.exception_handler(IdentifierError)
    async def identifier_error_handler(_request: Request, exc: IdentifierError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(CustodyError)
    async def custody_error_handler(_request: Request, exc: CustodyError) -> JSONResponse:
        logger.error("Unhandled custody error: %s", exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    # Include routers
    app.include_router(enrollment.router, prefix="/api/v1")
    app.include_router(submissions.router, prefix="/api/v1")
    app.include_router(batches.router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()

"""FastAPI application setup for the coblog API.

This module creates and configures the FastAPI application with lifespan
management, the RPC procedure routers, error handling and the health check.
"""

from __future__ import annotations

import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from coblog.shared.config import get_settings
from coblog.shared.database import close_database, init_database
from coblog.web.api.dependencies import DatabaseSession
from coblog.web.api.exceptions import (
    BAD_REQUEST,
    CONFLICT,
    FORBIDDEN,
    INTERNAL_SERVER_ERROR,
    NOT_FOUND,
    error_response,
    get_request_id,
    public_detail,
)
from coblog.web.api.routers.categories import router as categories_router
from coblog.web.api.routers.posts import router as posts_router
from coblog.web.api.schemas import ErrorDetail, HealthResponse
from coblog.web.crud import (
    ConflictError,
    DatabaseOperationError,
    ForbiddenError,
    InvalidReferenceError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage FastAPI application lifespan.

    Initializes the database engine on startup and disposes of it on shutdown.

    Args:
        app: FastAPI application instance

    Yields:
        None: Control to the application
    """
    settings = get_settings()

    try:
        await init_database()

        # Store settings in app state for access in dependencies
        app.state.settings = settings

        yield

    finally:
        await close_database()


settings = get_settings()

# Create FastAPI application
api = FastAPI(
    title="coblog API",
    description="RPC procedures for posts and categories",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.api_docs_enabled else None,
    redoc_url="/redoc" if settings.api_docs_enabled else None,
    openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


# Request ID and timing middleware
@api.middleware("http")
async def add_request_id_middleware(request: Request, call_next):
    """Add request ID to request state and log each call's duration."""
    request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    response.headers["x-request-id"] = request_id
    logger.info(
        f"[rpc] {request.method} {request.url.path} - {duration_ms:.0f}ms",
        extra={"request_id": request_id, "status_code": response.status_code},
    )
    return response


# Add CORS middleware for development
if settings.is_development:
    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# Exception handlers
@api.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Args:
        request: FastAPI request object
        exc: Validation exception

    Returns:
        JSONResponse: Formatted validation error response with field errors
    """
    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(ErrorDetail(
            code=error["type"],
            message=error["msg"],
            field=field_path
        ))

    logger.warning(
        "Validation error",
        extra={
            "request_id": get_request_id(request),
            "url": str(request.url),
            "method": request.method,
            "errors": [error.model_dump() for error in errors]
        }
    )

    return error_response(request, 422, BAD_REQUEST, "Request validation failed", errors=errors)


@api.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle NotFoundError exceptions."""
    logger.info(
        "Resource not found",
        extra={"request_id": get_request_id(request), "url": str(request.url), "error": str(exc)}
    )
    return error_response(request, 404, NOT_FOUND, str(exc))


@api.exception_handler(ForbiddenError)
async def forbidden_exception_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
    """Handle owner mismatches."""
    logger.warning(
        "Owner mismatch",
        extra={"request_id": get_request_id(request), "url": str(request.url), "error": str(exc)}
    )
    return error_response(request, 403, FORBIDDEN, "You do not own this post")


@api.exception_handler(InvalidReferenceError)
async def invalid_reference_exception_handler(
    request: Request, exc: InvalidReferenceError
) -> JSONResponse:
    """Handle input referring to rows that do not exist."""
    logger.warning(
        "Invalid reference",
        extra={"request_id": get_request_id(request), "url": str(request.url), "error": str(exc)}
    )
    return error_response(request, 400, BAD_REQUEST, str(exc))


@api.exception_handler(ConflictError)
async def conflict_exception_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Handle ConflictError exceptions."""
    logger.warning(
        "Conflict error",
        extra={"request_id": get_request_id(request), "url": str(request.url), "error": str(exc)}
    )
    return error_response(request, 409, CONFLICT, str(exc))


@api.exception_handler(DatabaseOperationError)
async def database_exception_handler(request: Request, exc: DatabaseOperationError) -> JSONResponse:
    """Handle DatabaseOperationError exceptions.

    Internal database errors are only exposed in verbose development mode.
    """
    logger.error(
        f"Database operation error: {exc}",
        extra={"request_id": get_request_id(request), "url": str(request.url), "method": request.method}
    )
    return error_response(
        request, 500, INTERNAL_SERVER_ERROR, public_detail("A database error occurred", exc)
    )


@api.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions globally."""
    logger.exception(
        "Unhandled exception",
        extra={
            "request_id": get_request_id(request),
            "url": str(request.url),
            "method": request.method,
            "exception_type": type(exc).__name__
        }
    )
    return error_response(
        request, 500, INTERNAL_SERVER_ERROR, public_detail("Internal server error", exc)
    )


# Include routers
api.include_router(posts_router, prefix="/rpc", tags=["Posts"])
api.include_router(categories_router, prefix="/rpc", tags=["Categories"])


@api.get("/health", tags=["Health"])
async def health_check(session: DatabaseSession) -> JSONResponse:
    """Health check endpoint for monitoring.

    Runs a trivial query. On failure the error, its cause and the stack trace
    are returned with a 500 so deployment problems are visible to the caller.
    """
    settings = get_settings()
    try:
        result = await session.execute(text("SELECT 1 AS up"))
        up = result.scalar_one() == 1
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        cause = e.__cause__ or e.__context__
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": str(e),
                "cause": str(cause) if cause is not None else None,
                "stack": traceback.format_exc() if settings.verbose_errors_enabled else None,
            },
        )

    health = HealthResponse(
        ok=True,
        up=up,
        env={
            "environment": settings.environment,
            "debug": settings.debug,
            "dbSsl": settings.db_ssl,
        },
    )
    return JSONResponse(status_code=200, content=health.model_dump(by_alias=True))

"""Common exception utilities for RPC procedures.

This module provides the machine-readable error codes and the helpers the
exception handlers use to build a consistent error body.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from coblog.shared.config import get_settings
from coblog.web.api.schemas import ErrorDetail, ErrorResponse, ValidationErrorResponse

BAD_REQUEST = "BAD_REQUEST"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


def get_request_id(request: Request) -> str:
    """Request ID assigned by the middleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def public_detail(generic_message: str, exception: Optional[Exception] = None) -> str:
    """Error message that only includes internals in verbose development mode.

    Args:
        generic_message: Message safe to show in production
        exception: Original exception for development details

    Returns:
        str: Message to send to the caller
    """
    settings = get_settings()
    if exception is not None and settings.verbose_errors_enabled and settings.is_development:
        return f"{generic_message}: {exception}"
    return generic_message


def error_response(
    request: Request,
    status_code: int,
    code: str,
    detail: str,
    errors: Optional[List[ErrorDetail]] = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        request: FastAPI request object
        status_code: HTTP status code
        code: Machine-readable error code
        detail: Error message
        errors: Optional per-field error details

    Returns:
        JSONResponse: Formatted error response
    """
    if errors is not None:
        body = ValidationErrorResponse(
            detail=detail,
            code=code,
            errors=errors,
            timestamp=datetime.now(timezone.utc),
            request_id=get_request_id(request),
        )
    else:
        body = ErrorResponse(
            detail=detail,
            code=code,
            timestamp=datetime.now(timezone.utc),
            request_id=get_request_id(request),
        )

    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))

"""
Centralized error handlers for the translation gateway API.

Every error response uses the same envelope:
``{"error": {"code", "message", "status_code", "path"}}``.
"""

import logging
from typing import Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from translation_gateway.core.exceptions import BaseAppException, ConfigurationError

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "status_code": status_code,
                "path": request.url.path,
            }
        },
        headers=headers,
    )


async def base_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Handle all application-specific exceptions.

    A 503 (translation service not started yet) carries a ``Retry-After``
    header so clients back off until the lifespan has finished.
    """
    logger.error(
        f"Application error: {exc.error_code} - {exc.detail}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    headers = dict(exc.headers or {})
    if exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
        headers.setdefault("Retry-After", "1")
    return error_response(
        request, exc.status_code, exc.error_code, exc.detail, headers or None
    )


async def configuration_error_handler(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    """Map a rejected translation or rate limit config to 422."""
    logger.warning(f"Rejected configuration on {request.url.path}: {exc}")
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "INVALID_CONFIGURATION",
        str(exc),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors without leaking internals."""
    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )

"""Error handling middleware."""

import traceback
from http import HTTPStatus
from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.core.exceptions import AppException
from app.core.utils import utcnow

logger = structlog.get_logger()


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_envelope(
    request: Request,
    status_code: int,
    message: str,
    message_bn: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """
    Build the error body shared by every handler.

    Args:
        request: Request that failed
        status_code: HTTP status of the response
        message: Human readable message
        message_bn: Optional Bengali message
        extra: Additional fields (e.g. validation details)

    Returns:
        JSON-serializable error body
    """
    body: dict[str, Any] = {
        "statusCode": status_code,
        "error": _reason(status_code),
        "message": message,
    }
    if message_bn:
        body["messageBn"] = message_bn
    body.update(
        {
            "timestamp": utcnow().isoformat(),
            "path": request.url.path,
            "method": request.method,
        }
    )
    body.update(extra)
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    if exc.status_code >= 500:
        logger.error("application_error", path=request.url.path, error=exc.message)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(request, exc.status_code, exc.message, exc.message_bn),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions raised by the framework (404 routes, 405 methods).

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(request, exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_envelope(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            "অনুরোধের তথ্য সঠিক নয়",
            details=jsonable_encoder(exc.errors()),
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    The stack trace is included in the response outside production only.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )

    extra: dict[str, Any] = {}
    if not settings.is_production:
        extra["stack"] = "".join(traceback.format_exception(exc))

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "একটি অপ্রত্যাশিত ত্রুটি ঘটেছে",
            **extra,
        ),
    )

"""
SlideFoundry - API Error Handling
=================================

Translates DeckError and HTTP errors into a consistent JSON body.
Responses never carry stack traces.
"""

from typing import Optional

import structlog
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from slidefoundry.core.errors import DeckError, ErrorCode

logger = structlog.get_logger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response format."""
    error: str
    message: str
    status_code: int
    request_id: Optional[str] = None


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


async def deck_error_handler(request: Request, exc: DeckError) -> JSONResponse:
    """Handle DeckError instances."""
    request_id = _request_id(request)

    logger.warning(
        "Application error",
        error_code=exc.error_code.value,
        message=exc.message,
        status_code=exc.status_code,
        request_id=request_id,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.error_code.value,
            message=exc.message,
            status_code=exc.status_code,
            request_id=request_id,
        ).model_dump(exclude_none=True),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException instances."""
    request_id = _request_id(request)

    logger.warning(
        "HTTP error",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=_status_code_to_error(exc.status_code),
            message=str(exc.detail),
            status_code=exc.status_code,
            request_id=request_id,
        ).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = _request_id(request)

    logger.exception(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=request_id,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorCode.GENERATION_FAILED.value,
            message="An internal error occurred",
            status_code=500,
            request_id=request_id,
        ).model_dump(exclude_none=True),
    )


def _status_code_to_error(status_code: int) -> str:
    error_map = {
        400: "BAD_REQUEST",
        401: ErrorCode.AUTH_REQUIRED.value,
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        413: "PAYLOAD_TOO_LARGE",
        422: "VALIDATION_ERROR",
        429: "RATE_LIMITED",
    }
    return error_map.get(status_code, "INTERNAL_ERROR" if status_code >= 500 else "HTTP_ERROR")


def register_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(DeckError, deck_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

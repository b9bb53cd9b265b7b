"""
Exception handlers for applications that mount the session middleware.

Store failures become JSON bodies carrying the error code, the message,
the optional details and whether a retry can help. Anything else is
logged with its stack trace and answered with a generic 500.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sqlite_sessions.errors.codes import ErrorCode
from sqlite_sessions.errors.exceptions import AppException, SessionStoreError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Seconds a client should wait before retrying after lock contention
RETRY_AFTER_SECONDS = 1

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


class ErrorResponse(BaseModel):
    """
    Body of every error response.

    ``retryable`` is set for session store errors only.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    retryable: Optional[bool] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Request id for error bodies and logs.

    Taken from ``request.state.request_id`` when an upstream middleware set
    it, then from the ``X-Request-ID`` header; otherwise a fresh UUID.
    """
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return request_id
    header = request.headers.get(REQUEST_ID_HEADER)
    return header or str(uuid.uuid4())


def _request_context(request: Request, request_id: str) -> dict[str, Any]:
    return {"request_id": request_id, "path": request.url.path, "method": request.method}


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Convert an AppException (usually a SessionStoreError) to a JSON response.

    Retryable store errors are logged at WARNING and carry a Retry-After
    header; other failures are logged at ERROR.
    """
    request_id = get_request_id(request)
    retryable = exc.retryable if isinstance(exc, SessionStoreError) else None

    logger.log(
        logging.WARNING if retryable else logging.ERROR,
        "Session store request failed",
        extra={"extra_data": {
            **_request_context(request, request_id),
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "retryable": retryable,
        }},
    )

    body = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        details=exc.details,
        retryable=retryable,
        request_id=request_id,
    )
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception and answer with a generic 500."""
    request_id = get_request_id(request)

    logger.error(
        "Unhandled error while serving a session request",
        extra={"extra_data": {
            **_request_context(request, request_id),
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "exception_type": type(exc).__name__,
        }},
        exc_info=exc,
    )

    body = ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message=GENERIC_ERROR_MESSAGE,
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app) -> None:
    """Register the AppException and catch-all handlers on a FastAPI app."""
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)

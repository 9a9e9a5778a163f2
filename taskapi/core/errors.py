"""
taskapi/core/errors.py — Error taxonomy and the JSON error envelope

Hierarchy:
    TaskAPIError
    ├── InvalidInput   — malformed id / body / title   → 400
    ├── Unauthorized   — missing or unknown API key    → 401
    ├── NotFound       — unknown task id               → 404
    └── RateLimited    — client bucket exhausted       → 429

All of them are recovered at the handler or pipeline boundary and rendered as
{"error": message}. None of them is fatal to the process.
"""
from __future__ import annotations

from typing import Optional

from fastapi import status
from fastapi.responses import JSONResponse

from taskapi.models import ErrorResponse


class TaskAPIError(Exception):
    """Base error for every failure that maps onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(TaskAPIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "invalid input"


class Unauthorized(TaskAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "unauthorized"


class NotFound(TaskAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "task not found"


class RateLimited(TaskAPIError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "rate limit exceeded"

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


def error_response(
    exc: TaskAPIError,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Render an error as the {"error": ...} envelope with its status code."""
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers = {**(headers or {}), "Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
        headers=headers,
    )

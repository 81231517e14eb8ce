"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("errors")


class ApiError(Exception):
    """Base exception with HTTP status code and a user-facing message."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotAuthenticatedError(ApiError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class NotFoundError(ApiError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, status_code=404)


class StatsWindowViolation(ApiError):
    """A non-admin tried to edit statistics outside the submission window."""

    MESSAGE = (
        "It's not possible to add stats for earlier games. "
        "Please ask the admin to make changes to older games."
    )

    def __init__(self, match_id=None):
        super().__init__(self.MESSAGE, status_code=403)
        self.match_id = match_id


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def handle_api_error(_request: Request, exc: ApiError):
        return JSONResponse(
            {"success": False, "message": exc.message},
            status_code=exc.status_code,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            {"success": False, "message": "Server error"},
            status_code=500,
        )

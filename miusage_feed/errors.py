"""Custom exceptions and centralized FastAPI error handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FeedError(Exception):
    """Base exception with HTTP status code."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FetchError(FeedError):
    """A single fetch attempt against the upstream API failed.

    ``kind`` names the failure class so callers can branch without
    isinstance checks (``transport``, ``http_status``, ``parse``, ``schema``).
    """

    kind = "fetch"

    def __init__(self, message: str):
        super().__init__(message, status_code=500)


class TransportError(FetchError):
    kind = "transport"


class HttpStatusError(FetchError):
    kind = "http_status"

    def __init__(self, status_code: int):
        super().__init__(f"API returned invalid response code: {status_code}")
        self.upstream_status = status_code


class ParseError(FetchError):
    kind = "parse"


class SchemaError(FetchError):
    kind = "schema"

    def __init__(self, message: str = "API returned invalid data structure"):
        super().__init__(message)


class AuthenticationRequired(FeedError):
    def __init__(self, message: str = "You must be logged in to refresh data."):
        super().__init__(message, status_code=401)


class PermissionDenied(FeedError):
    def __init__(self, message: str = "You do not have permission to refresh data."):
        super().__init__(message, status_code=403)


def error_body(message: str) -> dict:
    return {"success": False, "data": {"message": message}}


def register_error_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers on the FastAPI app."""

    @app.exception_handler(FeedError)
    async def handle_feed_error(_request: Request, exc: FeedError):
        return JSONResponse(error_body(exc.message), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected(_request: Request, exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            error_body("Internal server error"),
            status_code=500,
        )

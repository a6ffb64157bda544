"""
core/errors.py -- Typed failures shared by every layer.

Each exception carries the HTTP status the API layer answers with, a
human-readable message, and an optional list of field-level errors. Service
code raises these; api/main.py translates them into the uniform error
envelope:

    {"statusCode": 401, "success": false, "message": "...", "errors": [], "data": null}

Messages are written for end users. Internal detail (SQL errors, stack
traces, which JWT check failed) goes to the log, never into an ApiError.
"""

from __future__ import annotations

from typing import Optional


class ApiError(Exception):
    """Base class for failures that map to an HTTP status code."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None) -> None:
        self.message = message or self.default_message
        self.errors = list(errors) if errors else []
        super().__init__(self.message)


class BadRequestError(ApiError):
    """Missing or malformed input (400)."""

    status_code = 400
    default_message = "Bad request"


class UnauthorizedError(ApiError):
    """Bad credentials, missing/invalid/expired token, revoked session (401)."""

    status_code = 401
    default_message = "Unauthorized request"


class InvalidTokenError(UnauthorizedError):
    """A token failed signature, structure, or expiry checks.

    The three causes are deliberately not distinguished for the caller; the
    token codec logs which one occurred.
    """

    default_message = "Invalid or expired token"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Resource already exists"


class InternalError(ApiError):
    """Store write or token-signing failure (500)."""

    status_code = 500
    default_message = "Internal Server Error"


__all__ = [
    "ApiError",
    "BadRequestError",
    "UnauthorizedError",
    "InvalidTokenError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
]

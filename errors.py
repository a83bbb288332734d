"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

app_error_for() turns a workflow ErrorKind into the one AppError that
represents it on the wire; the kind's value becomes the response ``code``.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.result import ErrorKind
from shared.logging import get_logger

log = get_logger(__name__)

GENERIC_FAILURE_MESSAGE = "something went wrong, we are working on it..."


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class InternalServiceError(AppError):
    status_code = 500
    error_code = "internal_error"


class UpstreamServiceError(AppError):
    status_code = 502
    error_code = "upstream_error"


_KIND_TO_ERROR: dict[ErrorKind, tuple[type[AppError], str]] = {
    ErrorKind.INVALID_EMAIL: (ValidationError, "invalid email address"),
    ErrorKind.INVALID_PASSWORD: (ValidationError, "invalid password"),
    ErrorKind.UNKNOWN_USER: (AuthenticationError, "unknown user"),
    ErrorKind.USER_ALREADY_EXISTS: (ConflictError, "user already exists"),
    ErrorKind.EMAIL_NOT_VERIFIED: (ForbiddenError, "email address is not verified"),
    ErrorKind.RESET_DISABLED: (ForbiddenError, "password reset is disabled for this account"),
    ErrorKind.INVALID_OR_EXPIRED_CODE: (ValidationError, "invalid or expired code"),
    ErrorKind.INVALID_SELECTOR_TOKEN_PAIR: (ValidationError, "invalid or unknown reset request"),
    ErrorKind.TOKEN_EXPIRED: (ValidationError, "request has expired"),
    ErrorKind.NO_PRIOR_CONFIRMATION_REQUEST: (
        NotFoundError,
        "no earlier confirmation request found",
    ),
    ErrorKind.TOO_MANY_REQUESTS: (RateLimitError, "too many requests, try again later"),
    ErrorKind.DECODE_ERROR: (ValidationError, "invalid or corrupted payload"),
    ErrorKind.STORAGE_ERROR: (InternalServiceError, GENERIC_FAILURE_MESSAGE),
    ErrorKind.UPSTREAM_ERROR: (UpstreamServiceError, GENERIC_FAILURE_MESSAGE),
    ErrorKind.NOT_LOGGED_IN: (AuthenticationError, "not logged in"),
}


def app_error_for(kind: ErrorKind) -> AppError:
    """Build the outward error for a workflow failure kind."""
    error_cls, message = _KIND_TO_ERROR[kind]
    err = error_cls(message)
    err.error_code = kind.value
    return err


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": GENERIC_FAILURE_MESSAGE, "code": "internal_error"},
        )

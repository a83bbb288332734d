"""
Tagged results returned by every workflow operation.

A workflow call yields either ``Ok(value)`` or ``Err(kind)``; callers branch
on ``.ok`` and return early instead of unwinding through exception handlers.
Each ``ErrorKind`` maps to exactly one outward signal (see errors.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_EMAIL = "invalid_email"
    INVALID_PASSWORD = "invalid_password"
    UNKNOWN_USER = "unknown_user"
    USER_ALREADY_EXISTS = "user_already_exists"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    RESET_DISABLED = "reset_disabled"
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    INVALID_SELECTOR_TOKEN_PAIR = "invalid_selector_token_pair"
    TOKEN_EXPIRED = "token_expired"
    NO_PRIOR_CONFIRMATION_REQUEST = "no_prior_confirmation_request"
    TOO_MANY_REQUESTS = "too_many_requests"
    DECODE_ERROR = "decode_error"
    STORAGE_ERROR = "storage_error"
    UPSTREAM_ERROR = "upstream_error"
    NOT_LOGGED_IN = "not_logged_in"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T = None  # type: ignore[assignment]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]

"""
Identity-level failures.

Each subclass carries the ErrorKind it stands for, so the workflow maps a
provider rejection to its outward signal with ``exc.kind`` and nothing else.
"""

from __future__ import annotations

from services.result import ErrorKind


class IdentityError(Exception):
    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR


class InvalidEmailError(IdentityError):
    kind = ErrorKind.INVALID_EMAIL


class InvalidPasswordError(IdentityError):
    kind = ErrorKind.INVALID_PASSWORD


class UnknownUserError(IdentityError):
    kind = ErrorKind.UNKNOWN_USER


class UserAlreadyExistsError(IdentityError):
    kind = ErrorKind.USER_ALREADY_EXISTS


class EmailNotVerifiedError(IdentityError):
    kind = ErrorKind.EMAIL_NOT_VERIFIED


class ResetDisabledError(IdentityError):
    kind = ErrorKind.RESET_DISABLED


class InvalidSelectorTokenPairError(IdentityError):
    kind = ErrorKind.INVALID_SELECTOR_TOKEN_PAIR


class TokenExpiredError(IdentityError):
    kind = ErrorKind.TOKEN_EXPIRED


class ConfirmationRequestNotFoundError(IdentityError):
    kind = ErrorKind.NO_PRIOR_CONFIRMATION_REQUEST


class TooManyRequestsError(IdentityError):
    kind = ErrorKind.TOO_MANY_REQUESTS


class NotLoggedInError(IdentityError):
    kind = ErrorKind.NOT_LOGGED_IN

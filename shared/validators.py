"""
Input validators: framework-agnostic, pure functions.

Used by the identity provider before any account record is written, and by
the workflow to reject malformed OTP codes before they reach the store.
"""

from __future__ import annotations

import re

import validators as _validators

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.-]{3,32}$")


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address (max 254 chars)."""
    if not email or len(email) > 254:
        return False
    return bool(_validators.email(email))


def validate_password(password: str) -> bool:
    """Validate an account password.

    Rules:
    - 8 to 128 characters
    - Contains at least one letter
    - Contains at least one digit
    - Contains at least one non-alphanumeric character

    Returns:
        True if the password meets all requirements.
    """
    if len(password) < 8 or len(password) > 128:
        return False
    if not re.search(r"[a-zA-Z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    if not re.search(r"[^a-zA-Z0-9]", password):
        return False
    return True


def validate_username(username: str) -> bool:
    """Return True if *username* is 3–32 chars of letters, digits, ``_``, ``.`` or ``-``."""
    return bool(_USERNAME_RE.match(username or ""))


def validate_otp_code(code: str, length: int = 6) -> bool:
    """Return True if *code* is exactly *length* ASCII digits."""
    return len(code) == length and code.isascii() and code.isdigit()


def normalize_email(email: str) -> str:
    """Trim surrounding whitespace and lowercase *email* for storage and lookups."""
    return email.strip().lower()

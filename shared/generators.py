"""
Random code and token generators: pure, side-effect-free functions.

All generators use the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import string


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Leading zeros are allowed, so every one of the ``10**length`` codes is
    equally likely.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Args:
        length: Number of random bytes before base64 encoding (default 32).
            The resulting string will be longer than *length* characters.
    """
    return secrets.token_urlsafe(length)


def generate_selector() -> str:
    """Generate the public half of a selector/token pair (16 random bytes)."""
    return secrets.token_urlsafe(16)

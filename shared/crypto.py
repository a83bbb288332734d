"""
Cryptographic helpers: password hashing and credential hashing.

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for OTP codes and
selector/token secrets, which are high-entropy or short-lived enough that a
fast digest is sufficient.
"""

from __future__ import annotations

import hashlib
import hmac

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    Returns:
        ``True`` if the password matches, ``False`` on mismatch or when the
        stored hash is not a valid argon2 hash.
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerificationError, InvalidHashError):
        return False


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used for OTP codes and identity tokens so the plaintext is never
    persisted.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str) -> bool:
    """Constant-time check of *token* against a stored :func:`hash_token` digest."""
    return hmac.compare_digest(hash_token(token), token_hash)

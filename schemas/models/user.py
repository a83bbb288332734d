"""
Account and session document models for the reference identity provider.

UserDoc    - `users` collection; email and username are unique
SessionDoc - `sessions` collection; one row per login, keyed by the
             SHA-256 of the opaque session id handed to the client
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class UserDoc(MongoBaseModel):
    """
    Document model for the `users` collection.

    verified flips to True once the signup code is confirmed.
    resettable=False blocks password resets for the account.
    """

    email: str
    username: str
    password_hash: str
    verified: bool = False
    resettable: bool = True
    roles: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class SessionDoc(MongoBaseModel):
    """Document model for the `sessions` collection."""

    session_hash: str
    user_id: PyObjectId
    created_at: Optional[datetime] = None

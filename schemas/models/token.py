"""
Identity token document model.

Maps to the `identity-tokens` MongoDB collection.

Each row is one selector/token pair issued for email confirmation or
password reset. The selector is stored in clear and used for lookup;
token_hash stores SHA-256(token); the plain token only ever travels inside
a verification-code row or a capability token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


PURPOSE_CONFIRM_EMAIL = "confirm_email"
PURPOSE_RESET_PASSWORD = "reset_password"


class IdentityTokenDoc(MongoBaseModel):
    """Document model for the `identity-tokens` collection."""

    selector: str
    token_hash: str
    purpose: str
    user_id: PyObjectId
    email: str
    expires_at: datetime
    created_at: Optional[datetime] = None

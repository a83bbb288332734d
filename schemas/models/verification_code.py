"""
Verification code document model.

Maps to the `verification-codes` MongoDB collection.

A row is the only binding between an emailed OTP and the identity
provider's selector/token pair. code_hash stores SHA-256(code); the plain
OTP is never stored. claimed_at is set while a verify-email request holds the
row and cleared again if that request's delegation fails.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class VerificationCodeDoc(MongoBaseModel):
    """Document model for the `verification-codes` collection."""

    code_hash: str
    email: str
    selector: str
    token: str
    expires_at: datetime
    created_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None

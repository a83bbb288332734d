"""
Response DTOs for account endpoints.

LoginResponse               POST /auth/login  (200)
VerifyCodeForResetResponse  POST /auth/verify-code-for-reset  (200)

Every other account endpoint answers with MessageResponse.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class LoginResponse(BaseModel):
    """Response body for POST /auth/login (200).

    The session id itself travels only in the session cookie.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user_id: str
    username: str
    email: str
    roles: list[str] = []


class VerifyCodeForResetResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    payload: str

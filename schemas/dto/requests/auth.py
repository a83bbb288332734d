"""
Request DTOs for account endpoints.

SignupRequest          POST /auth/signup
LoginRequest           POST /auth/login
EmailRequest           POST /auth/resend-code, POST /auth/initiate-password-reset
VerifyCodeRequest      POST /auth/verify-email, POST /auth/verify-code-for-reset
CompleteResetRequest   POST /auth/complete-reset
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from shared.validators import validate_username


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup.

    Email and password rules are enforced by the identity provider so that
    they surface as invalid_email / invalid_password; only the username shape
    is checked here.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    username: str

    @field_validator("username", mode="after")
    @classmethod
    def check_username(cls, v: str) -> str:
        v = v.strip()
        if not validate_username(v):
            raise ValueError(
                "username must be 3-32 characters of letters, digits, '_', '.' or '-'"
            )
        return v


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str


class EmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class VerifyCodeRequest(BaseModel):
    """``code`` is the numeric OTP mailed to ``email``."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    code: str


class CompleteResetRequest(BaseModel):
    """``payload`` is the opaque token returned by verify-code-for-reset."""

    model_config = ConfigDict(populate_by_name=True)

    password: str
    payload: str

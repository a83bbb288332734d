"""
Account endpoints.

POST /auth/signup                   - register, mail a confirmation code
POST /auth/login                    - username/password login, sets session cookie
POST /auth/logout                   - end every session of the cookie's user
POST /auth/resend-code              - replace the pending confirmation code
POST /auth/verify-email             - confirm an address with its code
POST /auth/initiate-password-reset  - mail a reset code
POST /auth/verify-code-for-reset    - trade a reset code for an opaque payload
POST /auth/complete-reset           - set a new password with that payload

Handlers are thin: each calls one workflow operation and turns an Err into
its AppError via app_error_for().
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from config import AppSettings
from dependencies import get_actor, get_settings, get_workflow
from errors import app_error_for
from schemas.dto.requests.auth import (
    CompleteResetRequest,
    EmailRequest,
    LoginRequest,
    SignupRequest,
    VerifyCodeRequest,
)
from schemas.dto.responses.auth import LoginResponse, VerifyCodeForResetResponse
from schemas.dto.responses.common import MessageResponse
from services.recovery_workflow import RecoveryWorkflow
from services.result import Result

router = APIRouter(prefix="/auth", tags=["auth"])


def _unwrap(result: Result):
    if not result.ok:
        raise app_error_for(result.kind)
    return result.value


@router.post("/signup", status_code=201)
async def signup(
    body: SignupRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
) -> MessageResponse:
    _unwrap(await workflow.signup(body.email, body.password, body.username))
    return MessageResponse(success=True, message="verification code sent")


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    workflow: RecoveryWorkflow = Depends(get_workflow),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    result = _unwrap(await workflow.login(body.username, body.password))
    response.set_cookie(
        settings.session_cookie_name,
        value=result.session_id,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
        path="/",
    )
    return LoginResponse(
        user_id=result.user_id,
        username=result.username,
        email=result.email,
        roles=result.roles,
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    workflow: RecoveryWorkflow = Depends(get_workflow),
    settings: AppSettings = Depends(get_settings),
) -> MessageResponse:
    session_id = request.cookies.get(settings.session_cookie_name)
    _unwrap(await workflow.logout(session_id))
    response.set_cookie(
        settings.session_cookie_name,
        value="",
        expires=0,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="Lax",
        path="/",
    )
    return MessageResponse(success=True, message="logged out")


@router.post("/resend-code")
async def resend_code(
    body: EmailRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
) -> MessageResponse:
    _unwrap(await workflow.resend_code(body.email))
    return MessageResponse(success=True, message="verification code sent")


@router.post("/verify-email")
async def verify_email(
    body: VerifyCodeRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
    actor: str = Depends(get_actor),
) -> MessageResponse:
    _unwrap(await workflow.verify_email(body.email, body.code, actor))
    return MessageResponse(success=True, message="email verified")


@router.post("/initiate-password-reset")
async def initiate_password_reset(
    body: EmailRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
) -> MessageResponse:
    _unwrap(await workflow.initiate_password_reset(body.email))
    return MessageResponse(success=True, message="reset code sent")


@router.post("/verify-code-for-reset")
async def verify_code_for_reset(
    body: VerifyCodeRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
    actor: str = Depends(get_actor),
) -> VerifyCodeForResetResponse:
    payload = _unwrap(await workflow.verify_code_for_reset(body.email, body.code, actor))
    return VerifyCodeForResetResponse(payload=payload)


@router.post("/complete-reset")
async def complete_reset(
    body: CompleteResetRequest,
    workflow: RecoveryWorkflow = Depends(get_workflow),
) -> MessageResponse:
    _unwrap(await workflow.complete_reset(body.password, body.payload))
    return MessageResponse(success=True, message="password updated")

"""
Recovery workflow orchestrator.

Coordinates the identity provider, the verification code store, the throttle
guard, the capability codec and the mail dispatcher for every account flow:

    signup                   → pending user + emailed code
    resend_code              → fresh code for an unconfirmed signup
    verify_email             → code → confirm_email(selector, token)
    initiate_password_reset  → reset selector/token + emailed code
    verify_code_for_reset    → code → opaque capability token
    complete_reset           → capability token → reset_password
    login / logout           → straight delegation

Every operation returns ``Ok(value)`` or ``Err(kind)``. Collaborator faults
are logged here with full detail and collapse into STORAGE_ERROR or
UPSTREAM_ERROR; nothing internal ever reaches the caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from config import VerificationSettings
from infrastructure.email.composer import MailComposer
from infrastructure.email.protocol import MailMessage
from infrastructure.identity.errors import IdentityError
from infrastructure.identity.protocol import IdentityProvider, LoginResult, SelectorToken
from schemas.models.verification_code import VerificationCodeDoc
from services.capability_codec import CapabilityTokenCodec
from services.exceptions import CapabilityDecodeError, StorageError
from services.mail_queue import MailDispatcher
from services.result import Err, ErrorKind, Ok, Result
from services.throttle import ThrottleGuard
from services.verification_store import VerificationCodeStore
from shared.generators import generate_otp_code
from shared.logging import get_logger, hash_ip
from shared.validators import normalize_email, validate_otp_code

log = get_logger(__name__)

T = TypeVar("T")

VERIFY_ACTION = "code-verification-request"


class RecoveryWorkflow:
    def __init__(
        self,
        identity: IdentityProvider,
        codes: VerificationCodeStore,
        throttle: ThrottleGuard,
        codec: CapabilityTokenCodec,
        mailer: MailDispatcher,
        composer: MailComposer,
        settings: Optional[VerificationSettings] = None,
    ) -> None:
        self._identity = identity
        self._codes = codes
        self._throttle = throttle
        self._codec = codec
        self._mailer = mailer
        self._composer = composer
        self._settings = settings or VerificationSettings()

    # ── collaborator calls ───────────────────────────────────────────────────

    async def _delegate(self, operation: str, call: Awaitable[T]) -> Result[T]:
        """Await an identity provider call, bounded by the upstream timeout."""
        try:
            value = await asyncio.wait_for(
                call, timeout=self._settings.upstream_timeout_seconds
            )
        except IdentityError as e:
            log.info("identity_rejected", operation=operation, kind=e.kind.value)
            return Err(e.kind)
        except StorageError as e:
            log.error("identity_storage_error", operation=operation, error=str(e))
            return Err(ErrorKind.STORAGE_ERROR)
        except asyncio.TimeoutError:
            log.error(
                "identity_timeout",
                operation=operation,
                timeout_seconds=self._settings.upstream_timeout_seconds,
            )
            return Err(ErrorKind.UPSTREAM_ERROR)
        except Exception as e:
            log.error(
                "identity_error",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            return Err(ErrorKind.UPSTREAM_ERROR)
        return Ok(value)

    async def _storage(self, operation: str, call: Awaitable[T]) -> Result[T]:
        try:
            return Ok(await call)
        except StorageError as e:
            log.error("workflow_storage_error", operation=operation, error=str(e))
            return Err(ErrorKind.STORAGE_ERROR)

    async def _issue_code(
        self,
        email: str,
        pair: SelectorToken,
        compose: Callable[[str, str], MailMessage],
    ) -> Result[None]:
        """Bind a fresh OTP to *pair*, then queue the mail that carries it."""
        code = generate_otp_code(self._settings.code_length)
        stored = await self._storage(
            "put", self._codes.put(email, code, pair.selector, pair.token)
        )
        if not stored.ok:
            return stored
        self._mailer.enqueue(compose(email, code))
        return Ok(None)

    async def _find_code(
        self, email: str, code: str, actor: str
    ) -> Result[VerificationCodeDoc]:
        """Throttle, sweep, look up and cross-check a submitted code.

        A row issued for another address is reported exactly like a missing
        one.
        """
        s = self._settings
        decision = await self._storage(
            "throttle",
            self._throttle.check(VERIFY_ACTION, actor, s.verify_limit, s.verify_window_seconds),
        )
        if not decision.ok:
            return decision
        if not decision.value.allowed:
            return Err(ErrorKind.TOO_MANY_REQUESTS)

        if not validate_otp_code(code, s.code_length):
            return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)

        swept = await self._storage("sweep_expired", self._codes.sweep_expired())
        if not swept.ok:
            return swept

        found = await self._storage("find_by_code", self._codes.find_by_code(code))
        if not found.ok:
            return found
        row = found.value
        if row is None or row.email != email:
            log.info("verification_code_not_found", actor=hash_ip(actor))
            return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)
        return Ok(row)

    # ── flows ────────────────────────────────────────────────────────────────

    async def signup(self, email: str, password: str, username: str) -> Result[None]:
        issued = await self._delegate(
            "register_pending_user",
            self._identity.register_pending_user(email, password, username),
        )
        if not issued.ok:
            return issued
        return await self._issue_code(
            normalize_email(email), issued.value, self._composer.verification_code
        )

    async def login(self, username: str, password: str) -> Result[LoginResult]:
        return await self._delegate(
            "login_with_username", self._identity.login_with_username(username, password)
        )

    async def logout(self, session_id: Optional[str]) -> Result[None]:
        if not session_id:
            return Err(ErrorKind.NOT_LOGGED_IN)
        return await self._delegate(
            "logout_everywhere", self._identity.logout_everywhere(session_id)
        )

    async def resend_code(self, email: str) -> Result[None]:
        """Replace every pending code for *email* with a fresh one.

        The provider validates and reissues first; local rows are only
        touched once it has agreed.
        """
        email = normalize_email(email)
        swept = await self._storage("sweep_expired", self._codes.sweep_expired())
        if not swept.ok:
            return swept

        issued = await self._delegate(
            "resend_confirmation", self._identity.resend_confirmation(email)
        )
        if not issued.ok:
            return issued

        deleted = await self._storage("delete_by_email", self._codes.delete_by_email(email))
        if not deleted.ok:
            return deleted
        return await self._issue_code(email, issued.value, self._composer.verification_code)

    async def verify_email(self, email: str, code: str, actor: str) -> Result[None]:
        email = normalize_email(email)
        found = await self._find_code(email, code, actor)
        if not found.ok:
            return found
        row = found.value

        claimed = await self._storage("claim", self._codes.claim(code, email))
        if not claimed.ok:
            return claimed
        if not claimed.value:
            # Another request got to this row first
            return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)

        confirmed = await self._delegate(
            "confirm_email", self._identity.confirm_email(row.selector, row.token)
        )
        if not confirmed.ok:
            await self._storage("release", self._codes.release(code, email))
            return confirmed

        consumed = await self._storage(
            "delete_by_code_and_email", self._codes.delete_by_code_and_email(code, email)
        )
        if not consumed.ok:
            return consumed
        if not consumed.value:
            log.warning("verification_code_vanished", actor=hash_ip(actor))
            return Err(ErrorKind.INVALID_OR_EXPIRED_CODE)

        log.info("email_verification_succeeded", actor=hash_ip(actor))
        return Ok(None)

    async def initiate_password_reset(self, email: str) -> Result[None]:
        issued = await self._delegate(
            "forgot_password", self._identity.forgot_password(email)
        )
        if not issued.ok:
            return issued
        return await self._issue_code(
            normalize_email(email), issued.value, self._composer.password_reset_code
        )

    async def verify_code_for_reset(
        self, email: str, code: str, actor: str
    ) -> Result[str]:
        """Trade a reset code for an opaque capability token.

        The code row is left in place; from here on the token carries the
        selector/token pair and the provider decides when that pair dies.
        """
        found = await self._find_code(normalize_email(email), code, actor)
        if not found.ok:
            return found
        row = found.value

        eligible = await self._delegate(
            "can_reset_password_or_throw",
            self._identity.can_reset_password_or_throw(row.selector, row.token),
        )
        if not eligible.ok:
            return eligible
        return Ok(self._codec.encode(row.selector, row.token))

    async def complete_reset(self, password: str, payload: str) -> Result[None]:
        try:
            selector, token = self._codec.decode(payload)
        except CapabilityDecodeError as e:
            log.warning("capability_token_rejected", reason=str(e))
            return Err(ErrorKind.DECODE_ERROR)

        return await self._delegate(
            "reset_password", self._identity.reset_password(selector, token, password)
        )

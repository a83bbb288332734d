"""MongoDB-backed IdentityProvider.

Owns user records, selector/token pairs and login sessions. Passwords are
hashed with argon2; tokens and session ids only ever hit the database as
SHA-256 digests. Every public method either returns normally or raises one
IdentityError subclass.

Selector/token pairs carry their own expiry and are one-time: a confirmed
email deletes its pair, a completed reset expires its pair in place so a
replay reports TokenExpired instead of an unknown pair.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from config import IdentitySettings
from infrastructure.identity.errors import (
    ConfirmationRequestNotFoundError,
    EmailNotVerifiedError,
    InvalidEmailError,
    InvalidPasswordError,
    InvalidSelectorTokenPairError,
    NotLoggedInError,
    ResetDisabledError,
    TokenExpiredError,
    TooManyRequestsError,
    UnknownUserError,
    UserAlreadyExistsError,
)
from infrastructure.identity.protocol import LoginResult, SelectorToken
from schemas.models.token import (
    PURPOSE_CONFIRM_EMAIL,
    PURPOSE_RESET_PASSWORD,
    IdentityTokenDoc,
)
from schemas.models.user import SessionDoc, UserDoc
from services.throttle import ThrottleGuard
from shared.crypto import hash_password, hash_token, token_matches, verify_password
from shared.datetime_utils import Clock, ensure_aware, utcnow
from shared.generators import generate_secure_token, generate_selector
from shared.logging import get_logger
from shared.validators import normalize_email, validate_email, validate_password

log = get_logger(__name__)

# Keep spent pairs around long enough to tell "expired" from "never existed"
_SPENT_TOKEN_RETENTION_SECONDS = 86400


class MongoIdentityProvider:
    def __init__(
        self,
        db,
        throttle: ThrottleGuard,
        settings: IdentitySettings,
        clock: Optional[Clock] = None,
    ) -> None:
        self._users = db["users"]
        self._tokens = db["identity-tokens"]
        self._sessions = db["sessions"]
        self._throttle_guard = throttle
        self._settings = settings
        self._clock = clock or utcnow

    async def ensure_indexes(self) -> None:
        await self._users.create_index([("email", ASCENDING)], unique=True)
        await self._users.create_index([("username", ASCENDING)], unique=True)
        await self._tokens.create_index([("selector", ASCENDING)], unique=True)
        await self._tokens.create_index(
            [("email", ASCENDING), ("purpose", ASCENDING), ("created_at", DESCENDING)]
        )
        await self._tokens.create_index(
            "expires_at", expireAfterSeconds=_SPENT_TOKEN_RETENTION_SECONDS
        )
        await self._sessions.create_index([("session_hash", ASCENDING)], unique=True)
        await self._sessions.create_index([("user_id", ASCENDING)])

    # ── internals ────────────────────────────────────────────────────────────

    async def _throttle(self, action: str, actor: str, limit: int, window: int) -> None:
        decision = await self._throttle_guard.check(action, actor, limit, window)
        if not decision.allowed:
            raise TooManyRequestsError(action)

    async def _issue(self, user: UserDoc, purpose: str, ttl_seconds: int) -> SelectorToken:
        now = self._clock()
        selector = generate_selector()
        token = generate_secure_token()
        doc = IdentityTokenDoc(
            selector=selector,
            token_hash=hash_token(token),
            purpose=purpose,
            user_id=user.id,
            email=user.email,
            expires_at=now + timedelta(seconds=ttl_seconds),
            created_at=now,
        )
        await self._tokens.insert_one(doc.to_mongo())
        log.info("identity_token_issued", user_id=str(user.id), purpose=purpose)
        return SelectorToken(selector=selector, token=token)

    async def _load_token(self, selector: str, token: str, purpose: str) -> IdentityTokenDoc:
        doc = IdentityTokenDoc.from_mongo(
            await self._tokens.find_one({"selector": selector, "purpose": purpose})
        )
        if doc is None or not token_matches(token, doc.token_hash):
            raise InvalidSelectorTokenPairError(purpose)
        if ensure_aware(doc.expires_at) <= self._clock():
            raise TokenExpiredError(purpose)
        return doc

    async def _user_by_id(self, user_id) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._users.find_one({"_id": user_id}))

    async def _load_reset(self, selector: str, token: str) -> tuple[IdentityTokenDoc, UserDoc]:
        doc = await self._load_token(selector, token, PURPOSE_RESET_PASSWORD)
        user = await self._user_by_id(doc.user_id)
        if user is None:
            raise InvalidSelectorTokenPairError(PURPOSE_RESET_PASSWORD)
        if not user.resettable:
            raise ResetDisabledError(str(user.id))
        return doc, user

    # ── IdentityProvider ─────────────────────────────────────────────────────

    async def register_pending_user(
        self, email: str, password: str, username: str
    ) -> SelectorToken:
        email = normalize_email(email)
        username = username.strip()
        if not validate_email(email):
            raise InvalidEmailError(email)
        if not validate_password(password):
            raise InvalidPasswordError()

        s = self._settings
        await self._throttle("create-account", email, s.signup_limit, s.signup_window_seconds)

        existing = await self._users.find_one(
            {"$or": [{"email": email}, {"username": username}]}
        )
        if existing is not None:
            raise UserAlreadyExistsError(email)

        now = self._clock()
        user = UserDoc(
            email=email,
            username=username,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        try:
            result = await self._users.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            raise UserAlreadyExistsError(email) from e
        user.id = result.inserted_id

        log.info("user_registered", user_id=str(user.id))
        return await self._issue(user, PURPOSE_CONFIRM_EMAIL, s.confirmation_ttl_seconds)

    async def login_with_username(self, username: str, password: str) -> LoginResult:
        s = self._settings
        await self._throttle("attempt-login", username, s.login_limit, s.login_window_seconds)

        user = UserDoc.from_mongo(await self._users.find_one({"username": username}))
        if user is None:
            raise UnknownUserError(username)
        if not verify_password(password, user.password_hash):
            raise InvalidPasswordError()
        if not user.verified:
            raise EmailNotVerifiedError(user.email)

        now = self._clock()
        session_id = generate_secure_token()
        session = SessionDoc(
            session_hash=hash_token(session_id), user_id=user.id, created_at=now
        )
        await self._sessions.insert_one(session.to_mongo())
        await self._users.update_one({"_id": user.id}, {"$set": {"last_login_at": now}})

        log.info("user_logged_in", user_id=str(user.id))
        return LoginResult(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            session_id=session_id,
            roles=list(user.roles),
        )

    async def logout_everywhere(self, session_id: str) -> None:
        session = SessionDoc.from_mongo(
            await self._sessions.find_one({"session_hash": hash_token(session_id)})
        )
        if session is None:
            raise NotLoggedInError()
        result = await self._sessions.delete_many({"user_id": session.user_id})
        log.info(
            "user_logged_out_everywhere",
            user_id=str(session.user_id),
            sessions=result.deleted_count,
        )

    async def forgot_password(self, email: str) -> SelectorToken:
        email = normalize_email(email)
        if not validate_email(email):
            raise InvalidEmailError(email)

        user = UserDoc.from_mongo(await self._users.find_one({"email": email}))
        if user is None:
            raise InvalidEmailError(email)
        if not user.verified:
            raise EmailNotVerifiedError(email)
        if not user.resettable:
            raise ResetDisabledError(email)

        s = self._settings
        await self._throttle(
            "request-password-reset", email, s.reset_request_limit, s.reset_request_window_seconds
        )
        open_requests = await self._tokens.count_documents(
            {
                "user_id": user.id,
                "purpose": PURPOSE_RESET_PASSWORD,
                "expires_at": {"$gt": self._clock()},
            }
        )
        if open_requests >= s.max_open_resets:
            raise TooManyRequestsError("open-reset-requests")

        return await self._issue(user, PURPOSE_RESET_PASSWORD, s.reset_ttl_seconds)

    async def resend_confirmation(self, email: str) -> SelectorToken:
        email = normalize_email(email)
        latest = IdentityTokenDoc.from_mongo(
            await self._tokens.find_one(
                {"email": email, "purpose": PURPOSE_CONFIRM_EMAIL},
                sort=[("created_at", DESCENDING)],
            )
        )
        if latest is None:
            raise ConfirmationRequestNotFoundError(email)

        s = self._settings
        await self._throttle("resend-confirmation", email, s.resend_limit, s.resend_window_seconds)

        user = await self._user_by_id(latest.user_id)
        if user is None or user.verified:
            raise ConfirmationRequestNotFoundError(email)

        await self._tokens.delete_many({"email": email, "purpose": PURPOSE_CONFIRM_EMAIL})
        return await self._issue(user, PURPOSE_CONFIRM_EMAIL, s.confirmation_ttl_seconds)

    async def confirm_email(self, selector: str, token: str) -> None:
        s = self._settings
        await self._throttle("confirm-email", selector, s.selector_limit, s.selector_window_seconds)

        doc = await self._load_token(selector, token, PURPOSE_CONFIRM_EMAIL)

        # Another account verified this address since the pair was issued
        clash = await self._users.find_one(
            {"email": doc.email, "verified": True, "_id": {"$ne": doc.user_id}}
        )
        if clash is not None:
            raise UserAlreadyExistsError(doc.email)

        result = await self._users.update_one(
            {"_id": doc.user_id},
            {"$set": {"verified": True, "updated_at": self._clock()}},
        )
        if result.matched_count == 0:
            raise InvalidSelectorTokenPairError(PURPOSE_CONFIRM_EMAIL)

        await self._tokens.delete_one({"_id": doc.id})
        log.info("email_confirmed", user_id=str(doc.user_id))

    async def can_reset_password_or_throw(self, selector: str, token: str) -> None:
        s = self._settings
        await self._throttle("reset-password", selector, s.selector_limit, s.selector_window_seconds)
        await self._load_reset(selector, token)

    async def reset_password(self, selector: str, token: str, new_password: str) -> None:
        s = self._settings
        await self._throttle("reset-password", selector, s.selector_limit, s.selector_window_seconds)

        doc, user = await self._load_reset(selector, token)
        if not validate_password(new_password):
            raise InvalidPasswordError()

        # Spend the pair first; of two concurrent resets only one can match
        now = self._clock()
        spent = await self._tokens.find_one_and_update(
            {"_id": doc.id, "expires_at": {"$gt": now}},
            {"$set": {"expires_at": now}},
        )
        if spent is None:
            raise TokenExpiredError(PURPOSE_RESET_PASSWORD)

        await self._users.update_one(
            {"_id": user.id},
            {"$set": {"password_hash": hash_password(new_password), "updated_at": now}},
        )
        await self._sessions.delete_many({"user_id": user.id})
        log.info("password_reset_completed", user_id=str(user.id))

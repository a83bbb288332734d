"""Unit tests for MongoIdentityProvider (mongomock-backed)."""

import asyncio

import pytest

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
from infrastructure.identity.mongo_provider import MongoIdentityProvider
from services.result import ErrorKind
from services.throttle import MongoThrottleStore, ThrottleGuard
from shared.crypto import hash_token, verify_password

PASSWORD = "P@ssw0rd1"


@pytest.fixture
def make_provider(mongo_db, clock):
    def _make(**overrides):
        guard = ThrottleGuard(MongoThrottleStore(mongo_db["throttle-log"]), clock=clock)
        return MongoIdentityProvider(
            mongo_db, guard, IdentitySettings(**overrides), clock=clock
        )

    return _make


@pytest.fixture
def provider(make_provider):
    return make_provider()


def _users(provider):
    return provider._users.sync


def _tokens(provider):
    return provider._tokens.sync


async def _verified_user(provider, email="u@x.com", username="alice"):
    pair = await provider.register_pending_user(email, PASSWORD, username)
    await provider.confirm_email(pair.selector, pair.token)


class TestRegister:
    async def test_creates_pending_user_and_pair(self, provider):
        pair = await provider.register_pending_user(" U@X.com ", PASSWORD, "alice")
        user = _users(provider).find_one({"username": "alice"})
        assert user["email"] == "u@x.com"
        assert user["verified"] is False
        assert verify_password(PASSWORD, user["password_hash"])

        row = _tokens(provider).find_one({"selector": pair.selector})
        assert row["token_hash"] == hash_token(pair.token)
        assert row["purpose"] == "confirm_email"
        assert row["user_id"] == user["_id"]

    @pytest.mark.parametrize(
        "email, password, error",
        [
            ("not-an-email", PASSWORD, InvalidEmailError),
            ("u@x.com", "short", InvalidPasswordError),
            ("u@x.com", "onlyletters!", InvalidPasswordError),
        ],
        ids=["bad_email", "short_password", "no_digit"],
    )
    async def test_validation(self, provider, email, password, error):
        with pytest.raises(error):
            await provider.register_pending_user(email, password, "alice")

    @pytest.mark.parametrize(
        "email, username",
        [("u@x.com", "bob"), ("v@x.com", "alice")],
        ids=["same_email", "same_username"],
    )
    async def test_duplicates(self, provider, email, username):
        await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(UserAlreadyExistsError):
            await provider.register_pending_user(email, PASSWORD, username)

    async def test_throttled(self, make_provider):
        provider = make_provider(signup_limit=1)
        await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(TooManyRequestsError) as exc:
            await provider.register_pending_user("u@x.com", PASSWORD, "bob")
        assert exc.value.kind is ErrorKind.TOO_MANY_REQUESTS


class TestConfirmEmail:
    async def test_marks_verified_and_spends_pair(self, provider):
        pair = await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        await provider.confirm_email(pair.selector, pair.token)
        assert _users(provider).find_one({"username": "alice"})["verified"] is True
        with pytest.raises(InvalidSelectorTokenPairError):
            await provider.confirm_email(pair.selector, pair.token)

    async def test_wrong_token(self, provider):
        pair = await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(InvalidSelectorTokenPairError):
            await provider.confirm_email(pair.selector, "forged")

    async def test_expired(self, provider, clock):
        pair = await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        clock.advance(86400 + 1)
        with pytest.raises(TokenExpiredError):
            await provider.confirm_email(pair.selector, pair.token)


class TestLoginLogout:
    async def test_login_success(self, provider):
        await _verified_user(provider)
        result = await provider.login_with_username("alice", PASSWORD)
        assert result.username == "alice"
        assert result.email == "u@x.com"
        assert result.session_id
        stored = provider._sessions.sync.find_one({})
        assert stored["session_hash"] == hash_token(result.session_id)

    async def test_unknown_user(self, provider):
        with pytest.raises(UnknownUserError):
            await provider.login_with_username("nobody", PASSWORD)

    async def test_wrong_password(self, provider):
        await _verified_user(provider)
        with pytest.raises(InvalidPasswordError):
            await provider.login_with_username("alice", "Wr0ng!pass")

    async def test_unverified(self, provider):
        await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(EmailNotVerifiedError):
            await provider.login_with_username("alice", PASSWORD)

    async def test_logout_everywhere_ends_all_sessions(self, provider):
        await _verified_user(provider)
        first = await provider.login_with_username("alice", PASSWORD)
        await provider.login_with_username("alice", PASSWORD)
        await provider.logout_everywhere(first.session_id)
        assert provider._sessions.sync.count_documents({}) == 0

    async def test_logout_unknown_session(self, provider):
        with pytest.raises(NotLoggedInError):
            await provider.logout_everywhere("no-such-session")


class TestForgotPassword:
    async def test_issues_reset_pair(self, provider):
        await _verified_user(provider)
        pair = await provider.forgot_password("u@x.com")
        row = _tokens(provider).find_one({"selector": pair.selector})
        assert row["purpose"] == "reset_password"

    async def test_unknown_email(self, provider):
        with pytest.raises(InvalidEmailError):
            await provider.forgot_password("ghost@x.com")

    async def test_unverified(self, provider):
        await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(EmailNotVerifiedError):
            await provider.forgot_password("u@x.com")

    async def test_reset_disabled(self, provider):
        await _verified_user(provider)
        _users(provider).update_one({"username": "alice"}, {"$set": {"resettable": False}})
        with pytest.raises(ResetDisabledError):
            await provider.forgot_password("u@x.com")

    async def test_open_request_cap(self, provider):
        await _verified_user(provider)
        await provider.forgot_password("u@x.com")
        await provider.forgot_password("u@x.com")
        with pytest.raises(TooManyRequestsError):
            await provider.forgot_password("u@x.com")


class TestResetPassword:
    async def test_can_reset_does_not_consume(self, provider):
        await _verified_user(provider)
        pair = await provider.forgot_password("u@x.com")
        await provider.can_reset_password_or_throw(pair.selector, pair.token)
        await provider.can_reset_password_or_throw(pair.selector, pair.token)

    async def test_reset_then_replay_reports_expired(self, provider):
        await _verified_user(provider)
        await provider.login_with_username("alice", PASSWORD)
        pair = await provider.forgot_password("u@x.com")

        await provider.reset_password(pair.selector, pair.token, "NewP@ss1")
        user = _users(provider).find_one({"username": "alice"})
        assert verify_password("NewP@ss1", user["password_hash"])
        assert provider._sessions.sync.count_documents({}) == 0

        with pytest.raises(TokenExpiredError):
            await provider.reset_password(pair.selector, pair.token, "Other@ss2")

    async def test_concurrent_resets_with_one_pair_succeed_once(self, provider):
        await _verified_user(provider)
        pair = await provider.forgot_password("u@x.com")

        results = await asyncio.gather(
            provider.reset_password(pair.selector, pair.token, "NewP@ss1"),
            provider.reset_password(pair.selector, pair.token, "Other@ss2"),
            return_exceptions=True,
        )
        assert results.count(None) == 1
        assert sum(isinstance(r, TokenExpiredError) for r in results) == 1

        winner = "NewP@ss1" if results[0] is None else "Other@ss2"
        user = _users(provider).find_one({"username": "alice"})
        assert verify_password(winner, user["password_hash"])

    async def test_weak_new_password_leaves_hash(self, provider):
        await _verified_user(provider)
        pair = await provider.forgot_password("u@x.com")
        with pytest.raises(InvalidPasswordError):
            await provider.reset_password(pair.selector, pair.token, "weak")
        user = _users(provider).find_one({"username": "alice"})
        assert verify_password(PASSWORD, user["password_hash"])

    async def test_confirmation_pair_cannot_reset(self, provider):
        pair = await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        with pytest.raises(InvalidSelectorTokenPairError):
            await provider.can_reset_password_or_throw(pair.selector, pair.token)

    async def test_expired_reset_pair(self, provider, clock):
        await _verified_user(provider)
        pair = await provider.forgot_password("u@x.com")
        clock.advance(21600 + 1)
        with pytest.raises(TokenExpiredError):
            await provider.can_reset_password_or_throw(pair.selector, pair.token)


class TestResendConfirmation:
    async def test_reissues_and_invalidates_old_pair(self, provider):
        old = await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        new = await provider.resend_confirmation("u@x.com")
        assert new.selector != old.selector
        with pytest.raises(InvalidSelectorTokenPairError):
            await provider.confirm_email(old.selector, old.token)
        await provider.confirm_email(new.selector, new.token)

    async def test_no_prior_request(self, provider):
        with pytest.raises(ConfirmationRequestNotFoundError):
            await provider.resend_confirmation("ghost@x.com")

    async def test_throttled(self, make_provider):
        provider = make_provider(resend_limit=1)
        await provider.register_pending_user("u@x.com", PASSWORD, "alice")
        await provider.resend_confirmation("u@x.com")
        with pytest.raises(TooManyRequestsError):
            await provider.resend_confirmation("u@x.com")


async def test_ensure_indexes_enforces_unique_email(provider):
    await provider.ensure_indexes()
    await provider.register_pending_user("u@x.com", PASSWORD, "alice")
    info = _users(provider).index_information()
    assert info["email_1"]["unique"] is True

"""Unit tests for VerificationCodeStore (mongomock-backed)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import NetworkTimeout

from services.exceptions import StorageError
from services.verification_store import COLLECTION_NAME, VerificationCodeStore
from shared.crypto import hash_token


@pytest.fixture
def store(mongo_db, clock):
    return VerificationCodeStore(mongo_db[COLLECTION_NAME], ttl_seconds=300, clock=clock)


def _raw(store):
    return store._col.sync


class TestPut:
    async def test_stores_hash_not_code(self, store, clock):
        doc = await store.put("u@x.com", "123456", "sel1", "tok1")
        raw = _raw(store).find_one({"_id": doc.id})
        assert raw["code_hash"] == hash_token("123456")
        assert "123456" not in raw.values()
        assert raw["selector"] == "sel1"
        assert raw["token"] == "tok1"

    async def test_expires_five_minutes_later(self, store, clock):
        doc = await store.put("u@x.com", "123456", "sel1", "tok1")
        assert (doc.expires_at - clock()).total_seconds() == 300
        assert doc.claimed_at is None


class TestFindByCode:
    async def test_found_while_live(self, store, clock):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        clock.advance(299)
        row = await store.find_by_code("123456")
        assert row is not None
        assert (row.email, row.selector, row.token) == ("u@x.com", "sel1", "tok1")

    async def test_unknown_code(self, store):
        assert await store.find_by_code("000000") is None

    async def test_not_found_after_expiry(self, store, clock):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        clock.advance(301)
        assert await store.find_by_code("123456") is None

    async def test_newest_row_wins_on_collision(self, store, clock):
        await store.put("a@x.com", "123456", "sel-a", "tok-a")
        clock.advance(1)
        await store.put("b@x.com", "123456", "sel-b", "tok-b")
        row = await store.find_by_code("123456")
        assert row.email == "b@x.com"

    async def test_claimed_row_is_hidden(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        assert await store.claim("123456", "u@x.com") is True
        assert await store.find_by_code("123456") is None


class TestSweep:
    async def test_removes_only_expired(self, store, clock):
        await store.put("old@x.com", "111111", "s1", "t1")
        clock.advance(200)
        await store.put("new@x.com", "222222", "s2", "t2")
        clock.advance(101)
        assert await store.sweep_expired() == 1
        assert _raw(store).count_documents({}) == 1
        assert (await store.find_by_code("222222")).email == "new@x.com"

    async def test_nothing_to_sweep(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        assert await store.sweep_expired() == 0


class TestConsume:
    async def test_delete_by_code_and_email_once(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        assert await store.delete_by_code_and_email("123456", "u@x.com") is True
        assert await store.delete_by_code_and_email("123456", "u@x.com") is False
        assert await store.find_by_code("123456") is None

    async def test_delete_requires_matching_email(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        assert await store.delete_by_code_and_email("123456", "b@y.com") is False
        assert await store.find_by_code("123456") is not None

    async def test_resend_invalidates_prior_code(self, store):
        await store.put("u@x.com", "111111", "sel1", "tok1")
        assert await store.delete_by_email("u@x.com") == 1
        await store.put("u@x.com", "222222", "sel2", "tok2")
        assert await store.find_by_code("111111") is None
        assert (await store.find_by_code("222222")).selector == "sel2"

    async def test_delete_by_email_leaves_other_addresses(self, store):
        await store.put("u@x.com", "111111", "s1", "t1")
        await store.put("v@x.com", "222222", "s2", "t2")
        await store.delete_by_email("u@x.com")
        assert await store.find_by_code("222222") is not None


class TestClaim:
    async def test_only_one_concurrent_claim_wins(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        results = await asyncio.gather(
            store.claim("123456", "u@x.com"),
            store.claim("123456", "u@x.com"),
            store.claim("123456", "u@x.com"),
        )
        assert sorted(results) == [False, False, True]

    async def test_claim_requires_matching_email(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        assert await store.claim("123456", "b@y.com") is False

    async def test_expired_row_cannot_be_claimed(self, store, clock):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        clock.advance(301)
        assert await store.claim("123456", "u@x.com") is False

    async def test_release_makes_row_visible_again(self, store):
        await store.put("u@x.com", "123456", "sel1", "tok1")
        await store.claim("123456", "u@x.com")
        await store.release("123456", "u@x.com")
        assert await store.find_by_code("123456") is not None
        assert await store.claim("123456", "u@x.com") is True


async def test_ensure_indexes(store):
    await store.ensure_indexes()
    info = _raw(store).index_information()
    assert len(info) >= 4  # _id plus three


@pytest.mark.parametrize(
    "method, args",
    [
        ("put", ("u@x.com", "123456", "s", "t")),
        ("sweep_expired", ()),
        ("find_by_code", ("123456",)),
        ("claim", ("123456", "u@x.com")),
        ("delete_by_email", ("u@x.com",)),
        ("delete_by_code_and_email", ("123456", "u@x.com")),
    ],
)
async def test_driver_errors_become_storage_errors(clock, method, args):
    col = MagicMock()
    failing = AsyncMock(side_effect=NetworkTimeout("timed out"))
    col.insert_one = col.delete_many = col.delete_one = failing
    col.find_one = col.find_one_and_update = failing
    store = VerificationCodeStore(col, clock=clock)
    with pytest.raises(StorageError):
        await getattr(store, method)(*args)

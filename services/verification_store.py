"""
Verification code store.

Persists OTP codes bound to a selector/token pair and an email address in
the `verification-codes` collection. Lookups never match expired rows:
callers sweep first, and every query also filters on ``expires_at`` so a row
that expires between the sweep and the read is still ignored.

Every PyMongoError (timeouts included) is logged here with full detail and
re-raised as StorageError so the workflow can report a generic failure.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from schemas.models.verification_code import VerificationCodeDoc
from services.exceptions import StorageError
from shared.crypto import hash_token
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION_NAME = "verification-codes"


class VerificationCodeStore:
    def __init__(
        self,
        collection,
        ttl_seconds: int = 300,
        clock: Optional[Clock] = None,
    ) -> None:
        self._col = collection
        self.ttl_seconds = ttl_seconds
        self._clock = clock or utcnow

    def _fail(self, operation: str, exc: PyMongoError) -> StorageError:
        log.error(
            "verification_store_error",
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return StorageError(f"{operation} failed: {exc}")

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("code_hash", ASCENDING), ("email", ASCENDING)])
        await self._col.create_index([("email", ASCENDING)])
        # Background reaping only; the explicit sweep is still required
        await self._col.create_index("expires_at", expireAfterSeconds=0)

    async def put(
        self, email: str, code: str, selector: str, token: str
    ) -> VerificationCodeDoc:
        now = self._clock()
        doc = VerificationCodeDoc(
            code_hash=hash_token(code),
            email=email,
            selector=selector,
            token=token,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
            created_at=now,
        )
        try:
            result = await self._col.insert_one(doc.to_mongo())
        except PyMongoError as e:
            raise self._fail("put", e) from e
        doc.id = result.inserted_id
        return doc

    async def sweep_expired(self) -> int:
        try:
            result = await self._col.delete_many({"expires_at": {"$lt": self._clock()}})
        except PyMongoError as e:
            raise self._fail("sweep_expired", e) from e
        return result.deleted_count

    async def find_by_code(self, code: str) -> Optional[VerificationCodeDoc]:
        """Return the newest live, unclaimed row for *code*, or None."""
        try:
            raw = await self._col.find_one(
                self._live_filter(code, self._clock()),
                sort=[("created_at", DESCENDING)],
            )
        except PyMongoError as e:
            raise self._fail("find_by_code", e) from e
        return VerificationCodeDoc.from_mongo(raw)

    async def claim(self, code: str, email: str) -> bool:
        """Atomically mark the live row for (*code*, *email*) as claimed.

        Only one of several concurrent callers can get True.
        """
        now = self._clock()
        query = self._live_filter(code, now)
        query["email"] = email
        try:
            raw = await self._col.find_one_and_update(
                query,
                {"$set": {"claimed_at": now}},
                sort=[("created_at", DESCENDING)],
            )
        except PyMongoError as e:
            raise self._fail("claim", e) from e
        return raw is not None

    async def release(self, code: str, email: str) -> None:
        """Return a claimed row to the pool so the same code can be retried."""
        try:
            await self._col.update_one(
                {
                    "code_hash": hash_token(code),
                    "email": email,
                    "claimed_at": {"$ne": None},
                },
                {"$set": {"claimed_at": None}},
            )
        except PyMongoError as e:
            raise self._fail("release", e) from e

    async def delete_by_email(self, email: str) -> int:
        try:
            result = await self._col.delete_many({"email": email})
        except PyMongoError as e:
            raise self._fail("delete_by_email", e) from e
        return result.deleted_count

    async def delete_by_code_and_email(self, code: str, email: str) -> bool:
        """Consume the row for (*code*, *email*).

        Returns False when nothing was deleted, i.e. another request already
        consumed it; callers must treat that as an invalid code.
        """
        try:
            result = await self._col.delete_one(
                {"code_hash": hash_token(code), "email": email}
            )
        except PyMongoError as e:
            raise self._fail("delete_by_code_and_email", e) from e
        return result.deleted_count == 1

    @staticmethod
    def _live_filter(code: str, now: datetime) -> dict:
        return {
            "code_hash": hash_token(code),
            "expires_at": {"$gte": now},
            "claimed_at": None,
        }

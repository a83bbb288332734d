"""
Throttle guard: bounds repeated operations per (action, actor).

Every (action, actor) key owns ``limit`` slots. An allowed attempt claims a
free slot and holds it for ``window_seconds``; when no slot is free the
attempt is rejected and nothing is recorded. Claiming a slot is a single
atomic write on the backing store, so however requests interleave no window
ever holds more than ``limit`` allowed attempts, and a burst of ``limit + 1``
concurrent attempts yields exactly one rejection.

Redis (``SET NX PX`` per slot) is used when configured; otherwise one
MongoDB document per slot, claimed by an insert on ``_id`` or by a
conditional update once its holder has left the window.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol

import redis.asyncio as aioredis
from pymongo.errors import DuplicateKeyError, PyMongoError
from redis.exceptions import RedisError

from services.exceptions import StorageError
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


class Decision(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOWED


class ThrottleStore(Protocol):
    async def hit(
        self, key: str, limit: int, window_seconds: int, now: datetime
    ) -> bool: ...


class RedisThrottleStore:
    def __init__(self, redis_client: aioredis.Redis, prefix: str = "throttle") -> None:
        self._redis = redis_client
        self._prefix = prefix

    async def hit(
        self, key: str, limit: int, window_seconds: int, now: datetime
    ) -> bool:
        try:
            for slot in range(limit):
                claimed = await self._redis.set(
                    f"{self._prefix}:{key}:{slot}",
                    now.timestamp(),
                    nx=True,
                    px=window_seconds * 1000,
                )
                if claimed:
                    return True
        except RedisError as e:
            raise StorageError(f"redis throttle failure: {e}") from e
        return False


class MongoThrottleStore:
    def __init__(self, collection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        # Reaping only; a slot whose holder left the window is reclaimable anyway
        await self._col.create_index("expires_at", expireAfterSeconds=0)

    async def hit(
        self, key: str, limit: int, window_seconds: int, now: datetime
    ) -> bool:
        window = timedelta(seconds=window_seconds)
        fields = {"key": key, "at": now, "expires_at": now + window}
        try:
            for slot in range(limit):
                slot_id = f"{key}:{slot}"
                try:
                    await self._col.insert_one({"_id": slot_id, **fields})
                    return True
                except DuplicateKeyError:
                    pass
                reclaimed = await self._col.find_one_and_update(
                    {"_id": slot_id, "at": {"$lte": now - window}},
                    {"$set": fields},
                )
                if reclaimed is not None:
                    return True
        except PyMongoError as e:
            raise StorageError(f"mongo throttle failure: {e}") from e
        return False


class ThrottleGuard:
    """Per-(action, actor) attempt limiter shared by every concurrent request."""

    def __init__(self, store: ThrottleStore, clock: Optional[Clock] = None) -> None:
        self._store = store
        self._clock = clock or utcnow

    async def check(
        self, action: str, actor: str, limit: int, window_seconds: int
    ) -> Decision:
        """Record an attempt of *action* by *actor* and decide whether it may proceed.

        Raises:
            StorageError: the backing store failed; the caller must abort.
        """
        allowed = await self._store.hit(
            f"{action}:{actor}", limit, window_seconds, self._clock()
        )
        if allowed:
            return Decision.ALLOWED

        log.warning(
            "throttle_rejected",
            action=action,
            actor=hash_ip(actor),
            limit=limit,
            window_seconds=window_seconds,
        )
        return Decision.REJECTED

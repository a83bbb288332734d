"""
Shared fixtures.

mongomock is synchronous, so AsyncCollection wraps each collection method in
a coroutine that yields to the event loop once before running. That is
enough for asyncio.gather() to interleave two requests step by step, while
each individual operation stays atomic as it would on a real server.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import mongomock
import pytest


class AsyncCollection:
    """Awaitable facade over a mongomock collection.

    ``.sync`` exposes the raw collection for assertions.
    """

    def __init__(self, collection):
        self.sync = collection

    def __getattr__(self, name):
        attr = getattr(self.sync, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            await asyncio.sleep(0)
            return attr(*args, **kwargs)

        return call


class AsyncDatabase:
    def __init__(self, db):
        self.sync = db

    def __getitem__(self, name):
        return AsyncCollection(self.sync[name])


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mongo_db():
    return AsyncDatabase(mongomock.MongoClient(tz_aware=True).db)

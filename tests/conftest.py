"""Shared fixtures: an in-memory async Redis with real TTL expiry."""
import base64
import time

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from ephemeral_session.api import SessionAPI
from ephemeral_session.conf import SessionConfig
from ephemeral_session.storage import SessionStore

TEST_SECRET = base64.b64encode(bytes(range(32))).decode("ascii")


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for the session store."""

    def __init__(self):
        self._data: dict = {}
        self.calls: list = []
        self.fail = False
        self.closed = False

    def _command(self, name: str) -> None:
        self.calls.append(name)
        if self.fail:
            raise RedisConnectionError("Connection refused")

    def _live(self, key):
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return item

    async def setex(self, key, ttl, value):
        self._command("setex")
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        self._data[key] = (value, time.monotonic() + ttl)
        return True

    async def set(self, key, value):
        self._command("set")
        self._data[key] = (value, None)
        return True

    async def get(self, key):
        self._command("get")
        item = self._live(key)
        return item[0] if item else None

    async def delete(self, *keys):
        self._command("delete")
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                removed += 1
        return removed

    async def ttl(self, key):
        self._command("ttl")
        item = self._live(key)
        if item is None:
            return -2
        if item[1] is None:
            return -1
        return int(round(item[1] - time.monotonic()))

    async def expire(self, key, ttl):
        self._command("expire")
        item = self._live(key)
        if item is None:
            return False
        self._data[key] = (item[0], time.monotonic() + ttl)
        return True

    async def ping(self):
        self._command("ping")
        return True

    async def aclose(self, close_connection_pool=None):
        self.closed = True


@pytest.fixture
def secret():
    return TEST_SECRET


@pytest.fixture
def config(secret):
    return SessionConfig(key_mask_secret=secret)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def store(config, fake_redis):
    return SessionStore(config, client=fake_redis)


@pytest.fixture
def api(config, store):
    return SessionAPI(config, store)

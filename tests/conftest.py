from fnmatch import fnmatchcase

import pytest
from fastapi.testclient import TestClient

from tracker_analytics.config import Config
from tracker_analytics.db import Database
from tracker_analytics.errors import CacheError
from tracker_analytics.main import create_app


class FakeCacheStore:
    """In-memory stand-in for Redis. Flip ``unreachable`` to simulate an outage."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.unreachable = False
        self.closed = False

    def _check(self, op: str, arg: str) -> None:
        self.calls.append((op, arg))
        if self.unreachable:
            raise CacheError("connection refused")

    async def get(self, key: str) -> str | None:
        self._check("get", key)
        return self.values.get(key)

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None:
        self._check("set", key)
        self.values[key] = value
        self.ttls[key] = seconds

    async def keys_matching(self, pattern: str) -> list[str]:
        self._check("keys", pattern)
        return sorted(key for key in self.values if fnmatchcase(key, pattern))

    async def delete(self, *keys: str) -> int:
        self._check("delete", ",".join(keys))
        deleted = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def db():
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def store() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def config() -> Config:
    return Config(
        redis_url="redis://localhost:6379/0",
        database_path=":memory:",
        host="127.0.0.1",
        port=3210,
        cache_timeout_seconds=1.0,
    )


@pytest.fixture
def app(config, db, store):
    return create_app(config, db=db, cache_store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client

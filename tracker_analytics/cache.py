"""Response cache for the analytics read endpoints.

Keys look like ``cache:<route>:<userId>[:<period>][:tracker:<trackerId>][:<start>:<end>]``
and are built from named parameters, so query-string order never matters.
The store is an injected capability; Redis in production, an in-memory fake
in tests. Every store failure degrades to a miss.
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from .errors import CacheError

CACHE_TTL_SECONDS = 5 * 60
KEY_PREFIX = "cache"
# Everything derive_key may append after the user id.
_SCOPE_SUFFIX = re.compile(r"(:(week|month|year))?(:tracker:[^:]+)?(:\d{4}-\d{2}-\d{2}:\d{4}-\d{2}-\d{2})?")

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None: ...

    async def keys_matching(self, pattern: str) -> list[str]: ...

    async def delete(self, *keys: str) -> int: ...

    async def close(self) -> None: ...


def derive_key(
    route_identity: str,
    user_id: str,
    *,
    period: str | None = None,
    tracker_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> str:
    key = f"{KEY_PREFIX}:{route_identity}:{user_id}"
    if period:
        key += f":{period}"
    if tracker_id:
        key += f":tracker:{tracker_id}"
    if start_date and end_date:
        key += f":{start_date}:{end_date}"
    return key


def resolve_user_id(
    path_params: Mapping[str, str],
    query_params: Mapping[str, str],
    payload: Mapping | None = None,
) -> str | None:
    """Path first, then query string, then ``data.userId`` of a result payload."""
    user_id = path_params.get("user_id") or query_params.get("userId")
    if user_id:
        return str(user_id)

    if payload:
        data = payload.get("data")
        if isinstance(data, Mapping) and data.get("userId"):
            return str(data["userId"])
    return None


def key_for_request(route_identity: str, path_params: Mapping[str, str], query_params: Mapping[str, str]) -> str | None:
    user_id = resolve_user_id(path_params, query_params)
    if user_id is None:
        return None
    return derive_key(
        route_identity,
        user_id,
        period=path_params.get("period") or query_params.get("period"),
        tracker_id=query_params.get("trackerId"),
        start_date=query_params.get("startDate"),
        end_date=query_params.get("endDate"),
    )


def user_pattern(user_id: str) -> str:
    return f"{KEY_PREFIX}:*:{user_id}*"


def key_belongs_to_user(key: str, user_id: str) -> bool:
    # Route identities are path templates and never contain ':'; user ids may.
    parts = key.split(":", 2)
    if len(parts) < 3 or parts[0] != KEY_PREFIX:
        return False
    scoped = parts[2]
    if not scoped.startswith(user_id):
        return False
    return _SCOPE_SUFFIX.fullmatch(scoped[len(user_id):]) is not None


class ResponseCache:
    """get/set/invalidate with a fixed TTL. Store errors are logged, never raised."""

    def __init__(self, store: CacheStore, ttl_seconds: int = CACHE_TTL_SECONDS) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> str | None:
        try:
            cached = await self.store.get(key)
        except CacheError as exc:
            logger.warning("Cache read failed for key %s: %s", key, exc)
            return None

        if cached is None:
            logger.info("Cache miss for key: %s", key)
        else:
            logger.info("Cache hit for key: %s", key)
        return cached

    async def set(self, key: str, body: str, payload: Mapping) -> bool:
        # Error envelopes are never stored.
        if not payload.get("success"):
            return False

        try:
            await self.store.set_with_ttl(key, body, self.ttl_seconds)
        except CacheError as exc:
            logger.warning("Failed to cache data for key %s: %s", key, exc)
            return False

        logger.info("Cached data for key: %s with TTL: %ss", key, self.ttl_seconds)
        return True

    async def invalidate(self, pattern: str, user_id: str | None = None) -> int:
        try:
            keys = await self.store.keys_matching(pattern)
            if user_id is not None:
                keys = [key for key in keys if key_belongs_to_user(key, user_id)]
            if not keys:
                return 0
            deleted = await self.store.delete(*keys)
        except CacheError as exc:
            logger.warning("Failed to invalidate cache for pattern %s: %s", pattern, exc)
            return 0

        logger.info("Invalidated %d cache entries for pattern: %s", len(keys), pattern)
        return deleted

    async def invalidate_user(self, user_id: str) -> int:
        return await self.invalidate(user_pattern(user_id), user_id=user_id)

    async def close(self) -> None:
        try:
            await self.store.close()
        except CacheError as exc:
            logger.warning("Failed to close cache store: %s", exc)


class RedisCacheStore:
    """CacheStore backed by ``redis.asyncio``; every client error surfaces as CacheError."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float) -> RedisCacheStore:
        client = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except (RedisError, OSError) as exc:
            raise CacheError(str(exc)) from exc

    async def set_with_ttl(self, key: str, value: str, seconds: int) -> None:
        try:
            await self._redis.setex(key, seconds, value)
        except (RedisError, OSError) as exc:
            raise CacheError(str(exc)) from exc

    async def keys_matching(self, pattern: str) -> list[str]:
        try:
            return [key async for key in self._redis.scan_iter(match=pattern)]
        except (RedisError, OSError) as exc:
            raise CacheError(str(exc)) from exc

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except (RedisError, OSError) as exc:
            raise CacheError(str(exc)) from exc

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except (RedisError, OSError) as exc:
            raise CacheError(str(exc)) from exc

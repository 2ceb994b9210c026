from __future__ import annotations

import logging
from typing import Mapping

from starlette.background import BackgroundTask

from .cache import ResponseCache, resolve_user_id

logger = logging.getLogger(__name__)


class InvalidationCoordinator:
    """Purges a user's cached analytics after a successful write."""

    def __init__(self, cache: ResponseCache) -> None:
        self.cache = cache

    async def invalidate_user(self, user_id: str) -> int:
        return await self.cache.invalidate_user(user_id)

    def background_task(
        self,
        path_params: Mapping[str, str],
        query_params: Mapping[str, str],
        payload: Mapping,
    ) -> BackgroundTask | None:
        """Task to attach to the response, or None when nothing should be purged.

        The task runs after the response body is sent but still inside the
        request's handling, so the write is acknowledged without waiting on
        the cache store.
        """
        if not payload.get("success"):
            return None

        user_id = resolve_user_id(path_params, query_params, payload)
        if user_id is None:
            # Stale entries for this write are left to expire with the TTL.
            logger.warning("Could not resolve user for cache invalidation; skipping")
            return None

        return BackgroundTask(self.invalidate_user, user_id)

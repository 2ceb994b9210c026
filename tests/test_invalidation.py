import pytest

from tracker_analytics.cache import ResponseCache
from tracker_analytics.invalidation import InvalidationCoordinator


@pytest.mark.asyncio
async def test_task_purges_only_affected_user(store) -> None:
    cache = ResponseCache(store)
    await cache.set("cache:/users/{user_id}/today:u1", "{}", {"success": True})
    await cache.set("cache:/users/{user_id}/today:u2", "{}", {"success": True})
    coordinator = InvalidationCoordinator(cache)

    task = coordinator.background_task({"tracker_id": "t1"}, {}, {"success": True, "data": {"userId": "u1"}})

    assert task is not None
    # Nothing is removed until the task runs after the response.
    assert len(store.values) == 2
    await task()
    assert list(store.values) == ["cache:/users/{user_id}/today:u2"]


def test_failed_write_schedules_nothing(store) -> None:
    coordinator = InvalidationCoordinator(ResponseCache(store))

    assert coordinator.background_task({"user_id": "u1"}, {}, {"success": False, "error": "nope"}) is None


def test_unresolvable_user_skips_invalidation(store, caplog) -> None:
    coordinator = InvalidationCoordinator(ResponseCache(store))

    task = coordinator.background_task({"tracker_id": "t1"}, {}, {"success": True, "data": {"id": "t1"}})

    assert task is None
    assert store.calls == []
    assert "Could not resolve user" in caplog.text


@pytest.mark.asyncio
async def test_invalidation_survives_store_outage(store) -> None:
    coordinator = InvalidationCoordinator(ResponseCache(store))
    store.unreachable = True

    assert await coordinator.invalidate_user("u1") == 0

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from tracker_analytics.aggregation import aggregate_daily, split_interval_by_day
from tracker_analytics.errors import InvalidRange, NotFoundError
from tracker_analytics.models import DateRange, Scope
from tracker_analytics.periods import make_range

NOW = datetime(2025, 9, 10, 12, 0, tzinfo=timezone.utc)
CREATED = datetime(2025, 9, 1, tzinfo=timezone.utc)


def _tracker(db, user_id: str = "u1", name: str = "Deep work"):
    return db.create_tracker(user_id, name, 8, created_at_utc=CREATED)


def test_split_interval_crosses_utc_midnight() -> None:
    segments = split_interval_by_day(
        datetime(2026, 1, 1, 23, 50, tzinfo=timezone.utc),
        datetime(2026, 1, 2, 0, 10, tzinfo=timezone.utc),
    )

    assert segments == [(date(2026, 1, 1), 600), (date(2026, 1, 2), 600)]


def test_split_interval_uses_utc_midnight_for_offset_input() -> None:
    tz = ZoneInfo("America/New_York")

    # 23:50-00:10 New York local is 04:50-05:10 UTC, all on one UTC day.
    segments = split_interval_by_day(
        datetime(2026, 1, 1, 23, 50, tzinfo=tz),
        datetime(2026, 1, 2, 0, 10, tzinfo=tz),
    )

    assert segments == [(date(2026, 1, 2), 1200)]


def test_split_interval_empty_or_naive() -> None:
    start = datetime(2026, 1, 1, 10, tzinfo=timezone.utc)

    assert split_interval_by_day(start, start) == []
    with pytest.raises(ValueError):
        split_interval_by_day(datetime(2026, 1, 1, 10), start)


def test_aggregate_gap_fills_range(db) -> None:
    tracker = _tracker(db)
    db.add_session(tracker.id, datetime(2025, 9, 4, 8, tzinfo=timezone.utc), datetime(2025, 9, 4, 16, tzinfo=timezone.utc))
    db.add_session(tracker.id, datetime(2025, 9, 5, 9, tzinfo=timezone.utc), datetime(2025, 9, 5, 9, 30, tzinfo=timezone.utc))

    buckets = aggregate_daily(db, Scope("u1", tracker.id), make_range(date(2025, 9, 4), date(2025, 9, 6)), NOW)

    assert [(b.date.isoformat(), b.total_minutes, b.session_count) for b in buckets] == [
        ("2025-09-04", 480, 1),
        ("2025-09-05", 30, 1),
        ("2025-09-06", 0, 0),
    ]


def test_session_spanning_midnight_feeds_both_days(db) -> None:
    tracker = _tracker(db)
    db.add_session(tracker.id, datetime(2025, 9, 4, 23, tzinfo=timezone.utc), datetime(2025, 9, 5, 1, tzinfo=timezone.utc))

    buckets = aggregate_daily(db, Scope("u1"), make_range(date(2025, 9, 4), date(2025, 9, 5)), NOW)

    assert [b.total_seconds for b in buckets] == [3600, 3600]
    assert [b.session_count for b in buckets] == [1, 1]


def test_sessions_are_clipped_to_range(db) -> None:
    tracker = _tracker(db)
    db.add_session(tracker.id, datetime(2025, 9, 3, 22, tzinfo=timezone.utc), datetime(2025, 9, 4, 2, tzinfo=timezone.utc))

    (bucket,) = aggregate_daily(db, Scope("u1"), make_range(date(2025, 9, 4), date(2025, 9, 4)), NOW)

    assert bucket.total_seconds == 2 * 3600
    assert bucket.session_count == 1


def test_active_session_ends_at_now(db) -> None:
    tracker = _tracker(db)
    db.open_session(tracker.id, NOW - timedelta(hours=2))

    (bucket,) = aggregate_daily(db, Scope("u1", tracker.id), make_range(NOW.date(), NOW.date()), NOW)

    assert bucket.total_minutes == 120
    assert bucket.session_count == 1


def test_user_scope_combines_trackers_and_ignores_other_users(db) -> None:
    first = _tracker(db, name="Writing")
    second = _tracker(db, name="Coding")
    other = _tracker(db, user_id="u2")
    for tracker in (first, second, other):
        db.add_session(tracker.id, datetime(2025, 9, 4, 8, tzinfo=timezone.utc), datetime(2025, 9, 4, 9, tzinfo=timezone.utc))

    (combined,) = aggregate_daily(db, Scope("u1"), make_range(date(2025, 9, 4), date(2025, 9, 4)), NOW)
    (single,) = aggregate_daily(db, Scope("u1", first.id), make_range(date(2025, 9, 4), date(2025, 9, 4)), NOW)

    assert (combined.total_minutes, combined.session_count) == (120, 2)
    assert (single.total_minutes, single.session_count) == (60, 1)


def test_bucket_count_and_order_for_long_range(db) -> None:
    date_range = make_range(date(2024, 2, 20), date(2024, 3, 5))

    buckets = aggregate_daily(db, Scope("u1"), date_range, NOW)

    assert len(buckets) == (date_range.end_date - date_range.start_date).days + 1
    assert [b.date for b in buckets] == sorted({b.date for b in buckets})
    assert all(b.total_seconds == 0 for b in buckets)


def test_aggregate_is_idempotent(db) -> None:
    tracker = _tracker(db)
    db.add_session(tracker.id, datetime(2025, 9, 8, 8, tzinfo=timezone.utc), datetime(2025, 9, 8, 9, 15, tzinfo=timezone.utc))
    db.open_session(tracker.id, datetime(2025, 9, 10, 10, tzinfo=timezone.utc))
    date_range = make_range(date(2025, 9, 4), date(2025, 9, 10))

    first = aggregate_daily(db, Scope("u1"), date_range, NOW)
    second = aggregate_daily(db, Scope("u1"), date_range, NOW)

    assert first == second


def test_foreign_or_unknown_tracker_is_not_found(db) -> None:
    other = _tracker(db, user_id="u2")
    date_range = make_range(date(2025, 9, 4), date(2025, 9, 4))

    with pytest.raises(NotFoundError):
        aggregate_daily(db, Scope("u1", other.id), date_range, NOW)
    with pytest.raises(NotFoundError):
        aggregate_daily(db, Scope("u1", "missing"), date_range, NOW)


def test_inverted_range_is_rejected(db) -> None:
    with pytest.raises(InvalidRange):
        aggregate_daily(db, Scope("u1"), DateRange(date(2025, 9, 6), date(2025, 9, 4)), NOW)

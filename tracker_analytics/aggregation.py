from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from .db import Database
from .errors import InvalidRange, NotFoundError
from .models import DailyBucket, DateRange, Scope


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def split_interval_by_day(start_utc: datetime, end_utc: datetime) -> list[tuple[date, int]]:
    """Cut an interval at each UTC midnight and return (day, seconds) slices."""
    if start_utc.tzinfo is None or end_utc.tzinfo is None:
        raise ValueError("start_utc and end_utc must be timezone-aware")

    start = start_utc.astimezone(timezone.utc)
    end = end_utc.astimezone(timezone.utc)

    if end <= start:
        return []

    segments: list[tuple[date, int]] = []
    cursor = start

    while cursor < end:
        day = cursor.date()
        next_midnight_utc = datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)

        chunk_end = min(end, next_midnight_utc)
        chunk_seconds = int((chunk_end - cursor).total_seconds())

        if chunk_seconds > 0:
            segments.append((day, chunk_seconds))

        cursor = chunk_end

    return segments


def range_bounds_utc(date_range: DateRange) -> tuple[datetime, datetime]:
    """Half-open UTC instants covering every day of the range."""
    start = datetime.combine(date_range.start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(date_range.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


def check_scope(db: Database, scope: Scope) -> None:
    if scope.tracker_id is None:
        return
    tracker = db.get_tracker(scope.tracker_id)
    if tracker is None or tracker.user_id != scope.user_id:
        raise NotFoundError(f"Tracker {scope.tracker_id} not found for user {scope.user_id}")


def aggregate_daily(
    db: Database,
    scope: Scope,
    date_range: DateRange,
    now_utc: datetime,
) -> list[DailyBucket]:
    """Build one bucket per calendar day of ``date_range``, idle days included.

    Sessions are clipped to the range and split at UTC midnight, so a session
    spanning midnight feeds both days. Running sessions end at ``now_utc``.
    """
    if date_range.start_date > date_range.end_date:
        raise InvalidRange("startDate must be on or before endDate")
    check_scope(db, scope)

    window_start, window_end = range_bounds_utc(date_range)
    seconds_by_day: dict[date, int] = {}
    sessions_by_day: dict[date, int] = {}

    sessions = db.list_sessions_overlapping(scope.user_id, scope.tracker_id, window_start, window_end)
    for session in sessions:
        start = max(session.started_at_utc, window_start)
        end = min(session.ended_at_utc or now_utc, window_end)
        for day, seconds in split_interval_by_day(start, end):
            seconds_by_day[day] = seconds_by_day.get(day, 0) + seconds
            sessions_by_day[day] = sessions_by_day.get(day, 0) + 1

    return [
        DailyBucket(
            date=day,
            total_seconds=seconds_by_day.get(day, 0),
            session_count=sessions_by_day.get(day, 0),
        )
        for day in date_range.dates()
    ]

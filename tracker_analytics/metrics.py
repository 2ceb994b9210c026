from __future__ import annotations

from datetime import datetime

from .aggregation import aggregate_daily
from .db import Database
from .errors import NotFoundError
from .models import DateRange, Scope, Tracker, seconds_to_hours, seconds_to_minutes
from .periods import make_range


class Analytics:
    """Reducers over the daily buckets, each returning a success envelope."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def daily_totals(self, scope: Scope, date_range: DateRange, now_utc: datetime) -> dict:
        buckets = aggregate_daily(self.db, scope, date_range, now_utc)
        return {"success": True, "data": [bucket.to_dict() for bucket in buckets]}

    def total_hours(self, scope: Scope, date_range: DateRange, now_utc: datetime) -> dict:
        buckets = aggregate_daily(self.db, scope, date_range, now_utc)
        total_seconds = sum(bucket.total_seconds for bucket in buckets)
        return {
            "success": True,
            "data": {
                "startDate": date_range.start_date.isoformat(),
                "endDate": date_range.end_date.isoformat(),
                "totalHours": seconds_to_hours(total_seconds),
                "totalMinutes": seconds_to_minutes(total_seconds),
                "sessionCount": sum(bucket.session_count for bucket in buckets),
                "dailyBreakdown": [bucket.to_dict() for bucket in buckets],
            },
        }

    def productivity_trend(self, scope: Scope, date_range: DateRange, now_utc: datetime) -> dict:
        # The gap-filled, date-ordered series is the trend; rendering is left to the client.
        buckets = aggregate_daily(self.db, scope, date_range, now_utc)
        return {"success": True, "data": [bucket.to_dict() for bucket in buckets]}

    def today_stats(self, user_id: str, tracker_id: str | None, now_utc: datetime) -> dict:
        tracker = self.resolve_today_tracker(user_id, tracker_id)
        today = now_utc.date()
        (bucket,) = aggregate_daily(self.db, Scope(user_id, tracker.id), make_range(today, today), now_utc)

        remaining = max(0.0, tracker.target_hours - bucket.total_hours)
        return {
            "success": True,
            "data": {
                "date": today.isoformat(),
                "trackerId": tracker.id,
                "trackerName": tracker.name,
                "hoursWorked": bucket.total_hours,
                "totalMinutes": bucket.total_minutes,
                "sessionCount": bucket.session_count,
                "targetHours": tracker.target_hours,
                "remainingHours": round(remaining, 2),
                "progressPercent": round(bucket.total_hours / tracker.target_hours * 100, 1),
                "isRunning": self.db.get_open_session(tracker.id) is not None,
            },
        }

    def resolve_today_tracker(self, user_id: str, tracker_id: str | None) -> Tracker:
        if tracker_id is not None:
            tracker = self.db.get_tracker(tracker_id)
            if tracker is None or tracker.user_id != user_id:
                raise NotFoundError(f"Tracker {tracker_id} not found for user {user_id}")
            return tracker

        trackers = self.db.list_trackers(user_id, include_archived=False)
        for tracker in trackers:
            if self.db.get_open_session(tracker.id) is not None:
                return tracker
        if trackers:
            # list_trackers returns newest first.
            return trackers[0]
        raise NotFoundError(f"No active tracker found for user {user_id}")

    def work_stats(self, tracker_id: str, now_utc: datetime) -> dict:
        tracker = self.db.get_tracker(tracker_id)
        if tracker is None:
            raise NotFoundError(f"Tracker {tracker_id} not found")

        sessions = self.db.list_sessions(tracker_id)
        durations = [session.duration_seconds(now_utc) for session in sessions]
        total_seconds = sum(durations)
        return {
            "success": True,
            "data": {
                "trackerId": tracker.id,
                "totalSessions": len(sessions),
                "completedSessions": sum(1 for session in sessions if not session.is_active),
                "totalHours": seconds_to_hours(total_seconds),
                "averageSessionMinutes": seconds_to_minutes(total_seconds // len(durations)) if durations else 0,
                "longestSessionMinutes": seconds_to_minutes(max(durations, default=0)),
            },
        }


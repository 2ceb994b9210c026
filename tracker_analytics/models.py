from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterator

HOURS_PRECISION = 2


def seconds_to_minutes(seconds: int) -> float:
    return round(seconds / 60, HOURS_PRECISION)


def seconds_to_hours(seconds: int) -> float:
    return round(seconds / 3600, HOURS_PRECISION)


@dataclass(frozen=True, slots=True)
class Tracker:
    id: str
    user_id: str
    name: str
    target_hours: int
    description: str = ""
    work_days: list[str] = field(default_factory=list)
    archived: bool = False
    created_at_utc: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "trackerName": self.name,
            "targetHours": self.target_hours,
            "description": self.description,
            "workDays": list(self.work_days),
            "archived": self.archived,
            "createdAt": self.created_at_utc.isoformat() if self.created_at_utc else None,
        }


@dataclass(frozen=True, slots=True)
class Session:
    id: int
    tracker_id: str
    started_at_utc: datetime
    ended_at_utc: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.ended_at_utc is None

    def duration_seconds(self, now_utc: datetime) -> int:
        end = self.ended_at_utc or now_utc
        return max(0, int((end - self.started_at_utc).total_seconds()))

    def to_dict(self, now_utc: datetime) -> dict:
        return {
            "id": self.id,
            "trackerId": self.tracker_id,
            "startTime": self.started_at_utc.isoformat(),
            "endTime": self.ended_at_utc.isoformat() if self.ended_at_utc else None,
            "durationMinutes": seconds_to_minutes(self.duration_seconds(now_utc)),
        }


@dataclass(frozen=True, slots=True)
class Scope:
    user_id: str
    tracker_id: str | None = None


@dataclass(frozen=True, slots=True)
class DateRange:
    """Calendar dates, inclusive on both ends."""

    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start_date + timedelta(days=offset)


@dataclass(frozen=True, slots=True)
class DailyBucket:
    date: date
    total_seconds: int = 0
    session_count: int = 0

    @property
    def total_minutes(self) -> float:
        return seconds_to_minutes(self.total_seconds)

    @property
    def total_hours(self) -> float:
        return seconds_to_hours(self.total_seconds)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "totalMinutes": self.total_minutes,
            "totalHours": self.total_hours,
            "sessionCount": self.session_count,
        }

from __future__ import annotations

import logging
from datetime import datetime

from .aggregation import utc_now
from .db import Database
from .errors import NotFoundError, ValidationError
from .models import Session, Tracker


def _ok(data) -> dict:
    return {"success": True, "data": data}


def _positive_hours(value) -> int:
    try:
        hours = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Target hours must be a positive number") from exc
    if hours <= 0:
        raise ValidationError("Target hours must be a positive number")
    return hours


class TrackerService:
    """Tracker lifecycle: create, edit, start/stop sessions, archive."""

    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def require_tracker(self, tracker_id: str) -> Tracker:
        tracker = self.db.get_tracker(tracker_id)
        if tracker is None:
            raise NotFoundError(f"Tracker {tracker_id} not found")
        return tracker

    def add_tracker(
        self,
        user_id: str | None,
        name: str | None,
        target_hours,
        *,
        description: str | None = None,
        work_days: list[str] | None = None,
        now_utc: datetime | None = None,
    ) -> dict:
        if not name or not target_hours or not user_id:
            raise ValidationError("Tracker name, target hours, and user ID are required")

        tracker = self.db.create_tracker(
            user_id,
            name,
            _positive_hours(target_hours),
            description=description or "",
            work_days=work_days,
            created_at_utc=now_utc or utc_now(),
        )
        self.logger.info("Tracker created: id=%s user=%s", tracker.id, user_id)
        return _ok(tracker.to_dict())

    def edit_tracker(
        self,
        tracker_id: str,
        *,
        name: str | None = None,
        target_hours=None,
        description: str | None = None,
        work_days: list[str] | None = None,
    ) -> dict:
        if name is None and target_hours is None and description is None and work_days is None:
            raise ValidationError("At least one field must be provided for update")

        self.require_tracker(tracker_id)
        self.db.update_tracker(
            tracker_id,
            name=name,
            target_hours=_positive_hours(target_hours) if target_hours is not None else None,
            description=description,
            work_days=work_days,
        )
        return _ok(self.require_tracker(tracker_id).to_dict())

    def delete_tracker(self, tracker_id: str) -> dict:
        tracker = self.require_tracker(tracker_id)
        self.db.delete_tracker(tracker_id)
        self.logger.info("Tracker deleted: id=%s user=%s", tracker_id, tracker.user_id)
        return _ok(tracker.to_dict())

    def list_trackers(self, user_id: str | None) -> dict:
        if not user_id:
            raise ValidationError("User ID is required as query parameter")
        return _ok([tracker.to_dict() for tracker in self.db.list_trackers(user_id)])

    def start_tracker(self, tracker_id: str, started_at_utc: datetime | None = None) -> dict:
        tracker = self.require_tracker(tracker_id)
        if tracker.archived:
            raise ValidationError("Cannot start an archived tracker")
        if self.db.get_open_session(tracker_id) is not None:
            raise ValidationError("Tracker is already running")

        started = started_at_utc or utc_now()
        session = self.db.open_session(tracker_id, started)
        self.logger.info("Session started: tracker=%s user=%s", tracker_id, tracker.user_id)
        return _ok(self._session_payload(tracker, session, started))

    def stop_tracker(self, tracker_id: str, ended_at_utc: datetime | None = None) -> dict:
        tracker = self.require_tracker(tracker_id)
        session = self.db.get_open_session(tracker_id)
        if session is None:
            raise ValidationError("Tracker is not running")

        ended = ended_at_utc or utc_now()
        self.db.close_session(session.id, ended)
        stopped = self.db.get_session(session.id)
        self.logger.info(
            "Session ended: tracker=%s user=%s tracked=%ss",
            tracker_id,
            tracker.user_id,
            stopped.duration_seconds(ended),
        )
        return _ok(self._session_payload(tracker, stopped, ended))

    def archive_tracker(self, tracker_id: str, now_utc: datetime | None = None) -> dict:
        tracker = self.require_tracker(tracker_id)
        if tracker.archived:
            raise ValidationError("Tracker is already archived")

        # Archived trackers never have a running session.
        session = self.db.get_open_session(tracker_id)
        if session is not None:
            self.db.close_session(session.id, now_utc or utc_now())

        self.db.set_archived(tracker_id, True)
        return _ok(self.require_tracker(tracker_id).to_dict())

    def unarchive_tracker(self, tracker_id: str) -> dict:
        tracker = self.require_tracker(tracker_id)
        if not tracker.archived:
            raise ValidationError("Tracker is not archived")

        self.db.set_archived(tracker_id, False)
        return _ok(self.require_tracker(tracker_id).to_dict())

    def list_sessions(self, tracker_id: str, now_utc: datetime | None = None) -> dict:
        self.require_tracker(tracker_id)
        now = now_utc or utc_now()
        return _ok([session.to_dict(now) for session in self.db.list_sessions(tracker_id)])

    def list_active_sessions(self, user_id: str, now_utc: datetime | None = None) -> dict:
        now = now_utc or utc_now()
        return _ok([session.to_dict(now) for session in self.db.list_active_sessions(user_id)])

    def _session_payload(self, tracker: Tracker, session: Session, now_utc: datetime) -> dict:
        payload = session.to_dict(now_utc)
        payload["userId"] = tracker.user_id
        return payload

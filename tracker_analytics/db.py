from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

from .models import Session, Tracker


class Database:
    """Thin SQLite access layer for trackers and their work sessions."""

    def __init__(self, db_path: str | Path) -> None:
        # TestClient drives the app from its own portal thread, not the one that opened the file.
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # trackers: one row per tracker, owned by a single user.
        # sessions: start/stop intervals; ended_at_utc stays NULL while running.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS trackers (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              name TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              target_hours INTEGER NOT NULL,
              work_days TEXT NOT NULL DEFAULT '[]',
              archived INTEGER NOT NULL DEFAULT 0,
              created_at_utc TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sessions (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              tracker_id TEXT NOT NULL REFERENCES trackers(id) ON DELETE CASCADE,
              started_at_utc TEXT NOT NULL,
              ended_at_utc TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_trackers_user ON trackers(user_id);
            CREATE INDEX IF NOT EXISTS idx_sessions_tracker ON sessions(tracker_id, started_at_utc);
            """
        )
        self._conn.commit()

    # Trackers

    def create_tracker(
        self,
        user_id: str,
        name: str,
        target_hours: int,
        *,
        description: str = "",
        work_days: list[str] | None = None,
        created_at_utc: datetime,
    ) -> Tracker:
        tracker_id = uuid.uuid4().hex
        self._conn.execute(
            """
            INSERT INTO trackers (id, user_id, name, description, target_hours, work_days, created_at_utc)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                tracker_id,
                user_id,
                name,
                description,
                target_hours,
                json.dumps(work_days or []),
                _to_utc_iso(created_at_utc),
            ),
        )
        self._conn.commit()
        return Tracker(
            id=tracker_id,
            user_id=user_id,
            name=name,
            target_hours=target_hours,
            description=description,
            work_days=list(work_days or []),
            created_at_utc=created_at_utc.astimezone(timezone.utc),
        )

    def get_tracker(self, tracker_id: str) -> Tracker | None:
        row = self._conn.execute("SELECT * FROM trackers WHERE id = ?", (tracker_id,)).fetchone()
        if row is None:
            return None
        return _tracker_from_row(row)

    def list_trackers(self, user_id: str, *, include_archived: bool = True) -> list[Tracker]:
        query = "SELECT * FROM trackers WHERE user_id = ?"
        if not include_archived:
            query += " AND archived = 0"
        query += " ORDER BY created_at_utc DESC, id ASC"
        rows = self._conn.execute(query, (user_id,)).fetchall()
        return [_tracker_from_row(row) for row in rows]

    def update_tracker(self, tracker_id: str, **fields) -> None:
        columns = {
            "name": fields.get("name"),
            "target_hours": fields.get("target_hours"),
            "description": fields.get("description"),
            "work_days": json.dumps(fields["work_days"]) if fields.get("work_days") is not None else None,
        }
        updates = {column: value for column, value in columns.items() if value is not None}
        if not updates:
            return

        assignments = ", ".join(f"{column} = ?" for column in updates)
        self._conn.execute(
            f"UPDATE trackers SET {assignments} WHERE id = ?",
            (*updates.values(), tracker_id),
        )
        self._conn.commit()

    def set_archived(self, tracker_id: str, archived: bool) -> None:
        self._conn.execute("UPDATE trackers SET archived = ? WHERE id = ?", (int(archived), tracker_id))
        self._conn.commit()

    def delete_tracker(self, tracker_id: str) -> None:
        self._conn.execute("DELETE FROM sessions WHERE tracker_id = ?", (tracker_id,))
        self._conn.execute("DELETE FROM trackers WHERE id = ?", (tracker_id,))
        self._conn.commit()

    # Sessions

    def open_session(self, tracker_id: str, started_at_utc: datetime) -> Session:
        cursor = self._conn.execute(
            "INSERT INTO sessions (tracker_id, started_at_utc) VALUES (?, ?)",
            (tracker_id, _to_utc_iso(started_at_utc)),
        )
        self._conn.commit()
        return Session(
            id=cursor.lastrowid,
            tracker_id=tracker_id,
            started_at_utc=started_at_utc.astimezone(timezone.utc),
        )

    def close_session(self, session_id: int, ended_at_utc: datetime) -> None:
        self._conn.execute(
            "UPDATE sessions SET ended_at_utc = ? WHERE id = ? AND ended_at_utc IS NULL",
            (_to_utc_iso(ended_at_utc), session_id),
        )
        self._conn.commit()

    def add_session(self, tracker_id: str, started_at_utc: datetime, ended_at_utc: datetime | None) -> Session:
        """Insert a complete interval, used for imports and fixtures."""
        cursor = self._conn.execute(
            "INSERT INTO sessions (tracker_id, started_at_utc, ended_at_utc) VALUES (?, ?, ?)",
            (
                tracker_id,
                _to_utc_iso(started_at_utc),
                _to_utc_iso(ended_at_utc) if ended_at_utc else None,
            ),
        )
        self._conn.commit()
        return Session(
            id=cursor.lastrowid,
            tracker_id=tracker_id,
            started_at_utc=started_at_utc.astimezone(timezone.utc),
            ended_at_utc=ended_at_utc.astimezone(timezone.utc) if ended_at_utc else None,
        )

    def get_session(self, session_id: int) -> Session | None:
        row = self._conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        if row is None:
            return None
        return _session_from_row(row)

    def get_open_session(self, tracker_id: str) -> Session | None:
        row = self._conn.execute(
            "SELECT * FROM sessions WHERE tracker_id = ? AND ended_at_utc IS NULL ORDER BY id DESC",
            (tracker_id,),
        ).fetchone()
        if row is None:
            return None
        return _session_from_row(row)

    def list_sessions(self, tracker_id: str) -> list[Session]:
        rows = self._conn.execute(
            "SELECT * FROM sessions WHERE tracker_id = ? ORDER BY started_at_utc ASC, id ASC",
            (tracker_id,),
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def list_active_sessions(self, user_id: str) -> list[Session]:
        rows = self._conn.execute(
            """
            SELECT s.*
            FROM sessions s
            JOIN trackers t ON t.id = s.tracker_id
            WHERE t.user_id = ? AND s.ended_at_utc IS NULL
            ORDER BY s.started_at_utc ASC, s.id ASC
            """,
            (user_id,),
        ).fetchall()
        return [_session_from_row(row) for row in rows]

    def list_sessions_overlapping(
        self,
        user_id: str,
        tracker_id: str | None,
        start_utc: datetime,
        end_utc: datetime,
    ) -> list[Session]:
        """Sessions whose interval intersects [start_utc, end_utc), running ones included."""
        query = """
            SELECT s.*
            FROM sessions s
            JOIN trackers t ON t.id = s.tracker_id
            WHERE t.user_id = ?
              AND s.started_at_utc < ?
              AND (s.ended_at_utc IS NULL OR s.ended_at_utc > ?)
        """
        params: list[str] = [user_id, _to_utc_iso(end_utc), _to_utc_iso(start_utc)]
        if tracker_id is not None:
            query += " AND s.tracker_id = ?"
            params.append(tracker_id)
        query += " ORDER BY s.started_at_utc ASC, s.id ASC"

        rows = self._conn.execute(query, params).fetchall()
        return [_session_from_row(row) for row in rows]


def parse_iso_utc(value: str | None) -> datetime | None:
    """Parse an ISO timestamp and normalize to UTC."""
    if not value:
        return None

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Stored values should be timezone-aware; treat naive values as UTC for resilience.
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _to_utc_iso(value: datetime) -> str:
    """Normalize a timezone-aware datetime to a fixed-width UTC string so stored values sort lexically."""
    if value.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _tracker_from_row(row: sqlite3.Row) -> Tracker:
    return Tracker(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        target_hours=row["target_hours"],
        description=row["description"],
        work_days=json.loads(row["work_days"]),
        archived=bool(row["archived"]),
        created_at_utc=parse_iso_utc(row["created_at_utc"]),
    )


def _session_from_row(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        tracker_id=row["tracker_id"],
        started_at_utc=parse_iso_utc(row["started_at_utc"]),
        ended_at_utc=parse_iso_utc(row["ended_at_utc"]),
    )

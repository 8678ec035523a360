from __future__ import annotations

import uuid
from typing import Protocol

from .database import SQLiteMemoryDB
from .records import RedFlagEvent
from .time_utils import parse_iso, to_iso, utc_now


class HealthRecordSink(Protocol):
    def record_red_flag_event(self, subject_id: str, event: RedFlagEvent) -> None: ...

    def list_red_flag_events(self, subject_id: str, limit: int = 50) -> list[RedFlagEvent]: ...


class SQLiteHealthRecordSink:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def record_red_flag_event(self, subject_id: str, event: RedFlagEvent) -> None:
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO red_flag_events (
                  id, subject_id, session_id, node_id, flag_id, label, reason,
                  severity, resolved, occurred_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    uuid.uuid4().hex,
                    subject_id,
                    event.session_id,
                    event.node_id,
                    event.flag_id,
                    event.label,
                    event.reason,
                    event.severity,
                    to_iso(event.date),
                    to_iso(utc_now()),
                ),
            )

    def list_red_flag_events(self, subject_id: str, limit: int = 50) -> list[RedFlagEvent]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT session_id, node_id, flag_id, label, reason, severity, occurred_at
                FROM red_flag_events
                WHERE subject_id = ?
                ORDER BY occurred_at DESC, created_at DESC
                LIMIT ?
                """,
                (subject_id, max(1, int(limit))),
            ).fetchall()
        return [
            RedFlagEvent(
                date=parse_iso(row["occurred_at"]) or utc_now(),
                session_id=row["session_id"],
                node_id=row["node_id"],
                flag_id=row["flag_id"],
                label=row["label"],
                reason=row["reason"],
                severity=row["severity"],
            )
            for row in rows
        ]

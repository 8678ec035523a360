from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Protocol

from .database import SQLiteMemoryDB
from .records import Session, SessionStep
from .time_utils import parse_iso, to_iso, utc_now


def _json_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def _json_loads(value: str | None) -> Any:
    if not value:
        return None
    return json.loads(value)


def merge_context(existing: dict[str, Any] | None, patch: dict[str, Any] | None) -> dict[str, Any]:
    """Shallow last-write-wins merge: nested values are replaced, never combined."""
    merged = dict(existing or {})
    if patch:
        merged.update(patch)
    return merged


class SessionStore(Protocol):
    def create_session(self, *, subject_id: str, initial_node_id: str, session_id: str | None = None) -> Session: ...

    def load_session(self, session_id: str) -> Session | None: ...

    def save_session_state(self, session_id: str, *, node_id: str, status: str, ended_at: datetime | None = None) -> None: ...

    def merge_context(self, session_id: str, partial: dict[str, Any]) -> dict[str, Any]: ...

    def append_step(self, session_id: str, step: SessionStep) -> None: ...

    def load_context(self, session_id: str) -> dict[str, Any]: ...

    def load_steps(self, session_id: str, limit: int | None = None) -> list[SessionStep]: ...

    def commit_turn(
        self,
        session_id: str,
        *,
        context_patch: dict[str, Any] | None,
        step: SessionStep,
        node_id: str,
        status: str,
        ended_at: datetime | None = None,
    ) -> None: ...


class SQLiteSessionStore:
    def __init__(self, db: SQLiteMemoryDB) -> None:
        self._db = db

    def create_session(self, *, subject_id: str, initial_node_id: str, session_id: str | None = None) -> Session:
        session = Session(
            id=session_id or uuid.uuid4().hex,
            subject_id=subject_id,
            current_node_id=initial_node_id,
            status="active",
            started_at=utc_now(),
        )
        now = to_iso(session.started_at)
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, subject_id, current_node_id, status, started_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (session.id, subject_id, initial_node_id, session.status, now, now),
            )
            conn.execute(
                """
                INSERT INTO session_memory (session_id, subject_id, context_json, created_at, updated_at)
                VALUES (?, ?, '{}', ?, ?)
                """,
                (session.id, subject_id, now, now),
            )
        return session

    def load_session(self, session_id: str) -> Session | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT id, subject_id, current_node_id, status, started_at, ended_at
                FROM sessions
                WHERE id = ?
                """,
                (session_id,),
            ).fetchone()
        if row is None:
            return None
        return Session(
            id=row["id"],
            subject_id=row["subject_id"],
            current_node_id=row["current_node_id"],
            status=row["status"],
            started_at=parse_iso(row["started_at"]),
            ended_at=parse_iso(row["ended_at"]),
        )

    def save_session_state(self, session_id: str, *, node_id: str, status: str, ended_at: datetime | None = None) -> None:
        with self._db.connection() as conn:
            self._update_state(conn, session_id, node_id=node_id, status=status, ended_at=ended_at)

    def merge_context(self, session_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        with self._db.connection() as conn:
            return self._merge_context(conn, session_id, partial)

    def append_step(self, session_id: str, step: SessionStep) -> None:
        with self._db.connection() as conn:
            self._insert_step(conn, session_id, step)

    def load_context(self, session_id: str) -> dict[str, Any]:
        with self._db.connection() as conn:
            return self._read_context(conn, session_id)

    def load_steps(self, session_id: str, limit: int | None = None) -> list[SessionStep]:
        query = """
            SELECT node_id, input_text, response_text, controller_data_json, reasoning_json, created_at
            FROM session_steps
            WHERE session_id = ?
            ORDER BY id DESC
        """
        params: tuple[Any, ...] = (session_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (session_id, max(0, int(limit)))
        with self._db.connection() as conn:
            rows = conn.execute(query, params).fetchall()
        steps = [
            SessionStep(
                node_id=row["node_id"],
                timestamp=parse_iso(row["created_at"]) or utc_now(),
                input=row["input_text"],
                response=row["response_text"],
                controller_data=_json_loads(row["controller_data_json"]),
                reasoning_snapshot=_json_loads(row["reasoning_json"]),
            )
            for row in rows
        ]
        steps.reverse()
        return steps

    def commit_turn(
        self,
        session_id: str,
        *,
        context_patch: dict[str, Any] | None,
        step: SessionStep,
        node_id: str,
        status: str,
        ended_at: datetime | None = None,
    ) -> None:
        with self._db.connection() as conn:
            if context_patch:
                self._merge_context(conn, session_id, context_patch)
            self._insert_step(conn, session_id, step)
            self._update_state(conn, session_id, node_id=node_id, status=status, ended_at=ended_at)

    def _read_context(self, conn: sqlite3.Connection, session_id: str) -> dict[str, Any]:
        row = conn.execute(
            "SELECT context_json FROM session_memory WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        if row is None:
            return {}
        return _json_loads(row["context_json"]) or {}

    def _merge_context(self, conn: sqlite3.Connection, session_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        merged = merge_context(self._read_context(conn, session_id), partial)
        now = to_iso(utc_now())
        cursor = conn.execute(
            """
            UPDATE session_memory
            SET context_json = ?, updated_at = ?
            WHERE session_id = ?
            """,
            (_json_dumps(merged), now, session_id),
        )
        if cursor.rowcount == 0:
            conn.execute(
                """
                INSERT INTO session_memory (session_id, subject_id, context_json, created_at, updated_at)
                SELECT id, subject_id, ?, ?, ? FROM sessions WHERE id = ?
                """,
                (_json_dumps(merged), now, now, session_id),
            )
        return merged

    def _insert_step(self, conn: sqlite3.Connection, session_id: str, step: SessionStep) -> None:
        conn.execute(
            """
            INSERT INTO session_steps (
              session_id, node_id, input_text, response_text,
              controller_data_json, reasoning_json, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                session_id,
                step.node_id,
                step.input,
                step.response,
                _json_dumps(step.controller_data) if step.controller_data is not None else None,
                _json_dumps(step.reasoning_snapshot) if step.reasoning_snapshot is not None else None,
                to_iso(step.timestamp),
            ),
        )

    def _update_state(
        self,
        conn: sqlite3.Connection,
        session_id: str,
        *,
        node_id: str,
        status: str,
        ended_at: datetime | None,
    ) -> None:
        conn.execute(
            """
            UPDATE sessions
            SET current_node_id = ?, status = ?, ended_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (node_id, status, to_iso(ended_at) if ended_at else None, to_iso(utc_now()), session_id),
        )

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class PersistenceError(Exception):
    pass


class SQLiteMemoryDB:
    def __init__(self, db_path: str) -> None:
        self._path = Path(db_path).expanduser().resolve()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    @property
    def path(self) -> str:
        return str(self._path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=30.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open {self._path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise PersistenceError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                  id TEXT PRIMARY KEY,
                  subject_id TEXT NOT NULL,
                  current_node_id TEXT NOT NULL,
                  status TEXT NOT NULL DEFAULT 'active',
                  started_at TEXT NOT NULL,
                  ended_at TEXT,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS session_memory (
                  session_id TEXT PRIMARY KEY REFERENCES sessions(id) ON DELETE CASCADE,
                  subject_id TEXT NOT NULL,
                  context_json TEXT NOT NULL DEFAULT '{}',
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS session_steps (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                  node_id TEXT NOT NULL,
                  input_text TEXT NOT NULL,
                  response_text TEXT NOT NULL,
                  controller_data_json TEXT,
                  reasoning_json TEXT,
                  created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS red_flag_events (
                  id TEXT PRIMARY KEY,
                  subject_id TEXT NOT NULL,
                  session_id TEXT NOT NULL,
                  node_id TEXT NOT NULL,
                  flag_id TEXT NOT NULL,
                  label TEXT NOT NULL,
                  reason TEXT NOT NULL,
                  severity TEXT NOT NULL,
                  resolved INTEGER NOT NULL DEFAULT 0,
                  occurred_at TEXT NOT NULL,
                  created_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_subject
                  ON sessions(subject_id, started_at);
                CREATE INDEX IF NOT EXISTS idx_session_steps_session
                  ON session_steps(session_id, id);
                CREATE INDEX IF NOT EXISTS idx_red_flag_events_subject
                  ON red_flag_events(subject_id, occurred_at DESC);
                """
            )

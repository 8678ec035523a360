from .database import PersistenceError, SQLiteMemoryDB
from .health_record import HealthRecordSink, SQLiteHealthRecordSink
from .records import SESSION_STATUSES, RedFlagEvent, Session, SessionStep
from .service import SessionMemory, render_conversation
from .session_store import SessionStore, SQLiteSessionStore, merge_context

__all__ = [
    "SESSION_STATUSES",
    "HealthRecordSink",
    "PersistenceError",
    "RedFlagEvent",
    "SQLiteHealthRecordSink",
    "SQLiteMemoryDB",
    "SQLiteSessionStore",
    "Session",
    "SessionMemory",
    "SessionStep",
    "SessionStore",
    "merge_context",
    "render_conversation",
]

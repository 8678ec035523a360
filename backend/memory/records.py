from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

SESSION_STATUSES = {"active", "completed", "abandoned"}


@dataclass
class Session:
    id: str
    subject_id: str
    current_node_id: str
    status: str = "active"
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class SessionStep:
    node_id: str
    timestamp: datetime
    input: str
    response: str
    controller_data: dict[str, Any] | None = None
    reasoning_snapshot: dict[str, Any] | None = None


@dataclass(frozen=True)
class RedFlagEvent:
    date: datetime
    session_id: str
    node_id: str
    flag_id: str
    label: str
    reason: str
    severity: str

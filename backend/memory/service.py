from __future__ import annotations

from datetime import datetime
from typing import Any

from .records import Session, SessionStep
from .session_store import SessionStore, merge_context


class SessionMemory:
    """Per-session context and step log on top of a SessionStore."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def initialize(self, session_id: str | None, subject_id: str, *, initial_node_id: str) -> Session:
        return self.store.create_session(
            subject_id=subject_id,
            initial_node_id=initial_node_id,
            session_id=session_id,
        )

    def load_session(self, session_id: str) -> Session | None:
        return self.store.load_session(session_id)

    def set_state(self, session_id: str, *, node_id: str, status: str, ended_at: datetime | None = None) -> None:
        self.store.save_session_state(session_id, node_id=node_id, status=status, ended_at=ended_at)

    def merge_context(self, session_id: str, partial: dict[str, Any] | None) -> dict[str, Any]:
        if not partial:
            return self.store.load_context(session_id)
        return self.store.merge_context(session_id, partial)

    def append_step(self, session_id: str, step: SessionStep) -> None:
        self.store.append_step(session_id, step)

    def get_context(self, session_id: str) -> dict[str, Any]:
        return self.store.load_context(session_id)

    def get_steps(self, session_id: str) -> list[SessionStep]:
        return self.store.load_steps(session_id)

    def get_recent_steps(self, session_id: str, count: int) -> list[SessionStep]:
        if count <= 0:
            return []
        return self.store.load_steps(session_id, limit=count)

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
        self.store.commit_turn(
            session_id,
            context_patch=context_patch,
            step=step,
            node_id=node_id,
            status=status,
            ended_at=ended_at,
        )

    def build_conversation_summary(self, session_id: str, max_chars: int | None = None) -> str:
        return render_conversation(self.get_steps(session_id), max_chars=max_chars)


def render_conversation(steps: list[SessionStep], *, max_chars: int | None = None) -> str:
    lines: list[str] = []
    for step in steps:
        lines.append(f"[{step.node_id}] User: {step.input}")
        lines.append(f"Assistant: {step.response}")
    text = "\n".join(lines)
    if max_chars is not None and len(text) > max_chars:
        text = text[-max_chars:] if max_chars > 0 else ""
    return text


__all__ = ["SessionMemory", "merge_context", "render_conversation"]

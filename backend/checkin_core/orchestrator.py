from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Iterator

from memory import HealthRecordSink, RedFlagEvent, Session, SessionMemory, SessionStep, merge_context
from memory.time_utils import to_iso, utc_now

from .conditions import Router
from .errors import SessionClosedError, SessionExistsError, SessionNotFoundError
from .graph import NodeGraph
from .hooks import HookRunner
from .models import ControllerContext, Node, ReasoningInput, ReasoningResult, TurnResult
from .registry import ControllerRegistry

if TYPE_CHECKING:
    from generation import PromptEngine, TextGenerator
    from reasoning import ReasoningEngine

logger = logging.getLogger(__name__)


class SessionLocks:
    """One lock per session id; turns for the same session never interleave.

    An entry lives only while some caller holds or waits on it, so ids that
    never resolve to a session leave nothing behind.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        with self._guard:
            lock, waiters = self._locks.get(session_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[session_id] = (lock, waiters + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, waiters = self._locks[session_id]
                if waiters <= 1:
                    del self._locks[session_id]
                else:
                    self._locks[session_id] = (lock, waiters - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class TurnOrchestrator:
    def __init__(
        self,
        *,
        graph: NodeGraph,
        registry: ControllerRegistry,
        reasoning: ReasoningEngine,
        router: Router,
        memory: SessionMemory,
        generator: TextGenerator,
        prompts: PromptEngine,
        sink: HealthRecordSink,
        locks: SessionLocks | None = None,
        history_chars: int = 2000,
    ) -> None:
        self.graph = graph
        self.registry = registry
        self.hooks = HookRunner(registry)
        self.reasoning = reasoning
        self.router = router
        self.memory = memory
        self.generator = generator
        self.prompts = prompts
        self.sink = sink
        self.locks = locks if locks is not None else SessionLocks()
        self.history_chars = history_chars

    def start_session(self, subject_id: str, *, session_id: str | None = None) -> dict[str, Any]:
        if not session_id:
            return self._start_session(subject_id, None)
        with self.locks.hold(session_id):
            if self.memory.load_session(session_id) is not None:
                raise SessionExistsError(session_id)
            return self._start_session(subject_id, session_id)

    def _start_session(self, subject_id: str, session_id: str | None) -> dict[str, Any]:
        initial = self.graph.initial_node
        session = self.memory.initialize(session_id, subject_id, initial_node_id=initial.id)
        if initial.is_terminal:
            self.memory.set_state(session.id, node_id=initial.id, status="completed", ended_at=utc_now())
        logger.info("Started check-in session %s for subject %s", session.id, subject_id)
        return self.get_session_state(session.id)

    def get_session_state(self, session_id: str) -> dict[str, Any]:
        session = self._load(session_id)
        node = self.graph.require(session.current_node_id)
        return {
            **self._session_envelope(session),
            "node": node.as_envelope(),
            "possible_next_states": self.router.possible_next_states(node),
            "context": self.memory.get_context(session_id),
            "steps": [self._step_envelope(step) for step in self.memory.get_steps(session_id)],
        }

    def abandon_session(self, session_id: str) -> dict[str, Any]:
        with self.locks.hold(session_id):
            session = self._load(session_id)
            if session.is_active:
                self.memory.set_state(
                    session_id,
                    node_id=session.current_node_id,
                    status="abandoned",
                    ended_at=utc_now(),
                )
                logger.info("Abandoned check-in session %s at %s", session_id, session.current_node_id)
        return self.get_session_state(session_id)

    def handle_turn(self, session_id: str, raw_input: str | None) -> TurnResult:
        with self.locks.hold(session_id):
            return self._handle_turn(session_id, "" if raw_input is None else str(raw_input))

    def _handle_turn(self, session_id: str, raw_input: str) -> TurnResult:
        session = self._load(session_id)
        node = self.graph.require(session.current_node_id)
        if not session.is_active:
            raise SessionClosedError(session_id, session.status)

        stored_context = self.memory.get_context(session_id)
        ctx = ControllerContext(
            subject_id=session.subject_id,
            session_id=session_id,
            node_id=node.id,
            input=raw_input,
            context=dict(stored_context),
            risk=self.reasoning.risk,
            screening=self.reasoning.screening,
        )

        patch: dict[str, Any] = {}
        effective_input = raw_input
        pre = self.hooks.run_preprocess(node.controller_name, ctx)
        if pre is not None:
            if pre.modified_input is not None:
                effective_input = pre.modified_input
            if pre.extra_data:
                patch = merge_context(patch, pre.extra_data)
        working_context = merge_context(stored_context, patch)

        reasoning = self.reasoning.analyze(ReasoningInput(node_id=node.id, input=effective_input, context=working_context))
        override = pre.override_next_state if pre is not None and pre.override_next_state else None
        override = override or reasoning.override_next_state

        generation_error: str | None = None
        if pre is not None and pre.override_response is not None:
            response = pre.override_response
            source = "override"
        else:
            prompt = self.prompts.build_prompt(
                node_prompt=node.prompt,
                user_input=effective_input,
                context=working_context,
                reasoning=reasoning,
                conversation=self.memory.build_conversation_summary(session_id, max_chars=self.history_chars),
            )
            generated = self.generator.generate(prompt, fallback_key=node.prompt)
            response = generated.content
            source = generated.source
            generation_error = generated.error

            post = self.hooks.run_postprocess(
                node.controller_name,
                replace(ctx, input=effective_input, context=dict(working_context), response=response),
            )
            if post is not None:
                if post.override_response is not None:
                    response = post.override_response
                    source = "override"
                if post.extra_data:
                    patch = merge_context(patch, post.extra_data)
                    working_context = merge_context(working_context, post.extra_data)
                if post.override_next_state:
                    override = post.override_next_state

        next_state = self._resolve_next_state(node, override, effective_input, working_context)
        next_node = self.graph.require(next_state)
        completed = next_node.is_terminal
        now = utc_now()

        step = SessionStep(
            node_id=node.id,
            timestamp=now,
            input=raw_input,
            response=response,
            controller_data=patch or None,
            reasoning_snapshot=reasoning.snapshot(),
        )
        self.memory.commit_turn(
            session_id,
            context_patch=patch,
            step=step,
            node_id=next_state,
            status="completed" if completed else "active",
            ended_at=now if completed else None,
        )
        self._record_red_flags(session, node, reasoning)

        logger.debug("Session %s moved %s -> %s (source=%s)", session_id, node.id, next_state, source)
        return TurnResult(
            response=response,
            previous_state=node.id,
            next_state=next_state,
            node=next_node,
            reasoning=reasoning,
            is_terminal=completed,
            source=source,
            generation_error=generation_error,
        )

    def _resolve_next_state(
        self,
        node: Node,
        override: str | None,
        effective_input: str,
        context: dict[str, Any],
    ) -> str:
        if node.is_terminal:
            return node.id
        if override:
            if override in self.graph:
                return override
            logger.warning("Ignoring override to unknown node '%s' from %s", override, node.id)
        return self.router.next_state(node, effective_input, context)

    def _record_red_flags(self, session: Session, node: Node, reasoning: ReasoningResult) -> None:
        for flag in reasoning.high_severity_flags:
            event = RedFlagEvent(
                date=utc_now(),
                session_id=session.id,
                node_id=node.id,
                flag_id=flag.id,
                label=flag.label,
                reason=flag.reason,
                severity=flag.severity,
            )
            try:
                self.sink.record_red_flag_event(session.subject_id, event)
            except Exception:
                logger.exception("Failed to record red flag %s for session %s", flag.id, session.id)

    def _load(self, session_id: str) -> Session:
        session = self.memory.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _session_envelope(session: Session) -> dict[str, Any]:
        return {
            "session_id": session.id,
            "subject_id": session.subject_id,
            "current_node_id": session.current_node_id,
            "status": session.status,
            "started_at": to_iso(session.started_at) if session.started_at else None,
            "ended_at": to_iso(session.ended_at) if session.ended_at else None,
        }

    @staticmethod
    def _step_envelope(step: SessionStep) -> dict[str, Any]:
        return {
            "node_id": step.node_id,
            "timestamp": to_iso(step.timestamp),
            "input": step.input,
            "response": step.response,
            "controller_data": step.controller_data,
            "reasoning_snapshot": step.reasoning_snapshot,
        }

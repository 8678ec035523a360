from __future__ import annotations

import pytest

from memory import (
    PersistenceError,
    RedFlagEvent,
    SessionStep,
    SQLiteHealthRecordSink,
    merge_context,
    render_conversation,
)
from memory.time_utils import utc_now


def _step(node_id: str, text: str, response: str = "ok") -> SessionStep:
    return SessionStep(node_id=node_id, timestamp=utc_now(), input=text, response=response)


def test_initialize_and_load_session(session_memory):
    session = session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    loaded = session_memory.load_session("s-1")
    assert loaded is not None
    assert (loaded.id, loaded.subject_id, loaded.current_node_id, loaded.status) == ("s-1", "subject-1", "START", "active")
    assert loaded.started_at == session.started_at
    assert session_memory.get_context("s-1") == {}
    assert session_memory.load_session("unknown") is None


def test_generated_session_ids_are_unique(session_memory):
    first = session_memory.initialize(None, "subject-1", initial_node_id="START")
    second = session_memory.initialize(None, "subject-1", initial_node_id="START")
    assert first.id != second.id


def test_merging_the_same_patch_twice_equals_merging_once(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    patch = {"medications": [], "noMedications": True}
    once = session_memory.merge_context("s-1", patch)
    twice = session_memory.merge_context("s-1", patch)
    assert once == twice == patch
    assert session_memory.get_context("s-1") == patch


def test_merge_is_shallow_last_write_wins(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    session_memory.merge_context("s-1", {"demographics": {"age": 40, "sexAtBirth": "female"}, "consent": "yes"})
    merged = session_memory.merge_context("s-1", {"demographics": {"weightKg": 70}})
    assert merged == {"demographics": {"weightKg": 70}, "consent": "yes"}
    assert session_memory.merge_context("s-1", {}) == merged
    assert session_memory.merge_context("s-1", None) == merged


def test_merge_context_helper_does_not_mutate_inputs():
    existing = {"a": 1}
    patch = {"b": 2}
    assert merge_context(existing, patch) == {"a": 1, "b": 2}
    assert existing == {"a": 1}
    assert merge_context(None, None) == {}


def test_steps_are_returned_in_append_order(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    for index, node_id in enumerate(["START", "CONSENT", "AGENDA"]):
        session_memory.append_step("s-1", _step(node_id, f"input {index}"))

    assert [step.node_id for step in session_memory.get_steps("s-1")] == ["START", "CONSENT", "AGENDA"]
    assert [step.node_id for step in session_memory.get_recent_steps("s-1", 2)] == ["CONSENT", "AGENDA"]
    assert session_memory.get_recent_steps("s-1", 0) == []


def test_step_payloads_round_trip_through_storage(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    step = SessionStep(
        node_id="MEDICATIONS",
        timestamp=utc_now(),
        input="none",
        response="Noted.",
        controller_data={"medications": [], "noMedications": True},
        reasoning_snapshot={"red_flags": [], "scores": {"bmi": 22.9}},
    )
    session_memory.append_step("s-1", step)
    (stored,) = session_memory.get_steps("s-1")
    assert stored.controller_data == step.controller_data
    assert stored.reasoning_snapshot == step.reasoning_snapshot
    assert stored.timestamp == step.timestamp


def test_conversation_summary_is_truncated_from_the_front(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    session_memory.append_step("s-1", _step("START", "yes", "Great, let's begin."))
    session_memory.append_step("s-1", _step("AGENDA", "routine checkup", "Sounds good."))

    full = session_memory.build_conversation_summary("s-1")
    assert full == (
        "[START] User: yes\n"
        "Assistant: Great, let's begin.\n"
        "[AGENDA] User: routine checkup\n"
        "Assistant: Sounds good."
    )
    clipped = session_memory.build_conversation_summary("s-1", max_chars=24)
    assert len(clipped) == 24
    assert full.endswith(clipped)
    assert render_conversation([], max_chars=10) == ""


def test_commit_turn_applies_patch_step_and_state_together(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    ended = utc_now()
    session_memory.commit_turn(
        "s-1",
        context_patch={"consent": "yes"},
        step=_step("START", "yes"),
        node_id="END",
        status="completed",
        ended_at=ended,
    )
    session = session_memory.load_session("s-1")
    assert (session.current_node_id, session.status, session.ended_at) == ("END", "completed", ended)
    assert session_memory.get_context("s-1") == {"consent": "yes"}
    assert len(session_memory.get_steps("s-1")) == 1


def test_failed_commit_leaves_no_partial_state(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    broken_step = SessionStep(node_id="START", timestamp=utc_now(), input=None, response="ok")

    with pytest.raises(PersistenceError):
        session_memory.commit_turn(
            "s-1",
            context_patch={"consent": "yes"},
            step=broken_step,
            node_id="CONSENT",
            status="active",
        )

    assert session_memory.get_context("s-1") == {}
    assert session_memory.get_steps("s-1") == []
    assert session_memory.load_session("s-1").current_node_id == "START"


def test_set_state_records_abandonment(session_memory):
    session_memory.initialize("s-1", "subject-1", initial_node_id="START")
    session_memory.set_state("s-1", node_id="START", status="abandoned", ended_at=utc_now())
    session = session_memory.load_session("s-1")
    assert session.status == "abandoned"
    assert not session.is_active
    assert session.ended_at is not None


def test_health_record_sink_lists_events_per_subject(db):
    sink = SQLiteHealthRecordSink(db)
    event = RedFlagEvent(
        date=utc_now(),
        session_id="s-1",
        node_id="CARDIO_SYMPTOMS",
        flag_id="cardio_critical",
        label="Cardiovascular red flag",
        reason="Possible acute coronary syndrome",
        severity="high",
    )
    sink.record_red_flag_event("subject-1", event)
    sink.record_red_flag_event("subject-2", event)

    events = sink.list_red_flag_events("subject-1")
    assert events == [event]
    assert sink.list_red_flag_events("nobody") == []

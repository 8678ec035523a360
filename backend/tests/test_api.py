from __future__ import annotations

import pytest


def _start(client, subject_id: str = "subject-1", session_id: str | None = None):
    body = {"subject_id": subject_id}
    if session_id is not None:
        body["session_id"] = session_id
    return client.post("/sessions", json=body)


def _turn(client, session_id: str, text: str | None):
    return client.post(f"/sessions/{session_id}/turns", json={"input": text})


def test_health_reports_graph_and_generation_mode(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["graph"] == {"id": "health_checkin", "version": "1.0.0", "nodes": 19}
    assert body["generation"] == "disabled"


def test_declining_at_start_ends_the_session(client):
    started = _start(client, session_id="s-1")
    assert started.status_code == 200
    assert started.json()["current_node_id"] == "START"
    assert started.json()["node"]["input_type"] == "choice"

    response = _turn(client, "s-1", "no")
    assert response.status_code == 200
    body = response.json()
    assert body["session_id"] == "s-1"
    assert (body["previous_state"], body["next_state"]) == ("START", "END")
    assert body["is_terminal"] is True
    assert body["node"]["is_terminal"] is True
    assert body["source"] == "fallback"
    assert body["generation_error"] == "generation disabled"
    assert body["response"]

    state = client.get("/sessions/s-1").json()
    assert state["status"] == "completed"
    assert [step["input"] for step in state["steps"]] == ["no"]

    again = _turn(client, "s-1", "yes")
    assert again.status_code == 409
    assert "completed" in again.json()["detail"]


def test_turn_walks_forward_and_returns_reasoning(client):
    session_id = _start(client).json()["session_id"]
    for text in ("yes", "yes", "routine checkup"):
        assert _turn(client, session_id, text).status_code == 200

    body = _turn(client, session_id, "40, female, 70kg, 1.65m").json()
    assert body["next_state"] == "MEDICAL_HISTORY"
    assert body["reasoning"]["scores"]["bmi"] == pytest.approx(25.71, abs=0.01)
    assert body["reasoning"]["override_next_state"] is None

    state = client.get(f"/sessions/{session_id}").json()
    assert state["context"]["demographics"]["age"] == 40
    assert state["possible_next_states"] == ["MEDICATIONS"]


def test_missing_input_is_treated_as_empty_text(client):
    session_id = _start(client).json()["session_id"]
    body = _turn(client, session_id, None).json()
    assert body["next_state"] == "CONSENT"


def test_unknown_sessions_return_404(client):
    assert client.get("/sessions/missing").status_code == 404
    assert _turn(client, "missing", "yes").status_code == 404
    assert client.post("/sessions/missing/abandon").status_code == 404


def test_abandoned_session_rejects_turns(client):
    session_id = _start(client).json()["session_id"]
    abandoned = client.post(f"/sessions/{session_id}/abandon")
    assert abandoned.status_code == 200
    assert abandoned.json()["status"] == "abandoned"
    assert _turn(client, session_id, "yes").status_code == 409


def test_start_session_validation(client):
    assert _start(client, session_id="dup").status_code == 200
    duplicate = _start(client, subject_id="subject-2", session_id="dup")
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "Session already exists: dup"

    assert _start(client, subject_id="   ").status_code == 400
    assert _start(client, subject_id="").status_code == 422
    assert client.post("/sessions", json={}).status_code == 422


def test_overlong_input_is_rejected(client):
    session_id = _start(client).json()["session_id"]
    assert _turn(client, session_id, "x" * 4001).status_code == 422


def test_crisis_language_escalates_and_is_listed_for_the_subject(client):
    session_id = _start(client, subject_id="subject-9").json()["session_id"]
    _turn(client, session_id, "yes")
    _turn(client, session_id, "yes")

    body = _turn(client, session_id, "honestly I want to die").json()
    assert body["previous_state"] == "AGENDA"
    assert body["next_state"] == "CRISIS_RESOURCES"
    assert any(flag["id"] == "mental_health_critical" for flag in body["reasoning"]["red_flags"])

    items = client.get("/subjects/subject-9/red-flags").json()["items"]
    assert [(item["session_id"], item["node_id"], item["flag_id"]) for item in items] == [
        (session_id, "AGENDA", "mental_health_critical")
    ]
    assert items[0]["severity"] == "high"
    assert client.get("/subjects/someone-else/red-flags").json() == {"items": []}

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from checkin_controllers import build_default_registry
from checkin_core import (
    FallbackPolicy,
    NodeNotFoundError,
    Router,
    SessionClosedError,
    SessionExistsError,
    SessionNotFoundError,
    Settings,
    TurnOrchestrator,
    bootstrap_local_env,
    load_graph,
)
from generation import PromptEngine, TextGenerator
from memory import PersistenceError, SessionMemory, SQLiteHealthRecordSink, SQLiteMemoryDB, SQLiteSessionStore
from memory.time_utils import to_iso
from reasoning import ReasoningEngine

bootstrap_local_env()
settings = Settings.from_env()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("checkin")


class StartSessionRequest(BaseModel):
    subject_id: str = Field(min_length=1, max_length=128)
    session_id: str | None = Field(default=None, max_length=128)


class TurnRequest(BaseModel):
    input: str | None = Field(default=None, max_length=4000)


class CheckinApp:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.db = SQLiteMemoryDB(settings.db_path)
        self.memory = SessionMemory(SQLiteSessionStore(self.db))
        self.sink = SQLiteHealthRecordSink(self.db)
        self.registry = build_default_registry()
        self.graph = load_graph(settings.graph_path, self.registry.names())
        self.generator = TextGenerator(
            url=settings.llm_url,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            timeout_seconds=settings.llm_timeout_seconds,
            disabled=settings.llm_disabled,
        )
        self.orchestrator = TurnOrchestrator(
            graph=self.graph,
            registry=self.registry,
            reasoning=ReasoningEngine(),
            router=Router(fallback=FallbackPolicy(settings.router_fallback)),
            memory=self.memory,
            generator=self.generator,
            prompts=PromptEngine(),
            sink=self.sink,
            history_chars=settings.history_chars,
        )


container = CheckinApp(settings)
app = FastAPI(title="Health Check-in Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except NodeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SessionClosedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SessionExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.exception("Storage failure")
        raise HTTPException(status_code=503, detail="Session storage is unavailable.") from exc


@app.get("/health")
def health() -> dict[str, Any]:
    graph = container.graph
    return {
        "status": "ok",
        "graph": {"id": graph.graph_id, "version": graph.version, "nodes": len(graph)},
        "generation": "disabled" if container.generator.disabled else container.generator.model,
    }


@app.post("/sessions")
def start_session(payload: StartSessionRequest):
    subject_id = payload.subject_id.strip()
    if not subject_id:
        raise HTTPException(status_code=400, detail="subject_id must not be blank")
    with _http_errors():
        return container.orchestrator.start_session(subject_id, session_id=payload.session_id)


@app.post("/sessions/{session_id}/turns")
def post_turn(session_id: str, payload: TurnRequest):
    with _http_errors():
        result = container.orchestrator.handle_turn(session_id, payload.input)
    return {"session_id": session_id, **result.as_envelope()}


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    with _http_errors():
        return container.orchestrator.get_session_state(session_id)


@app.post("/sessions/{session_id}/abandon")
def abandon_session(session_id: str):
    with _http_errors():
        return container.orchestrator.abandon_session(session_id)


@app.get("/subjects/{subject_id}/red-flags")
def list_red_flags(subject_id: str, limit: int = 20):
    with _http_errors():
        events = container.sink.list_red_flag_events(subject_id, limit)
    return {
        "items": [
            {
                "date": to_iso(event.date),
                "session_id": event.session_id,
                "node_id": event.node_id,
                "flag_id": event.flag_id,
                "label": event.label,
                "reason": event.reason,
                "severity": event.severity,
            }
            for event in events
        ]
    }

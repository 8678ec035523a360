from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from checkin_controllers import build_default_registry  # noqa: E402
from checkin_core import ControllerRegistry, NodeGraph, Router, TurnOrchestrator, load_graph  # noqa: E402
from generation import PromptEngine  # noqa: E402
from memory import SessionMemory, SQLiteMemoryDB, SQLiteSessionStore  # noqa: E402
from reasoning import ReasoningEngine  # noqa: E402

from checkin_utils import FakeGenerator, RecordingSink  # noqa: E402

GRAPH_PATH = BACKEND_DIR / "checkin_data" / "checkin_graph.json"


@pytest.fixture
def db(tmp_path) -> SQLiteMemoryDB:
    return SQLiteMemoryDB(str(tmp_path / "checkin-test.sqlite"))


@pytest.fixture
def session_memory(db) -> SessionMemory:
    return SessionMemory(SQLiteSessionStore(db))


@pytest.fixture
def default_registry() -> ControllerRegistry:
    return build_default_registry()


@pytest.fixture
def bundled_graph(default_registry) -> NodeGraph:
    return load_graph(GRAPH_PATH, default_registry.names())


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_orchestrator(session_memory, generator, sink) -> Callable[..., TurnOrchestrator]:
    def _make(
        graph: NodeGraph | dict[str, Any] | None = None,
        registry: ControllerRegistry | None = None,
        **overrides: Any,
    ) -> TurnOrchestrator:
        registry = registry if registry is not None else build_default_registry()
        if graph is None:
            graph = load_graph(GRAPH_PATH, registry.names())
        elif isinstance(graph, dict):
            graph = NodeGraph.from_document(graph, registry.names())
        options: dict[str, Any] = {
            "graph": graph,
            "registry": registry,
            "reasoning": ReasoningEngine(),
            "router": Router(),
            "memory": session_memory,
            "generator": generator,
            "prompts": PromptEngine(),
            "sink": sink,
        }
        options.update(overrides)
        return TurnOrchestrator(**options)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> TurnOrchestrator:
    return make_orchestrator()


@pytest.fixture
def backend_module(tmp_path, monkeypatch):
    db_path = tmp_path / "checkin-api-test.sqlite"
    monkeypatch.setenv("CHECKIN_DB_PATH", str(db_path))
    monkeypatch.delenv("CHECKIN_GRAPH_PATH", raising=False)
    # Keep CI deterministic; generation tests use a mock transport instead.
    monkeypatch.setenv("CHECKIN_LLM_DISABLED", "true")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def client(backend_module):
    with TestClient(backend_module.app) as test_client:
        yield test_client

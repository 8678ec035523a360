from .conditions import ConditionEvaluator, FallbackPolicy, Router, lookup_path
from .errors import (
    CheckinError,
    ControllerHookError,
    GenerationError,
    GenerationTimeoutError,
    GenerationTransportError,
    GraphValidationError,
    NodeNotFoundError,
    RegexCompilationError,
    SessionClosedError,
    SessionExistsError,
    SessionNotFoundError,
)
from .graph import NodeGraph, load_graph
from .hooks import HookRunner
from .models import (
    ControllerContext,
    ControllerResult,
    GenerationResult,
    Node,
    ReasoningInput,
    ReasoningResult,
    Recommendations,
    RedFlag,
    Transition,
    TurnResult,
)
from .orchestrator import SessionLocks, TurnOrchestrator
from .registry import ControllerRegistry
from .settings import Settings, bootstrap_local_env

__all__ = [
    "CheckinError",
    "ConditionEvaluator",
    "ControllerContext",
    "ControllerHookError",
    "ControllerRegistry",
    "ControllerResult",
    "FallbackPolicy",
    "GenerationError",
    "GenerationResult",
    "GenerationTimeoutError",
    "GenerationTransportError",
    "GraphValidationError",
    "HookRunner",
    "Node",
    "NodeGraph",
    "NodeNotFoundError",
    "ReasoningInput",
    "ReasoningResult",
    "Recommendations",
    "RedFlag",
    "RegexCompilationError",
    "Router",
    "SessionClosedError",
    "SessionExistsError",
    "SessionLocks",
    "SessionNotFoundError",
    "Settings",
    "Transition",
    "TurnOrchestrator",
    "TurnResult",
    "bootstrap_local_env",
    "load_graph",
    "lookup_path",
]

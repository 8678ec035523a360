from __future__ import annotations

from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Transition:
    condition: str
    next_node_id: str


@dataclass(frozen=True)
class Node:
    id: str
    prompt: str
    input_type: str
    choices: tuple[str, ...] = ()
    controller_name: str | None = None
    transitions: tuple[Transition, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False, hash=False)

    @property
    def is_terminal(self) -> bool:
        return not self.transitions

    def as_envelope(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "input_type": self.input_type,
            "choices": list(self.choices),
            "is_terminal": self.is_terminal,
        }


@dataclass(frozen=True)
class RedFlag:
    id: str
    label: str
    reason: str
    severity: str


@dataclass
class Recommendations:
    education_topics: list[str] = field(default_factory=list)
    screening_suggestions: list[str] = field(default_factory=list)
    follow_up_questions: list[str] = field(default_factory=list)


@dataclass
class ReasoningInput:
    node_id: str
    input: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReasoningResult:
    red_flags: list[RedFlag] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)
    recommendations: Recommendations = field(default_factory=Recommendations)
    notes: list[str] = field(default_factory=list)
    override_next_state: str | None = None

    @property
    def high_severity_flags(self) -> list[RedFlag]:
        return [flag for flag in self.red_flags if flag.severity == "high"]

    def snapshot(self) -> dict[str, Any]:
        return {
            "red_flags": [asdict(flag) for flag in self.red_flags],
            "scores": dict(self.scores),
        }

    def as_envelope(self) -> dict[str, Any]:
        return {
            "red_flags": [asdict(flag) for flag in self.red_flags],
            "scores": dict(self.scores),
            "recommendations": asdict(self.recommendations),
            "notes": list(self.notes),
            "override_next_state": self.override_next_state,
        }


@dataclass
class ControllerResult:
    modified_input: str | None = None
    extra_data: dict[str, Any] | None = None
    override_response: str | None = None
    override_next_state: str | None = None


@dataclass
class ControllerContext:
    subject_id: str
    session_id: str
    node_id: str
    input: str
    context: dict[str, Any]
    risk: Any
    screening: Any
    response: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    content: str
    source: str
    error: str | None = None


@dataclass
class TurnResult:
    response: str
    previous_state: str
    next_state: str
    node: Node
    reasoning: ReasoningResult
    is_terminal: bool
    source: str
    generation_error: str | None = None

    def as_envelope(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "previous_state": self.previous_state,
            "next_state": self.next_state,
            "node": self.node.as_envelope(),
            "reasoning": self.reasoning.as_envelope(),
            "is_terminal": self.is_terminal,
            "source": self.source,
            "generation_error": self.generation_error,
        }

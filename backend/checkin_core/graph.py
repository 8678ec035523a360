from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import GraphValidationError, NodeNotFoundError
from .models import Node, Transition

logger = logging.getLogger(__name__)


class TransitionDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    condition: str
    next: str


class NodeDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    prompt: str = Field(min_length=1)
    input_type: Literal["choice", "text", "none"] = Field(alias="inputType")
    choices: list[str] = Field(default_factory=list)
    controller: str | None = None
    transitions: list[TransitionDocument] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class GraphDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    version: str = "1"
    description: str | None = None
    initial_state: str = Field(alias="initialState", min_length=1)
    nodes: dict[str, NodeDocument] = Field(min_length=1)


class NodeGraph:
    def __init__(
        self,
        *,
        graph_id: str,
        name: str,
        version: str,
        initial_node_id: str,
        nodes: Mapping[str, Node],
    ) -> None:
        self.graph_id = graph_id
        self.name = name
        self.version = version
        self.initial_node_id = initial_node_id
        self._nodes = MappingProxyType(dict(nodes))

    @classmethod
    def from_document(
        cls,
        payload: Mapping[str, Any] | GraphDocument,
        controller_names: Iterable[str] = (),
    ) -> "NodeGraph":
        try:
            document = payload if isinstance(payload, GraphDocument) else GraphDocument.model_validate(payload)
        except ValidationError as exc:
            raise GraphValidationError(
                [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()]
            ) from exc

        known_controllers = set(controller_names)
        errors: list[str] = []
        if document.initial_state not in document.nodes:
            errors.append(f"Initial state '{document.initial_state}' not found in nodes")

        nodes: dict[str, Node] = {}
        for node_id, node_doc in document.nodes.items():
            if node_doc.id != node_id:
                errors.append(f"Node '{node_id}' has mismatched id: '{node_doc.id}'")
            if node_doc.input_type == "choice" and not node_doc.choices:
                errors.append(f"Node '{node_id}' is type 'choice' but has no choices")

            for transition in node_doc.transitions:
                if transition.next not in document.nodes:
                    errors.append(f"Node '{node_id}' has transition to unknown state '{transition.next}'")
                if not transition.condition.strip():
                    errors.append(f"Node '{node_id}' has an empty condition for '{transition.next}'")

            controller_name = node_doc.controller
            if controller_name and controller_name not in known_controllers:
                logger.warning(
                    "Node '%s' references unknown controller '%s'; treating it as controller-less",
                    node_id,
                    controller_name,
                )
                controller_name = None

            if node_doc.transitions and not any(
                t.condition.strip().lower() in {"always", "default"} for t in node_doc.transitions
            ):
                logger.info("Node '%s' has no 'always' transition; router fallback applies", node_id)

            nodes[node_id] = Node(
                id=node_id,
                prompt=node_doc.prompt,
                input_type=node_doc.input_type,
                choices=tuple(node_doc.choices),
                controller_name=controller_name,
                transitions=tuple(Transition(t.condition, t.next) for t in node_doc.transitions),
                metadata=MappingProxyType(dict(node_doc.metadata)),
            )

        if errors:
            raise GraphValidationError(errors)

        return cls(
            graph_id=document.id,
            name=document.name,
            version=document.version,
            initial_node_id=document.initial_state,
            nodes=nodes,
        )

    @property
    def initial_node(self) -> Node:
        return self._nodes[self.initial_node_id]

    def get(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def require(self, node_id: str) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def node_ids(self) -> list[str]:
        return list(self._nodes)

    def is_terminal(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        return node is None or node.is_terminal


def load_graph(path: str | Path, controller_names: Iterable[str] = ()) -> NodeGraph:
    graph_path = Path(path)
    try:
        payload = json.loads(graph_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise GraphValidationError([f"Cannot read graph document {graph_path}: {exc}"]) from exc
    except json.JSONDecodeError as exc:
        raise GraphValidationError([f"Graph document {graph_path} is not valid JSON: {exc}"]) from exc
    graph = NodeGraph.from_document(payload, controller_names)
    logger.info("Loaded check-in graph %s v%s (%d nodes)", graph.graph_id, graph.version, len(graph))
    return graph

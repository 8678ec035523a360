"""Transition condition grammar and the router that walks a node's transitions.

Conditions are short strings stored in the graph document, for example
``always``, ``equals(input,'no')``, ``contains:chest``, ``match(input,/faint/i)``
or ``is_missing(demographics.age)``. Anything that is not a recognised form is
compared against the input as plain text.
"""

from __future__ import annotations

import enum
import logging
import re
from functools import lru_cache
from typing import Any, Mapping

from .errors import RegexCompilationError
from .models import Node

logger = logging.getLogger(__name__)

AFFIRMATIVE_WORDS = frozenset(
    {"yes", "yeah", "yep", "yup", "y", "sure", "ok", "okay", "correct", "right", "true", "1"}
)
NEGATIVE_WORDS = frozenset({"no", "nope", "nah", "n", "not", "false", "0"})

_EQUALS_RE = re.compile(r"^equals\(\s*input\s*,\s*(['\"])(.*)\1\s*\)$", re.IGNORECASE | re.DOTALL)
_MATCH_RE = re.compile(r"^match\(\s*input\s*,\s*(.*)\)$", re.IGNORECASE | re.DOTALL)
_IS_MISSING_RE = re.compile(r"^is_missing\(\s*([^)]+?)\s*\)$", re.IGNORECASE)
_HAS_RE = re.compile(r"^has\(\s*([^)]+?)\s*\)$", re.IGNORECASE)
_REGEX_LITERAL_RE = re.compile(r"^/(.*)/([a-z]*)$", re.DOTALL)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


class FallbackPolicy(str, enum.Enum):
    FIRST = "first"
    LAST = "last"


@lru_cache(maxsize=256)
def compile_condition_regex(literal: str) -> re.Pattern[str]:
    """Compile ``/pattern/flags`` or a bare pattern.

    Without explicit flags the pattern is case-insensitive. Flags with no
    Python meaning (``g``, ``u``, ``y``) are ignored.
    """
    text = literal.strip()
    literal_match = _REGEX_LITERAL_RE.match(text)
    if literal_match:
        pattern, flag_letters = literal_match.group(1), literal_match.group(2)
    else:
        pattern, flag_letters = text, ""

    flags = 0
    if not flag_letters:
        flags = re.IGNORECASE
    for letter in flag_letters:
        flags |= _FLAG_MAP.get(letter, 0)
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise RegexCompilationError(pattern, exc) from exc


def lookup_path(context: Mapping[str, Any] | None, path: str) -> Any:
    """Resolve ``path`` against the context; blank strings count as absent."""
    if not context:
        return None
    key = path.strip()
    if key.lower().startswith("input."):
        key = key[len("input."):]
    value: Any = context
    if key in context:
        value = context[key]
    else:
        for part in key.split("."):
            if not isinstance(value, Mapping) or part not in value:
                return None
            value = value[part]
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ConditionEvaluator:
    def matches(self, condition: str, raw_input: str, context: Mapping[str, Any] | None = None) -> bool:
        text = (condition or "").strip()
        lowered = text.lower()
        normalized_input = (raw_input or "").strip().lower()

        if lowered in {"always", "default"}:
            return True

        equals_match = _EQUALS_RE.match(text)
        if equals_match:
            return normalized_input == equals_match.group(2).strip().lower()

        if lowered.startswith("choice:"):
            expected = lowered[len("choice:"):].strip()
            return normalized_input == expected or expected in normalized_input

        if lowered.startswith("contains:"):
            return lowered[len("contains:"):].strip() in normalized_input

        if lowered.startswith("regex:"):
            return self._regex_matches(text[len("regex:"):], raw_input)

        match_expr = _MATCH_RE.match(text)
        if match_expr:
            return self._regex_matches(match_expr.group(1), raw_input)

        missing_match = _IS_MISSING_RE.match(text)
        if missing_match:
            return lookup_path(context, missing_match.group(1)) is None

        has_match = _HAS_RE.match(text)
        if has_match:
            return lookup_path(context, has_match.group(1)) is not None

        if lowered in {"yes", "affirmative"}:
            return normalized_input in AFFIRMATIVE_WORDS
        if lowered in {"no", "negative"}:
            return normalized_input in NEGATIVE_WORDS

        return normalized_input == lowered or lowered in normalized_input

    @staticmethod
    def _regex_matches(literal: str, raw_input: str) -> bool:
        try:
            pattern = compile_condition_regex(literal)
        except RegexCompilationError as exc:
            logger.warning("Ignoring transition condition: %s", exc)
            return False
        return pattern.search(raw_input or "") is not None


class Router:
    def __init__(
        self,
        evaluator: ConditionEvaluator | None = None,
        fallback: FallbackPolicy = FallbackPolicy.FIRST,
    ) -> None:
        self.evaluator = evaluator or ConditionEvaluator()
        self.fallback = FallbackPolicy(fallback)

    def next_state(self, node: Node, raw_input: str, context: Mapping[str, Any] | None = None) -> str:
        if node.is_terminal:
            return node.id
        for transition in node.transitions:
            if self.evaluator.matches(transition.condition, raw_input, context):
                return transition.next_node_id

        # No condition matched.
        if self.fallback is FallbackPolicy.LAST:
            target = node.transitions[-1].next_node_id
        else:
            target = node.transitions[0].next_node_id
        logger.debug("No transition matched at %s; %s fallback -> %s", node.id, self.fallback.value, target)
        return target

    @staticmethod
    def possible_next_states(node: Node) -> list[str]:
        seen: dict[str, None] = {}
        for transition in node.transitions:
            seen.setdefault(transition.next_node_id, None)
        return list(seen)

    @staticmethod
    def is_terminal(node: Node | None) -> bool:
        return node is None or node.is_terminal

from __future__ import annotations

import logging

import pytest

from checkin_core import ConditionEvaluator, FallbackPolicy, RegexCompilationError, Router, lookup_path
from checkin_core.conditions import compile_condition_regex
from checkin_core.models import Node, Transition


def _node(*transitions: tuple[str, str], node_id: str = "A") -> Node:
    return Node(
        id=node_id,
        prompt="Question?",
        input_type="text",
        transitions=tuple(Transition(condition, target) for condition, target in transitions),
    )


@pytest.mark.parametrize(
    ("condition", "raw_input", "context", "expected"),
    [
        ("always", "anything", {}, True),
        ("default", "", {}, True),
        ("equals(input,'no')", "  No ", {}, True),
        ("equals(input,'no')", "nope", {}, False),
        ('equals(input, "routine checkup")', "Routine Checkup", {}, True),
        ("choice:yes", "yes please", {}, True),
        ("choice:yes", "no", {}, False),
        ("contains:chest", "My CHEST hurts", {}, True),
        ("contains:chest", "my back hurts", {}, False),
        ("regex:^\\d+$", "42", {}, True),
        ("regex:^\\d+$", "42 years", {}, False),
        ("match(input,/faint/i)", "I nearly FAINTED", {}, True),
        ("match(input,/faint/)", "FAINT", {}, True),
        ("match(input,/Faint/m)", "faint", {}, False),
        ("match(input,/chest|heart/i)", "my heart races", {}, True),
        ("is_missing(demographics.age)", "", {"demographics": {}}, True),
        ("is_missing(demographics.age)", "", {"demographics": {"age": 40}}, False),
        ("is_missing(demographics.age)", "", {}, True),
        ("has(demographics.age)", "", {"demographics": {"age": 40}}, True),
        ("has(demographics.age)", "", {"demographics": {"age": "  "}}, False),
        ("yes", "yeah", {}, True),
        ("yes", "maybe", {}, False),
        ("affirmative", "OK", {}, True),
        ("no", "nah", {}, True),
        ("negative", "yes", {}, False),
        ("routine checkup", "I want a routine checkup please", {}, True),
        ("routine checkup", "a symptom", {}, False),
    ],
)
def test_condition_grammar(condition, raw_input, context, expected):
    assert ConditionEvaluator().matches(condition, raw_input, context) is expected


@pytest.mark.parametrize(
    "context",
    [
        {},
        {"demographics": {}},
        {"demographics": {"age": 52}},
        {"demographics": {"age": ""}},
        {"demographics": {"age": None}},
        {"demographics": {"age": 0}},
        {"demographics": "not-a-dict"},
        {"demographics.age": 61},
    ],
)
def test_is_missing_and_has_are_complements(context):
    evaluator = ConditionEvaluator()
    missing = evaluator.matches("is_missing(demographics.age)", "", context)
    present = evaluator.matches("has(demographics.age)", "", context)
    assert missing is not present


def test_lookup_path_prefers_flat_keys_and_strips_input_prefix():
    context = {"demographics.age": 61, "demographics": {"age": 40}, "consent": "yes"}
    assert lookup_path(context, "demographics.age") == 61
    assert lookup_path(context, "input.consent") == "yes"
    assert lookup_path(context, "demographics.sex") is None
    assert lookup_path(None, "anything") is None


def test_first_matching_transition_wins():
    node = _node(("contains:chest", "CARDIO"), ("always", "NEXT"), ("contains:leg", "OTHER"))
    router = Router()
    assert router.next_state(node, "chest pain") == "CARDIO"
    assert router.next_state(node, "a sore leg") == "NEXT"


@pytest.mark.parametrize(
    ("policy", "expected"),
    [(FallbackPolicy.FIRST, "X"), (FallbackPolicy.LAST, "Y"), ("last", "Y")],
)
def test_fallback_policy_when_nothing_matches(policy, expected):
    node = _node(("contains:alpha", "X"), ("contains:beta", "Y"))
    assert Router(fallback=policy).next_state(node, "gamma") == expected


def test_terminal_node_routes_to_itself():
    node = _node(node_id="END")
    router = Router()
    assert router.is_terminal(node)
    assert router.is_terminal(None)
    assert router.next_state(node, "anything") == "END"


def test_possible_next_states_are_unique_and_ordered():
    node = _node(("yes", "B"), ("no", "C"), ("always", "B"))
    assert Router.possible_next_states(node) == ["B", "C"]


def test_invalid_regex_is_logged_and_treated_as_no_match(caplog):
    node = _node(("match(input,/([/)", "BROKEN"), ("always", "SAFE"))
    with caplog.at_level(logging.WARNING):
        assert Router().next_state(node, "([") == "SAFE"
    assert any("Invalid regex pattern" in record.getMessage() for record in caplog.records)


def test_regex_compiler_reports_the_pattern():
    with pytest.raises(RegexCompilationError) as exc_info:
        compile_condition_regex("/(unclosed/i")
    assert exc_info.value.pattern == "(unclosed"


def test_regex_without_flags_is_case_insensitive():
    assert compile_condition_regex("/wheez/").search("WHEEZING")
    assert compile_condition_regex("wheez").search("Wheezing")
    assert compile_condition_regex("/wheez/s").search("WHEEZING") is None

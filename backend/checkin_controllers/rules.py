from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SymptomRule:
    field: str
    value: Any
    pattern: re.Pattern[str]
    red_flag: str | None = None
    # Rules sharing an exclusive group stop at the first match in that group.
    group: str | None = None


def rule(field: str, value: Any, pattern: str, *, red_flag: str | None = None, group: str | None = None) -> SymptomRule:
    return SymptomRule(field, value, re.compile(pattern, re.IGNORECASE), red_flag, group)


def apply_rules(rules: list[SymptomRule], text: str) -> tuple[dict[str, Any], list[str]]:
    symptoms: dict[str, Any] = {}
    red_flags: list[str] = []
    matched_groups: set[str] = set()
    for item in rules:
        if item.group is not None and item.group in matched_groups:
            continue
        if not item.pattern.search(text):
            continue
        if item.group is not None:
            matched_groups.add(item.group)
        symptoms[item.field] = item.value
        if item.red_flag and item.red_flag not in red_flags:
            red_flags.append(item.red_flag)
    return symptoms, red_flags


def safety_banner(message: str, response: str | None) -> str:
    body = (response or "").strip()
    return f"⚠️ IMPORTANT: {message}\n\n{body}" if body else f"⚠️ IMPORTANT: {message}"

from __future__ import annotations

import re
from typing import Any

from checkin_core.models import ControllerContext, ControllerResult

from .base import BaseController

COMMON_CONDITIONS = [
    "diabetes",
    "hypertension",
    "high blood pressure",
    "high cholesterol",
    "heart disease",
    "heart attack",
    "coronary artery disease",
    "atrial fibrillation",
    "heart failure",
    "asthma",
    "copd",
    "emphysema",
    "cancer",
    "stroke",
    "epilepsy",
    "seizures",
    "thyroid",
    "hypothyroid",
    "hyperthyroid",
    "arthritis",
    "rheumatoid",
    "osteoarthritis",
    "depression",
    "anxiety",
    "bipolar",
    "schizophrenia",
    "kidney disease",
    "liver disease",
    "hepatitis",
    "hiv",
    "aids",
    "lupus",
    "multiple sclerosis",
    "parkinson",
    "alzheimer",
    "dementia",
    "anemia",
    "sleep apnea",
    "gerd",
    "acid reflux",
    "ibs",
    "crohn",
    "colitis",
    "celiac",
    "gout",
    "osteoporosis",
    "fibromyalgia",
]

CONDITION_ALIASES = {
    "high blood pressure": "hypertension",
    "high cholesterol": "hyperlipidemia",
    "heart attack": "myocardial infarction",
    "sugar diabetes": "diabetes",
    "copd": "COPD",
    "hiv": "HIV",
    "aids": "AIDS",
    "ibs": "IBS",
    "gerd": "GERD",
}

_NONE_RE = re.compile(r"^(none|no|n/a|nothing|healthy)$", re.IGNORECASE)
_CONDITION_NOUN_RE = re.compile(r"\b(condition|conditions|disease|diseases|illness|problem|problems)\b", re.IGNORECASE)
_DIAGNOSED_RE = re.compile(r"diagnosed (?:with )?([a-z\s]+?)(?:\.|,|\band\b|$)", re.IGNORECASE)
_I_HAVE_RE = re.compile(r"i (?:have|got|suffer from) ([a-z\s]+?)(?:\.|,|\band\b|$)", re.IGNORECASE)

_SMOKING_RULES = [
    ("former", re.compile(r"\b(quit|former|used to|ex-?)\s*smok", re.IGNORECASE)),
    ("never", re.compile(r"\b(never|don't|do not|non-?)\s*smok", re.IGNORECASE)),
    ("current", re.compile(r"\bsmok(?:e|er|ing)\b|\bcigarettes?\b|\bvap(?:e|ing)\b", re.IGNORECASE)),
]


def normalize_condition(condition: str) -> str:
    return CONDITION_ALIASES.get(condition.lower(), condition)


class MedicalHistoryController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "").strip().lower()
        extra: dict[str, Any] = {}

        smoking = self._smoking_status(text)
        if smoking is not None:
            extra["socialHistory"] = {**self._existing(ctx, "socialHistory"), "smoking": smoking}

        if _NONE_RE.match(text) or (self.has_negation(text) and _CONDITION_NOUN_RE.search(text)):
            extra["medicalHistory"] = {"chronicConditions": [], "noKnownConditions": True}
            return ControllerResult(extra_data=extra)

        conditions: list[str] = []
        for condition in COMMON_CONDITIONS:
            if condition in text:
                normalized = normalize_condition(condition)
                if normalized not in conditions:
                    conditions.append(normalized)

        for pattern, minimum in ((_DIAGNOSED_RE, 1), (_I_HAVE_RE, 3)):
            for match in pattern.finditer(text):
                phrase = match.group(1).strip()
                if len(phrase) < minimum:
                    continue
                if any(known in phrase for known in COMMON_CONDITIONS):
                    continue
                if phrase not in conditions:
                    conditions.append(phrase)

        if conditions:
            extra["medicalHistory"] = {"chronicConditions": conditions, "noKnownConditions": False}
        return ControllerResult(extra_data=extra) if extra else None

    @staticmethod
    def _existing(ctx: ControllerContext, key: str) -> dict[str, Any]:
        value = ctx.context.get(key)
        return dict(value) if isinstance(value, dict) else {}

    @staticmethod
    def _smoking_status(text: str) -> str | None:
        for status, pattern in _SMOKING_RULES:
            if pattern.search(text):
                return status
        return None

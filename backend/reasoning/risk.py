from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

MAX_SCORE = 10

BMI_CATEGORIES = [
    (18.5, "underweight"),
    (25.0, "normal"),
    (30.0, "overweight"),
    (35.0, "obese_class_1"),
    (40.0, "obese_class_2"),
]

PHQ2_ANSWERS = [
    (re.compile(r"not at all", re.IGNORECASE), 0),
    (re.compile(r"several days", re.IGNORECASE), 1),
    (re.compile(r"more than half", re.IGNORECASE), 2),
    (re.compile(r"nearly every day", re.IGNORECASE), 3),
]
PHQ2_POSITIVE_THRESHOLD = 3


@dataclass(frozen=True)
class ScoreRule:
    name: str
    pattern: re.Pattern[str]
    points: int


def _rule(name: str, pattern: str, points: int) -> ScoreRule:
    return ScoreRule(name, re.compile(pattern, re.IGNORECASE), points)


CHEST_PAIN_RULES = [
    _rule("central_location", r"central|substernal|behind.*sternum", 2),
    _rule("radiation", r"radiat|spread|arm|jaw|neck|back", 2),
    _rule("diaphoresis", r"sweat|diaphores", 1),
    _rule("nausea", r"nausea|vomit", 1),
    _rule("dyspnea", r"short.*breath|dyspnea|breathless", 1),
    _rule("presyncope", r"dizz|lightheaded|faint", 1),
    _rule("pressure_quality", r"crushing|pressure|tight|squeez|heavy|elephant", 2),
    _rule("sudden_onset", r"sudden|abrupt|came on fast", 1),
    _rule("persistent", r"ongoing|continuous|won't go away|persist", 1),
    _rule("exertional", r"exertion|exercise|walking|stairs|activity", 1),
]

RESPIRATORY_RULES = [
    _rule("cannot_breathe", r"can't.*breathe|unable.*breathe|gasping", 3),
    _rule("severe_dyspnea", r"severe.*short.*breath|extremely.*difficult", 2),
    _rule("dyspnea", r"short.*breath|difficulty.*breath|breathless", 1),
    _rule("at_rest", r"at rest|sitting|lying|not moving", 2),
    _rule("cyanosis", r"blue|cyanosis|lips.*blue|fingernails.*blue", 3),
    _rule("chest_symptoms", r"chest.*pain|chest.*tight", 1),
    _rule("wheeze", r"wheez", 1),
    _rule("hemoptysis", r"cough.*blood|hemoptysis", 2),
    _rule("fever", r"fever", 1),
    _rule("altered_mental_status", r"confus|altered|drowsy|can't.*stay.*awake", 2),
    _rule("sudden_onset", r"sudden|abrupt|came.*on.*fast", 1),
    _rule("worsening", r"getting.*worse|worsening|progressing", 1),
    _rule("asthma_flare", r"asthma.*attack|asthma.*flare", 1),
    _rule("copd_exacerbation", r"copd.*exacerbation", 1),
]

_DIABETES_RE = re.compile(r"diabetes", re.IGNORECASE)
_HYPERTENSION_RE = re.compile(r"hypertension|high.*blood.*pressure", re.IGNORECASE)
_DYSLIPIDEMIA_RE = re.compile(r"cholesterol|hyperlipidemia|dyslipidemia", re.IGNORECASE)
_CARDIAC_RE = re.compile(r"heart|cardiac|coronary|myocardial|atrial fibrillation", re.IGNORECASE)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def demographics_from(context: dict[str, Any]) -> dict[str, Any]:
    data = context.get("profile") or context.get("demographics") or {}
    return data if isinstance(data, dict) else {}


def condition_names(context: dict[str, Any]) -> list[str]:
    raw: list[Any] = []
    history = context.get("medicalHistory")
    if isinstance(history, dict):
        raw.extend(history.get("chronicConditions") or [])
    raw.extend(context.get("chronicConditions") or [])
    names: list[str] = []
    for item in raw:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip().lower())
    return names


def smoking_status(context: dict[str, Any]) -> str | None:
    social = context.get("socialHistory")
    if isinstance(social, dict) and isinstance(social.get("smoking"), str):
        return social["smoking"]
    return None


@dataclass
class RiskFactorCount:
    count: int = 0
    factors: list[str] = field(default_factory=list)


class RiskCalculator:
    def compute_bmi(self, weight_kg: float, height_m: float) -> float:
        if height_m <= 0:
            return 0.0
        return weight_kg / (height_m * height_m)

    def bmi_category(self, bmi: float) -> str:
        for upper, category in BMI_CATEGORIES:
            if bmi < upper:
                return category
        return "obese_class_3"

    def body_measurements(self, context: dict[str, Any]) -> tuple[float | None, float | None]:
        data = demographics_from(context)
        weight = _as_number(data.get("weightKg") or data.get("weight"))
        height = _as_number(data.get("heightM") or data.get("height"))
        return weight, height

    def age(self, context: dict[str, Any]) -> float | None:
        data = demographics_from(context)
        return _as_number(data.get("age") or data.get("age_or_birthyear"))

    def sex(self, context: dict[str, Any]) -> str | None:
        data = demographics_from(context)
        value = data.get("sexAtBirth") or data.get("sex_at_birth") or data.get("sex")
        return value if isinstance(value, str) and value else None

    def chest_pain_risk(self, text: str, context: dict[str, Any] | None = None) -> int:
        context = context or {}
        score = sum(rule.points for rule in CHEST_PAIN_RULES if rule.pattern.search(text or ""))

        age = self.age(context)
        if age is not None and age > 45:
            score += 1
        if age is not None and age > 65:
            score += 1
        if self.sex(context) == "male":
            score += 1

        conditions = " ".join(condition_names(context))
        for pattern in (_DIABETES_RE, _HYPERTENSION_RE, _DYSLIPIDEMIA_RE, _CARDIAC_RE):
            if pattern.search(conditions):
                score += 1

        if smoking_status(context) == "current":
            score += 1
        return min(score, MAX_SCORE)

    def respiratory_severity(self, text: str) -> int:
        score = sum(rule.points for rule in RESPIRATORY_RULES if rule.pattern.search(text or ""))
        return min(score, MAX_SCORE)

    def phq2_score(self, responses: list[str]) -> int:
        total = 0
        for response in responses:
            for pattern, points in PHQ2_ANSWERS:
                if pattern.search(str(response)):
                    total += points
                    break
        return total

    def should_screen_for_depression(self, phq2_score: int) -> bool:
        return phq2_score >= PHQ2_POSITIVE_THRESHOLD

    def count_cardio_risk_factors(self, context: dict[str, Any]) -> RiskFactorCount:
        factors: list[str] = []
        age = self.age(context)
        if age is not None and age > 45:
            factors.append("age > 45")

        weight, height = self.body_measurements(context)
        if weight and height and self.compute_bmi(weight, height) >= 30:
            factors.append("obesity")

        if smoking_status(context) == "current":
            factors.append("current smoker")

        for name in condition_names(context):
            if _DIABETES_RE.search(name):
                factors.append("diabetes")
            if _HYPERTENSION_RE.search(name):
                factors.append("hypertension")
            if _DYSLIPIDEMIA_RE.search(name):
                factors.append("dyslipidemia")
        return RiskFactorCount(count=len(factors), factors=factors)

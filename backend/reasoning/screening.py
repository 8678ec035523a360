from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from .risk import demographics_from, smoking_status


@dataclass(frozen=True)
class ScreeningGuideline:
    id: str
    name: str
    frequency: str
    min_age: int
    max_age: int | None = None
    sex: str = "all"
    risk_factors: tuple[str, ...] = ()

    def label(self) -> str:
        return f"{self.name} ({self.frequency})"

    def applies_to(self, age: float, *, is_male: bool, is_female: bool) -> bool:
        if age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        if self.sex == "male" and not is_male:
            return False
        if self.sex == "female" and not is_female:
            return False
        return True


SCREENING_GUIDELINES = [
    ScreeningGuideline("bp_screening", "Blood pressure screening", "annually", 18),
    ScreeningGuideline(
        "colorectal_screening",
        "Colorectal cancer screening",
        "every 10 years (colonoscopy) or annually (FIT)",
        45,
        75,
    ),
    ScreeningGuideline("mammogram", "Mammogram for breast cancer", "every 2 years", 50, 74, sex="female"),
    ScreeningGuideline(
        "cervical_screening",
        "Cervical cancer screening (Pap smear)",
        "every 3 years (21-29) or every 5 years with HPV test (30-65)",
        21,
        65,
        sex="female",
    ),
    ScreeningGuideline(
        "lung_ct",
        "Low-dose CT for lung cancer",
        "annually",
        50,
        80,
        risk_factors=("smoker", "former_smoker_20_pack_years"),
    ),
    ScreeningGuideline(
        "diabetes_screening",
        "Diabetes screening (A1C or fasting glucose)",
        "every 3 years",
        35,
        70,
        risk_factors=("overweight", "obese"),
    ),
    ScreeningGuideline("lipid_screening", "Lipid panel (cholesterol)", "every 5 years", 40, 75),
    ScreeningGuideline(
        "prostate_screening",
        "Prostate cancer screening (PSA) - discuss with doctor",
        "shared decision making",
        55,
        69,
        sex="male",
    ),
    ScreeningGuideline("osteoporosis_screening", "Bone density screening (DEXA)", "at least once", 65, sex="female"),
    ScreeningGuideline("depression_screening", "Depression screening", "annually or as needed", 12),
    ScreeningGuideline("hiv_screening", "HIV screening", "at least once (15-65), more if high risk", 15, 65),
    ScreeningGuideline("hepc_screening", "Hepatitis C screening", "once", 18, 79),
    ScreeningGuideline(
        "aaa_screening",
        "Abdominal aortic aneurysm screening (ultrasound)",
        "once",
        65,
        75,
        sex="male",
        risk_factors=("smoker", "former_smoker"),
    ),
]


@dataclass(frozen=True)
class RedFlagRule:
    reason: str
    matches: Callable[[str], bool]


def _re(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def _all_of(*patterns: str) -> Callable[[str], bool]:
    compiled = [_re(pattern) for pattern in patterns]
    return lambda text: all(pattern.search(text) for pattern in compiled)


def _any_of(pattern: str) -> Callable[[str], bool]:
    compiled = _re(pattern)
    return lambda text: compiled.search(text) is not None


CARDIO_RED_FLAGS = [
    RedFlagRule(
        "Possible acute coronary syndrome - crushing chest pain with radiation or associated symptoms",
        _all_of(
            r"crushing.*chest|elephant.*chest|severe.*chest.*pain",
            r"radiat|spread|arm|jaw|neck|sweat|nausea|breath",
        ),
    ),
    RedFlagRule("Sudden severe chest pain - needs urgent evaluation", _any_of(r"sudden.*severe.*chest")),
    RedFlagRule(
        "Syncope with chest pain - possible cardiac emergency",
        _all_of(r"faint|pass.*out|lost.*conscious", r"chest"),
    ),
    RedFlagRule(
        "Palpitations with hemodynamic symptoms",
        _all_of(r"palpitation|racing.*heart|heart.*racing", r"faint|dizz|chest.*pain|short.*breath"),
    ),
]

RESPIRATORY_RED_FLAGS = [
    RedFlagRule("Severe respiratory distress", _any_of(r"can't.*breathe|cannot.*breathe|unable.*breathe|gasping")),
    RedFlagRule("Possible cyanosis - oxygen deprivation", _any_of(r"blue.*lips|blue.*fingernails|turning.*blue")),
    RedFlagRule("Hemoptysis - coughing blood", _any_of(r"cough.*blood|blood.*cough|hemoptysis")),
    RedFlagRule(
        "Altered mental status with respiratory symptoms",
        _all_of(r"confus|drowsy|can't.*stay.*awake", r"breath"),
    ),
]

MENTAL_HEALTH_RED_FLAGS = [
    RedFlagRule(
        "URGENT: Possible suicidal ideation - immediate evaluation needed",
        _any_of(r"suicid|kill.*myself|end.*my.*life|want.*to.*die|better.*off.*dead"),
    ),
    RedFlagRule("Self-harm concern - needs mental health evaluation", _any_of(r"hurt.*myself|cutting|self.*harm")),
    RedFlagRule(
        "Possible psychotic symptoms",
        _any_of(r"voices.*telling|hearing.*voices|seeing.*things.*not.*there"),
    ),
]


def _first_match(rules: list[RedFlagRule], text: str) -> str | None:
    cleaned = (text or "").strip()
    for rule in rules:
        if rule.matches(cleaned):
            return rule.reason
    return None


def _sex_flags(sex: str | None) -> tuple[bool, bool]:
    normalized = (sex or "").strip().lower()
    return normalized in {"male", "m"}, normalized in {"female", "f"}


class ScreeningCatalogue:
    def __init__(self, guidelines: list[ScreeningGuideline] | None = None) -> None:
        self.guidelines = list(guidelines if guidelines is not None else SCREENING_GUIDELINES)

    def recommend_with_risk_factors(self, age: float, sex: str | None, risk_factors: list[str]) -> list[str]:
        is_male, is_female = _sex_flags(sex)
        normalized = [factor.lower() for factor in risk_factors if factor]
        recommended: list[str] = []
        for guideline in self.guidelines:
            if not guideline.applies_to(age, is_male=is_male, is_female=is_female):
                continue
            if guideline.risk_factors and not any(
                known in given or given in known for known in guideline.risk_factors for given in normalized
            ):
                continue
            recommended.append(guideline.label())
        return recommended

    def detect_cardio_red_flags(self, text: str) -> str | None:
        return _first_match(CARDIO_RED_FLAGS, text)

    def detect_respiratory_red_flags(self, text: str) -> str | None:
        return _first_match(RESPIRATORY_RED_FLAGS, text)

    def detect_mental_health_red_flags(self, text: str) -> str | None:
        return _first_match(MENTAL_HEALTH_RED_FLAGS, text)


def risk_factors_from(context: dict[str, Any]) -> list[str]:
    factors: list[str] = []
    smoking = smoking_status(context)
    if smoking == "current":
        factors.append("smoker")
    elif smoking == "former":
        factors.append("former_smoker")

    bmi = demographics_from(context).get("bmi")
    if isinstance(bmi, (int, float)) and not isinstance(bmi, bool):
        if bmi >= 25:
            factors.append("overweight")
        if bmi >= 30:
            factors.append("obese")

    family = context.get("familyHistory")
    if isinstance(family, dict):
        if family.get("heartDisease"):
            factors.append("family_history_heart")
        if family.get("cancer"):
            factors.append("family_history_cancer")
    return factors

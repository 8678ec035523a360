from __future__ import annotations

import re
from datetime import date

from checkin_core.models import ControllerContext, ControllerResult

_NEGATION_RE = re.compile(r"\b(no|none|not|don't|doesn't|never|neither|without)\b", re.IGNORECASE)

_AGE_RULES = [
    re.compile(r"^(\d{1,3})$"),
    re.compile(r"(\d{1,3})\s*(?:years?\s*old|yo\b|y/o)", re.IGNORECASE),
    re.compile(r"^(\d{1,3})\s*,"),
    re.compile(r"(?:i am|i'm|age|aged)\s*(\d{1,3})\b", re.IGNORECASE),
]
_BIRTH_YEAR_RE = re.compile(r"(?:born\s*(?:in\s*)?)?\b(19\d{2}|20[0-2]\d)\b", re.IGNORECASE)

_SEX_RULES = [
    ("female", re.compile(r"\b(female|woman|f)\b", re.IGNORECASE)),
    ("male", re.compile(r"(?<!['’])\b(male|man|m)\b", re.IGNORECASE)),
    ("other", re.compile(r"\b(other|non-?binary|nb)\b", re.IGNORECASE)),
    ("prefer_not_to_say", re.compile(r"\b(prefer not|rather not|don't want)\b", re.IGNORECASE)),
]
# Height/weight spans such as "1.65 m" would otherwise read as sex "m".
_MEASUREMENT_RE = re.compile(
    r"\b(?:\d(?:\.\d+)?\s*(?:m|meters?|metres?)|\d+(?:\.\d+)?\s*(?:cm|kg|kilos?|lbs?|pounds?|ft|feet|in))\b",
    re.IGNORECASE,
)

_METERS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:m|meters?|metres?)\b", re.IGNORECASE)
_CENTIMETERS_RE = re.compile(r"(\d{2,3})\s*(?:cm|centimeters?|centimetres?)\b", re.IGNORECASE)
_FEET_INCHES_RE = re.compile(
    r"\b(\d)\s*(?:'|ft\b|feet\b|foot\b)\s*(?:(\d{1,2})\s*(?:\"|in\b|inches\b)?)?",
    re.IGNORECASE,
)

_KILOGRAMS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:kg|kilos?|kilograms?)\b", re.IGNORECASE)
_POUNDS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:lbs?|pounds?)\b", re.IGNORECASE)
_BARE_NUMBER_RE = re.compile(r"^(\d+(?:\.\d+)?)$")

LB_TO_KG = 0.453592
INCH_TO_M = 0.0254


class BaseController:
    """Shared parsing helpers for node controllers.

    Subclasses override ``preprocess`` and/or ``postprocess``; the defaults
    contribute nothing to the turn.
    """

    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        return None

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        return None

    @staticmethod
    def parse_age(text: str) -> int | None:
        cleaned = str(text or "").strip().lower()
        for pattern in _AGE_RULES:
            match = pattern.search(cleaned)
            if match:
                age = int(match.group(1))
                if 0 < age < 150:
                    return age
        match = _BIRTH_YEAR_RE.search(cleaned)
        if match:
            age = date.today().year - int(match.group(1))
            if 0 < age < 150:
                return age
        return None

    @staticmethod
    def parse_sex(text: str) -> str | None:
        cleaned = _MEASUREMENT_RE.sub(" ", str(text or "")).strip().lower()
        for value, pattern in _SEX_RULES:
            if pattern.search(cleaned):
                return value
        return None

    @staticmethod
    def parse_height(text: str) -> float | None:
        cleaned = str(text or "").strip().lower()
        match = _METERS_RE.search(cleaned)
        if match:
            meters = float(match.group(1))
            if 0.5 < meters < 2.5:
                return meters
        match = _CENTIMETERS_RE.search(cleaned)
        if match:
            centimeters = int(match.group(1))
            if 50 < centimeters < 250:
                return centimeters / 100
        match = _FEET_INCHES_RE.search(cleaned)
        if match:
            inches = int(match.group(1)) * 12 + int(match.group(2) or 0)
            if inches > 0:
                return round(inches * INCH_TO_M, 4)
        return None

    @staticmethod
    def parse_weight(text: str, *, allow_bare_number: bool = True) -> float | None:
        cleaned = str(text or "").strip().lower()
        match = _KILOGRAMS_RE.search(cleaned)
        if match:
            kilograms = float(match.group(1))
            if 20 < kilograms < 500:
                return kilograms
        match = _POUNDS_RE.search(cleaned)
        if match:
            pounds = float(match.group(1))
            if 40 < pounds < 1000:
                return round(pounds * LB_TO_KG, 2)
        if allow_bare_number:
            match = _BARE_NUMBER_RE.match(cleaned)
            if match:
                number = float(match.group(1))
                if 20 < number < 200:
                    return number
                if 80 < number < 500:
                    return round(number * LB_TO_KG, 2)
        return None

    @staticmethod
    def has_negation(text: str) -> bool:
        return _NEGATION_RE.search(str(text or "")) is not None

    @staticmethod
    def extract_keywords(text: str, keywords: list[str]) -> list[str]:
        cleaned = str(text or "").lower()
        return [keyword for keyword in keywords if keyword.lower() in cleaned]

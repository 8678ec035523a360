from __future__ import annotations

import re
from typing import Any

from checkin_core.models import ControllerContext, ControllerResult

from .base import BaseController

COMMON_MEDICATIONS = [
    "aspirin",
    "ibuprofen",
    "advil",
    "naproxen",
    "aleve",
    "tylenol",
    "acetaminophen",
    "metformin",
    "lisinopril",
    "amlodipine",
    "metoprolol",
    "atorvastatin",
    "lipitor",
    "omeprazole",
    "prilosec",
    "losartan",
    "albuterol",
    "gabapentin",
    "hydrochlorothiazide",
    "sertraline",
    "zoloft",
    "fluoxetine",
    "prozac",
    "levothyroxine",
    "synthroid",
    "prednisone",
    "insulin",
    "warfarin",
    "coumadin",
    "clopidogrel",
    "plavix",
    "pantoprazole",
    "montelukast",
    "singulair",
    "escitalopram",
    "lexapro",
    "duloxetine",
    "cymbalta",
    "trazodone",
    "alprazolam",
    "xanax",
    "lorazepam",
    "ativan",
    "ambien",
    "furosemide",
    "lasix",
    "carvedilol",
    "potassium",
    "vitamin d",
    "vitamin b12",
    "multivitamin",
    "fish oil",
    "omega-3",
    "calcium",
    "magnesium",
    "iron",
    "probiotics",
]

BLOOD_THINNERS = {"warfarin", "coumadin", "aspirin", "clopidogrel", "plavix"}
NSAIDS = {"ibuprofen", "advil", "naproxen", "aleve"}
SEDATIVES = {"alprazolam", "xanax", "lorazepam", "ativan", "trazodone", "ambien"}

_NONE_RE = re.compile(r"^(none|no|n/a|nothing|not taking any)$", re.IGNORECASE)
_MEDICATION_NOUN_RE = re.compile(r"\b(medications?|medicines?|drugs?|pills?|prescriptions?|meds)\b", re.IGNORECASE)
_DOSE = r"\d+(?:\.\d+)?\s*(?:mg|mcg|g|ml|units?)"
_TAKING_RE = re.compile(r"taking\s+([a-z0-9\s,]+?)(?:\.|\bfor\b|$)", re.IGNORECASE)
_NAME_DOSE_RE = re.compile(rf"\b([a-z]+)\s+({_DOSE})", re.IGNORECASE)
_LIST_SPLIT_RE = re.compile(r",|\band\b")
_DOSE_ONLY_RE = re.compile(rf"^{_DOSE}$|^\d+$", re.IGNORECASE)


class MedicationsController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "").strip().lower()
        if _NONE_RE.match(text) or (self.has_negation(text) and _MEDICATION_NOUN_RE.search(text)):
            return ControllerResult(extra_data={"medications": [], "noMedications": True})

        medications: list[dict[str, Any]] = []
        known_names: set[str] = set()

        for name in COMMON_MEDICATIONS:
            if name not in text:
                continue
            dose = re.search(rf"{re.escape(name)}\s*({_DOSE})", text, re.IGNORECASE)
            entry: dict[str, Any] = {"name": name}
            if dose:
                entry["details"] = re.sub(r"\s+", "", dose.group(1))
            medications.append(entry)
            known_names.add(name)

        for match in _TAKING_RE.finditer(text):
            for part in _LIST_SPLIT_RE.split(match.group(1)):
                candidate = part.strip()
                if len(candidate) <= 2 or _DOSE_ONLY_RE.match(candidate):
                    continue
                if any(known in candidate for known in known_names):
                    continue
                known_names.add(candidate)
                medications.append({"name": candidate})

        for match in _NAME_DOSE_RE.finditer(text):
            name = match.group(1).lower()
            if any(name == known or name in known for known in known_names):
                continue
            known_names.add(name)
            medications.append({"name": name, "details": re.sub(r"\s+", "", match.group(2))})

        if not medications:
            return None
        return ControllerResult(extra_data={"medications": medications, "noMedications": False})

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        medications = ctx.context.get("medications") or []
        if not isinstance(medications, list) or len(medications) < 2:
            return None
        warnings = check_interactions(medications)
        if not warnings:
            return None
        return ControllerResult(extra_data={"medicationWarnings": warnings})


def check_interactions(medications: list[Any]) -> list[str]:
    names = []
    for item in medications:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str):
            names.append(name.lower())

    warnings: list[str] = []
    thinners = [name for name in names if name in BLOOD_THINNERS]
    if len(thinners) >= 2:
        warnings.append("Multiple blood thinners detected - discuss bleeding risk with your doctor")
    if any(name in NSAIDS for name in names) and thinners:
        warnings.append("NSAIDs with blood thinners may increase bleeding risk")
    if len([name for name in names if name in SEDATIVES]) >= 2:
        warnings.append("Multiple sedatives detected - discuss with your doctor")
    return warnings

from __future__ import annotations

from typing import Any

from checkin_core.models import ControllerContext, ControllerResult
from memory.time_utils import to_iso, utc_now

from .base import BaseController

MAX_LISTED_SCREENINGS = 5
DISCLAIMER = (
    "*This summary is for educational purposes only. "
    "Please consult your healthcare provider for medical advice.*"
)


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def build_summary(context: dict[str, Any]) -> dict[str, Any]:
    summary: dict[str, Any] = {"generatedAt": to_iso(utc_now())}

    demographics = _dict(context.get("demographics"))
    if demographics:
        summary["demographics"] = {
            "age": demographics.get("age"),
            "sex": demographics.get("sexAtBirth"),
            "bmi": demographics.get("bmi"),
        }

    history = _dict(context.get("medicalHistory"))
    if history:
        summary["chronicConditions"] = list(history.get("chronicConditions") or [])

    medications = context.get("medications")
    if isinstance(medications, list):
        summary["medications"] = medications
    warnings = context.get("medicationWarnings")
    if isinstance(warnings, list) and warnings:
        summary["medicationWarnings"] = warnings

    cardio = _dict(context.get("cardioSymptoms"))
    respiratory = _dict(context.get("respiratorySymptoms"))
    reviewed: list[str] = []
    if cardio:
        reviewed.append("Cardiovascular")
        summary["cardioEvaluation"] = cardio
    if respiratory:
        reviewed.append("Respiratory")
        summary["respiratoryEvaluation"] = respiratory
    systems = _dict(context.get("systemsReview"))
    if systems:
        summary["systemsReviewed"] = list(systems.get("affectedSystems") or [])
    summary["symptomsReviewed"] = reviewed

    red_flags = [*(cardio.get("redFlags") or []), *(respiratory.get("redFlags") or [])]
    summary["redFlagsIdentified"] = red_flags
    summary["hasRedFlags"] = bool(red_flags)

    screening = _dict(context.get("screeningRecommendations"))
    if screening.get("recommendations"):
        summary["screeningRecommendations"] = list(screening["recommendations"])

    risk_scores: dict[str, float] = {}
    if cardio.get("riskScore") is not None:
        risk_scores["cardiovascular"] = cardio["riskScore"]
    if respiratory.get("severityScore") is not None:
        risk_scores["respiratory"] = respiratory["severityScore"]
    if demographics.get("bmi") is not None:
        risk_scores["bmi"] = demographics["bmi"]
    if risk_scores:
        summary["riskScores"] = risk_scores
    return summary


def format_summary(summary: dict[str, Any]) -> str:
    sections = ["📋 **Health Check-in Summary**\n"]

    demographics = _dict(summary.get("demographics"))
    if demographics:
        parts = []
        if demographics.get("age"):
            parts.append(f"Age {demographics['age']}")
        if demographics.get("sex"):
            parts.append(str(demographics["sex"]))
        if demographics.get("bmi"):
            parts.append(f"BMI {float(demographics['bmi']):.1f}")
        if parts:
            sections.append("**Basic Info:** " + ", ".join(parts))

    conditions = summary.get("chronicConditions") or []
    if conditions:
        sections.append(f"\n**Medical Conditions:** {', '.join(conditions)}")

    medications = summary.get("medications") or []
    names = [item.get("name") if isinstance(item, dict) else str(item) for item in medications]
    if names:
        sections.append(f"\n**Medications:** {', '.join(name for name in names if name)}")
    for warning in summary.get("medicationWarnings") or []:
        sections.append(f"  • {warning}")

    reviewed = summary.get("symptomsReviewed") or []
    if reviewed:
        sections.append(f"\n**Systems Reviewed:** {', '.join(reviewed)}")

    if summary.get("hasRedFlags"):
        sections.append("\n⚠️ **Important Findings:**")
        sections.append("\n".join(f"  • {flag.replace('_', ' ')}" for flag in summary.get("redFlagsIdentified") or []))

    risk_scores = _dict(summary.get("riskScores"))
    if risk_scores:
        sections.append("\n**Risk Scores:**")
        for key, value in risk_scores.items():
            if key == "bmi":
                sections.append(f"  • BMI: {float(value):.1f}")
            else:
                sections.append(f"  • {key}: {value}/10")

    screenings = summary.get("screeningRecommendations") or []
    if screenings:
        sections.append("\n**Recommended Screenings:**")
        sections.extend(f"  • {item}" for item in screenings[:MAX_LISTED_SCREENINGS])

    sections.append("\n---")
    sections.append(DISCLAIMER)
    return "\n".join(sections)


class SummaryController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        return ControllerResult(extra_data={"sessionSummary": build_summary(ctx.context)})

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        summary = ctx.context.get("sessionSummary")
        if not isinstance(summary, dict):
            return None
        return ControllerResult(override_response=format_summary(summary))

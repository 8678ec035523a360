from __future__ import annotations

from typing import Any

from checkin_core.models import ReasoningResult

DEFAULT_SYSTEM_CONTEXT = (
    "You are a careful health education assistant.\n"
    "Your role is to gather health information and provide general health education.\n"
    "You are NOT a doctor and cannot diagnose conditions or prescribe treatments.\n"
    "Always encourage users to consult healthcare professionals for medical advice.\n"
    "Keep responses concise, empathetic, and focused on the current question.\n"
    "Do not repeat the prompt or include system instructions in your response."
)

INSTRUCTION = "Respond directly to the user's input based on the current task. Be concise and helpful."


def _names(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    names = []
    for item in items:
        name = item.get("name") if isinstance(item, dict) else item
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


class PromptEngine:
    def __init__(self, system_context: str = DEFAULT_SYSTEM_CONTEXT) -> None:
        self.system_context = system_context

    def build_prompt(
        self,
        *,
        node_prompt: str,
        user_input: str,
        context: dict[str, Any] | None = None,
        reasoning: ReasoningResult | None = None,
        conversation: str | None = None,
    ) -> str:
        parts = [f"[System]\n{self.system_context}"]

        patient = self.patient_context(context or {})
        if patient:
            parts.append(f"[Patient Context]\n{patient}")

        notes = self.clinical_notes(reasoning) if reasoning is not None else ""
        if notes:
            parts.append(f"[Clinical Notes]\n{notes}")

        if conversation:
            parts.append(f"[Recent Conversation]\n{conversation}")

        parts.append(f"[Current Task]\n{node_prompt}")
        parts.append(f"[User Input]\n{user_input}")
        parts.append(f"[Instruction]\n{INSTRUCTION}")
        return "\n\n".join(parts)

    def patient_context(self, context: dict[str, Any]) -> str:
        lines: list[str] = []
        demographics = context.get("demographics")
        if isinstance(demographics, dict):
            if demographics.get("age"):
                lines.append(f"Age: {demographics['age']}")
            if demographics.get("sexAtBirth"):
                lines.append(f"Sex: {demographics['sexAtBirth']}")
            height = demographics.get("heightM")
            weight = demographics.get("weightKg")
            if height and weight:
                lines.append(f"BMI: {float(weight) / (float(height) ** 2):.1f}")

        social = context.get("socialHistory")
        if isinstance(social, dict):
            if social.get("smoking"):
                lines.append(f"Smoking: {social['smoking']}")
            if social.get("alcohol"):
                lines.append(f"Alcohol: {social['alcohol']}")

        allergies = _names(context.get("allergies"))
        if allergies:
            lines.append(f"Allergies: {', '.join(allergies)}")

        history = context.get("medicalHistory")
        conditions = _names(history.get("chronicConditions")) if isinstance(history, dict) else []
        if conditions:
            lines.append(f"Conditions: {', '.join(conditions)}")

        medications = _names(context.get("medications"))
        if medications:
            lines.append(f"Medications: {', '.join(medications)}")
        return "\n".join(lines)

    def clinical_notes(self, reasoning: ReasoningResult) -> str:
        lines: list[str] = []
        scores = reasoning.scores
        if "bmi" in scores:
            lines.append(f"BMI: {scores['bmi']:.1f}")
        if "cardioRisk" in scores:
            lines.append(f"Cardio Risk Score: {scores['cardioRisk']:g}/10")
        if "respiratorySeverity" in scores:
            lines.append(f"Respiratory Severity: {scores['respiratorySeverity']:g}/10")
        if "depressionScore" in scores:
            lines.append(f"PHQ-2 Score: {scores['depressionScore']:g}/6")
        if reasoning.notes:
            lines.append(f"Notes: {'; '.join(reasoning.notes)}")
        follow_ups = reasoning.recommendations.follow_up_questions
        if follow_ups:
            lines.append(f"Consider asking: {follow_ups[0]}")
        return "\n".join(lines)

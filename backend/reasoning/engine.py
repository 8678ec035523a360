from __future__ import annotations

import re
from dataclasses import dataclass

from checkin_core.models import ReasoningInput, ReasoningResult, Recommendations, RedFlag

from .risk import RiskCalculator
from .screening import ScreeningCatalogue, risk_factors_from

_CARDIO_TEXT_RE = re.compile(r"chest|heart|palpitation", re.IGNORECASE)
_RESPIRATORY_TEXT_RE = re.compile(r"cough|breath|wheeze", re.IGNORECASE)

PHQ2_FOLLOW_UP = "Have these feelings impaired your sleep, appetite, or daily functioning?"


@dataclass(frozen=True)
class EscalationTargets:
    mental_health: str = "CRISIS_RESOURCES"
    cardio: str = "URGENT_CARDIO"
    respiratory: str = "URGENT_RESPIRATORY"

    def ordered(self) -> list[tuple[str, str]]:
        # Flag id prefix to target, highest priority first.
        return [
            ("mental", self.mental_health),
            ("cardio", self.cardio),
            ("resp", self.respiratory),
        ]


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class ReasoningEngine:
    """Stateless per-turn analysis over the merged session context and the current input.

    The same input and context always produce the same result.
    """

    def __init__(
        self,
        risk: RiskCalculator | None = None,
        screening: ScreeningCatalogue | None = None,
        targets: EscalationTargets | None = None,
    ) -> None:
        self.risk = risk or RiskCalculator()
        self.screening = screening or ScreeningCatalogue()
        self.targets = targets or EscalationTargets()

    def analyze(self, data: ReasoningInput) -> ReasoningResult:
        context = data.context or {}
        text = str(data.input or "")
        state = (data.node_id or "").lower()

        red_flags: list[RedFlag] = []
        scores: dict[str, float] = {}
        education: list[str] = []
        screenings: list[str] = []
        follow_ups: list[str] = []
        notes: list[str] = []

        weight, height = self.risk.body_measurements(context)
        if weight and height:
            bmi = self.risk.compute_bmi(weight, height)
            scores["bmi"] = bmi
            notes.append(f"BMI ≈ {bmi:.1f} ({self.risk.bmi_category(bmi)})")
            if bmi >= 30:
                education.extend(["weight management", "cardiometabolic risk"])
                red_flags.append(
                    RedFlag("bmi_obese", "Obesity", f"BMI {bmi:.1f} indicates obesity", "moderate")
                )
            elif bmi >= 25:
                education.append("healthy lifestyle and nutrition")
            elif bmi < 18.5:
                education.append("nutrition and healthy weight")
                red_flags.append(
                    RedFlag("bmi_underweight", "Underweight", f"BMI {bmi:.1f} indicates underweight", "low")
                )

        if "cardio" in state or _CARDIO_TEXT_RE.search(text):
            cardio_risk = self.risk.chest_pain_risk(text, context)
            scores["cardioRisk"] = cardio_risk
            if cardio_risk >= 8:
                red_flags.append(
                    RedFlag(
                        "cardio_high_risk",
                        "High cardiac risk pattern",
                        "Chest symptoms with elevated risk factors",
                        "high",
                    )
                )
            elif cardio_risk >= 5:
                education.append("chest pain red-flag symptoms")
                red_flags.append(
                    RedFlag(
                        "cardio_moderate_risk",
                        "Moderate cardiac risk",
                        "Chest symptoms requiring evaluation",
                        "moderate",
                    )
                )
            reason = self.screening.detect_cardio_red_flags(text)
            if reason:
                red_flags.append(RedFlag("cardio_critical", "Cardiovascular red flag", reason, "high"))

        if "resp" in state or _RESPIRATORY_TEXT_RE.search(text):
            severity = self.risk.respiratory_severity(text)
            scores["respiratorySeverity"] = severity
            if severity >= 8:
                red_flags.append(
                    RedFlag(
                        "resp_severe",
                        "Severe respiratory symptoms",
                        "High severity respiratory distress",
                        "high",
                    )
                )
            elif severity >= 5:
                education.append("respiratory symptom management")
                red_flags.append(
                    RedFlag(
                        "resp_moderate",
                        "Moderate respiratory symptoms",
                        "Respiratory symptoms requiring attention",
                        "moderate",
                    )
                )
            reason = self.screening.detect_respiratory_red_flags(text)
            if reason:
                red_flags.append(RedFlag("resp_critical", "Respiratory red flag", reason, "high"))

        reason = self.screening.detect_mental_health_red_flags(text)
        if reason:
            red_flags.append(RedFlag("mental_health_critical", "Mental health concern", reason, "high"))

        screenings_context = context.get("screenings")
        phq2 = screenings_context.get("phq2") if isinstance(screenings_context, dict) else None
        if isinstance(phq2, list):
            phq2_score = self.risk.phq2_score([str(answer) for answer in phq2])
            scores["depressionScore"] = phq2_score
            if self.risk.should_screen_for_depression(phq2_score):
                education.extend(["mental health support", "depression awareness"])
                follow_ups.append(PHQ2_FOLLOW_UP)
                red_flags.append(
                    RedFlag(
                        "depression_screen_positive",
                        "Positive depression screen",
                        f"PHQ-2 score {phq2_score}/6 suggests further evaluation",
                        "moderate",
                    )
                )

        age = self.risk.age(context)
        sex = self.risk.sex(context)
        if age and sex:
            screenings.extend(
                self.screening.recommend_with_risk_factors(age, sex, risk_factors_from(context))
            )

        return ReasoningResult(
            red_flags=red_flags,
            scores=scores,
            recommendations=Recommendations(
                education_topics=_dedupe(education),
                screening_suggestions=_dedupe(screenings),
                follow_up_questions=_dedupe(follow_ups),
            ),
            notes=notes,
            override_next_state=self._escalation_target(red_flags),
        )

    def _escalation_target(self, red_flags: list[RedFlag]) -> str | None:
        high = [flag for flag in red_flags if flag.severity == "high"]
        if not high:
            return None
        for prefix, target in self.targets.ordered():
            if any(flag.id.startswith(prefix) for flag in high):
                return target
        return None

from __future__ import annotations

from checkin_core.models import ControllerContext, ControllerResult
from memory.time_utils import to_iso, utc_now

from .base import BaseController
from .rules import apply_rules, rule, safety_banner

URGENT_NODE = "URGENT_RESPIRATORY"
URGENT_SCORE = 8
URGENT_FLAG_COUNT = 2

RESPIRATORY_RULES = [
    rule("dyspneaSeverity", "severe", r"can't.*breathe|unable.*breathe|gasping|suffocating", red_flag="severe_dyspnea", group="dyspnea"),
    rule("dyspneaSeverity", "moderate", r"very.*short.*breath|significant.*difficulty", group="dyspnea"),
    rule("dyspneaSeverity", "mild", r"mild.*short.*breath|little.*difficulty", group="dyspnea"),
    rule("atRest", True, r"at rest|sitting|lying|not.*moving|even.*when.*still", red_flag="dyspnea_at_rest"),
    rule("exertional", True, r"walk|stair|exert|exercise|activity"),
    rule("cough", True, r"cough"),
    rule("hemoptysis", True, r"cough.*blood|blood.*cough|hemoptysis", red_flag="hemoptysis"),
    rule("wheezing", True, r"wheez"),
    rule("stridor", True, r"stridor|noisy.*breath.*in|high.*pitch.*breath", red_flag="stridor"),
    rule("cyanosis", True, r"blue.*lips|blue.*fingernails|cyanosis|turning.*blue", red_flag="cyanosis"),
    rule("duration", "chronic", r"days|week|month|chronic|long.*time", group="duration"),
    rule("duration", "acute", r"today|yesterday|just.*started|hour", group="duration"),
    rule("fever", True, r"fever|temperature|chills"),
    rule(
        "alteredMentalStatus",
        True,
        r"confus|drowsy|can't.*stay.*awake|altered|not.*thinking.*clearly",
        red_flag="altered_mental_status",
    ),
]

COUGH_TYPE_RULES = [
    rule("coughType", "dry", r"dry.*cough|non.*productive", group="type"),
    rule("coughType", "productive", r"wet.*cough|productive|phlegm|mucus|sputum", group="type"),
]

SPUTUM_RULES = [
    rule("sputumColor", "purulent", r"green|yellow", group="color"),
    rule("sputumColor", "bloody", r"blood|red|pink.*frothy", red_flag="hemoptysis", group="color"),
    rule("sputumColor", "mucoid", r"clear|white", group="color"),
]

BANNER = (
    "Your breathing symptoms sound serious. Please seek immediate medical attention. "
    "If you're having severe difficulty breathing, call 911 now."
)


class RespiratoryController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "")
        symptoms, red_flags = apply_rules(RESPIRATORY_RULES, text)

        if symptoms.get("cough"):
            cough_type, _ = apply_rules(COUGH_TYPE_RULES, text)
            symptoms.update(cough_type)
            if cough_type.get("coughType") == "productive":
                sputum, sputum_flags = apply_rules(SPUTUM_RULES, text)
                symptoms.update(sputum)
                red_flags.extend(flag for flag in sputum_flags if flag not in red_flags)

        severity_score = ctx.risk.respiratory_severity(text)
        critical = ctx.screening.detect_respiratory_red_flags(text)
        if critical:
            red_flags.append("critical_pattern")

        is_urgent = (
            len(red_flags) >= URGENT_FLAG_COUNT
            or severity_score >= URGENT_SCORE
            or critical is not None
            or bool(symptoms.get("cyanosis"))
            or bool(symptoms.get("alteredMentalStatus"))
        )
        return ControllerResult(
            extra_data={
                "respiratorySymptoms": {
                    "symptoms": symptoms,
                    "redFlags": red_flags,
                    "severityScore": severity_score,
                    "criticalRedFlag": critical,
                    "isUrgent": is_urgent,
                    "evaluatedAt": to_iso(utc_now()),
                }
            },
            override_next_state=URGENT_NODE if is_urgent else None,
        )

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        data = ctx.context.get("respiratorySymptoms")
        if isinstance(data, dict) and data.get("isUrgent"):
            return ControllerResult(override_response=safety_banner(BANNER, ctx.response))
        return None

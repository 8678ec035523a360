from __future__ import annotations

import re

from checkin_core.models import ControllerContext, ControllerResult
from memory.time_utils import to_iso, utc_now

from .base import BaseController
from .rules import apply_rules, rule, safety_banner

URGENT_NODE = "URGENT_CARDIO"
URGENT_SCORE = 8
URGENT_FLAG_COUNT = 3

CARDIO_RULES = [
    rule("location", "central/substernal", r"central|substernal|behind.*sternum|middle.*chest", group="location"),
    rule("location", "left chest", r"left.*chest|left.*side", group="location"),
    rule("location", "right chest", r"right.*chest|right.*side", group="location"),
    rule("quality", "pressure/crushing", r"crush|squeez|pressure|tight|heavy|elephant", red_flag="pressure_character", group="quality"),
    rule("quality", "sharp/stabbing", r"sharp|stabbing|knife", group="quality"),
    rule("quality", "burning/aching", r"burn|aching|dull", group="quality"),
    rule("radiation", True, r"radiat|spread|arm|jaw|neck|back|shoulder", red_flag="radiation"),
    rule("diaphoresis", True, r"sweat|diaphores", red_flag="diaphoresis"),
    rule("nausea", True, r"nausea|vomit", red_flag="nausea"),
    rule("dyspnea", True, r"short.*breath|dyspnea|breathless|can't.*catch.*breath", red_flag="dyspnea"),
    rule("dizziness", True, r"dizz|lightheaded|faint|syncope", red_flag="presyncope"),
    rule("palpitations", True, r"palpitat|racing|irregular|skipping"),
    rule("duration", "seconds", r"second|momentary|brief", group="duration"),
    rule("duration", "minutes", r"minute|few min", group="duration"),
    rule("duration", "hours/ongoing", r"hour|all day|ongoing|constant", red_flag="prolonged_duration", group="duration"),
    rule("onset", "sudden", r"sudden|abrupt|came.*on.*fast|out.*of.*nowhere", red_flag="sudden_onset", group="onset"),
    rule("onset", "gradual", r"gradual|slowly|been.*building", group="onset"),
    rule("exertional", True, r"exert|exercise|walk|stair|activity|physical", red_flag="exertional"),
]

RADIATION_SITES = ["arm", "jaw", "neck", "back", "shoulder"]

_SEVERE_WORDING_RE = re.compile(r"severe|worst|can't.*breathe|crushing.*pain", re.IGNORECASE)

BANNER = (
    "Based on what you've described, I'm concerned about your symptoms. "
    "Please seek immediate medical evaluation. If you're having severe chest pain, call 911 now."
)


class CardioSymptomsController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "")
        symptoms, red_flags = apply_rules(CARDIO_RULES, text)
        if symptoms.get("radiation"):
            symptoms["radiationSites"] = self.extract_keywords(text, RADIATION_SITES)

        risk_score = ctx.risk.chest_pain_risk(text, ctx.context)
        critical = ctx.screening.detect_cardio_red_flags(text)
        if critical:
            red_flags.append("critical_pattern")

        is_urgent = (
            len(red_flags) >= URGENT_FLAG_COUNT
            or risk_score >= URGENT_SCORE
            or critical is not None
            or _SEVERE_WORDING_RE.search(text) is not None
        )
        return ControllerResult(
            extra_data={
                "cardioSymptoms": {
                    "symptoms": symptoms,
                    "redFlags": red_flags,
                    "riskScore": risk_score,
                    "criticalRedFlag": critical,
                    "isUrgent": is_urgent,
                    "evaluatedAt": to_iso(utc_now()),
                }
            },
            override_next_state=URGENT_NODE if is_urgent else None,
        )

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        data = ctx.context.get("cardioSymptoms")
        if isinstance(data, dict) and data.get("isUrgent"):
            return ControllerResult(override_response=safety_banner(BANNER, ctx.response))
        return None

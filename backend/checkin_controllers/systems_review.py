from __future__ import annotations

import re

from checkin_core.models import ControllerContext, ControllerResult
from memory.time_utils import to_iso, utc_now

from .base import BaseController


def _system(pattern: str) -> re.Pattern[str]:
    return re.compile(rf"\b({pattern})", re.IGNORECASE)


BODY_SYSTEMS = [
    ("constitutional", _system(r"fever|chills|fatigue|tired|weight loss|weight gain|sweats|weakness")),
    ("cardiovascular", _system(r"chest|heart|palpitation|racing|irregular|edema|swelling.*leg|shortness.*breath")),
    ("respiratory", _system(r"cough|wheez|breath|respiratory|asthma|copd|phlegm|mucus|congestion")),
    ("gastrointestinal", _system(r"nausea|vomit|diarrhea|constipation|abdominal|stomach|heartburn|reflux|bloating")),
    ("musculoskeletal", _system(r"joint|muscle|back|pain|stiff|arthritis|ache|sore")),
    ("neurological", _system(r"headache|dizz|numb|tingling|seizure|tremor|balance|memory|confusion")),
    ("psychiatric", _system(r"depress|anxi|stress|sleep|insomnia|mood|panic|worry")),
    ("dermatologic", _system(r"rash|itch|skin|hives|lesion|mole|acne|eczema|psoriasis")),
    ("genitourinary", _system(r"urin|bladder|kidney|sexual|menstrual|period|discharge")),
    ("endocrine", _system(r"thyroid|diabetes|hormone|thirst|hungry|metabolism")),
]


class SystemsReviewController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "")
        affected = [name for name, pattern in BODY_SYSTEMS if pattern.search(text)]
        return ControllerResult(
            extra_data={
                "systemsReview": {
                    "affectedSystems": affected,
                    "hasSymptoms": bool(affected),
                    "reviewedAt": to_iso(utc_now()),
                }
            }
        )

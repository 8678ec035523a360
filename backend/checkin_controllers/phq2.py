from __future__ import annotations

import re

from checkin_core.models import ControllerContext, ControllerResult

from .base import BaseController

LIKERT_ANSWERS = [
    ("not at all", re.compile(r"not at all|^never$|^no$|^0$", re.IGNORECASE)),
    ("several days", re.compile(r"several days|some days|^1$", re.IGNORECASE)),
    ("more than half the days", re.compile(r"more than half|most days|^2$", re.IGNORECASE)),
    ("nearly every day", re.compile(r"nearly every day|every day|all the time|^3$", re.IGNORECASE)),
]


def normalize_answer(text: str) -> str | None:
    cleaned = str(text or "").strip().lower()
    for answer, pattern in LIKERT_ANSWERS:
        if pattern.search(cleaned):
            return answer
    return None


class PHQ2Controller(BaseController):
    """Appends one Likert answer per turn to ``screenings.phq2``."""

    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        answer = normalize_answer(ctx.input)
        if answer is None:
            return None
        screenings = ctx.context.get("screenings")
        screenings = dict(screenings) if isinstance(screenings, dict) else {}
        answers = [str(item) for item in screenings.get("phq2") or []]
        answers.append(answer)
        screenings["phq2"] = answers
        return ControllerResult(extra_data={"screenings": screenings})

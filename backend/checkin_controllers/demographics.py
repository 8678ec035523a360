from __future__ import annotations

import re
from typing import Any

from checkin_core.models import ControllerContext, ControllerResult

from .base import BaseController

_DECLINE_RE = re.compile(r"\b(prefer not|rather not|skip|private)\b", re.IGNORECASE)


class DemographicsController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        text = str(ctx.input or "")
        parsed: dict[str, Any] = {}

        age = self.parse_age(text)
        if age is not None:
            parsed["age"] = age
        sex = self.parse_sex(text)
        if sex is not None:
            parsed["sexAtBirth"] = sex
        height = self.parse_height(text)
        if height is not None:
            parsed["heightM"] = height
        weight = self.parse_weight(text, allow_bare_number=age is None)
        if weight is not None:
            parsed["weightKg"] = weight

        if not parsed and _DECLINE_RE.search(text):
            parsed["declined"] = True

        existing = ctx.context.get("demographics")
        existing = dict(existing) if isinstance(existing, dict) else {}

        if parsed:
            existing.pop("needsAge", None)
            return ControllerResult(extra_data={"demographics": {**existing, **parsed}})

        if not existing.get("age") and not ctx.context.get("age"):
            return ControllerResult(extra_data={"demographics": {**existing, "needsAge": True}})
        return None

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        demographics = ctx.context.get("demographics")
        if not isinstance(demographics, dict):
            return None
        height = demographics.get("heightM")
        weight = demographics.get("weightKg")
        if not height or not weight:
            return None
        bmi = round(ctx.risk.compute_bmi(float(weight), float(height)), 1)
        return ControllerResult(extra_data={"demographics": {**demographics, "bmi": bmi}})

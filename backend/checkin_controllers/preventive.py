from __future__ import annotations

from checkin_core.models import ControllerContext, ControllerResult
from memory.time_utils import to_iso, utc_now
from reasoning.screening import risk_factors_from

from .base import BaseController


class PreventiveScreeningController(BaseController):
    def preprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        demographics = ctx.context.get("demographics")
        demographics = demographics if isinstance(demographics, dict) else {}
        age = demographics.get("age")
        sex = demographics.get("sexAtBirth")

        if not age:
            return ControllerResult(
                extra_data={"screeningRecommendations": {"error": "Age not available for screening recommendations"}}
            )

        risk_factors = risk_factors_from(ctx.context)
        recommendations = ctx.screening.recommend_with_risk_factors(age, sex or "", risk_factors)
        return ControllerResult(
            extra_data={
                "screeningRecommendations": {
                    "age": age,
                    "sex": sex,
                    "riskFactors": risk_factors,
                    "recommendations": recommendations,
                    "generatedAt": to_iso(utc_now()),
                }
            }
        )

    def postprocess(self, ctx: ControllerContext) -> ControllerResult | None:
        data = ctx.context.get("screeningRecommendations")
        if not isinstance(data, dict):
            return None
        recommendations = data.get("recommendations") or []
        if not recommendations:
            return None
        numbered = "\n".join(f"{index}. {item}" for index, item in enumerate(recommendations, start=1))
        return ControllerResult(
            override_response=(
                f"Based on your age ({data.get('age')}) and health profile, here are recommended preventive "
                f"screenings to discuss with your healthcare provider:\n\n{numbered}\n\n"
                "Remember, these are general guidelines. Your doctor may recommend different screenings "
                "based on your individual health history."
            )
        )

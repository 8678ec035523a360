from .engine import EscalationTargets, ReasoningEngine
from .risk import RiskCalculator, RiskFactorCount
from .screening import SCREENING_GUIDELINES, ScreeningCatalogue, ScreeningGuideline, risk_factors_from

__all__ = [
    "SCREENING_GUIDELINES",
    "EscalationTargets",
    "ReasoningEngine",
    "RiskCalculator",
    "RiskFactorCount",
    "ScreeningCatalogue",
    "ScreeningGuideline",
    "risk_factors_from",
]

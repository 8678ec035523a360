from checkin_core.registry import ControllerRegistry

from .base import BaseController
from .cardio import CardioSymptomsController
from .demographics import DemographicsController
from .medical_history import MedicalHistoryController
from .medications import MedicationsController, check_interactions
from .phq2 import PHQ2Controller
from .preventive import PreventiveScreeningController
from .respiratory import RespiratoryController
from .summary import SummaryController, build_summary, format_summary
from .systems_review import SystemsReviewController

DEFAULT_CONTROLLERS = {
    "demographics": DemographicsController,
    "medical_history": MedicalHistoryController,
    "medications": MedicationsController,
    "systems_review": SystemsReviewController,
    "cardio_symptoms": CardioSymptomsController,
    "respiratory": RespiratoryController,
    "preventive_screening": PreventiveScreeningController,
    "phq2": PHQ2Controller,
    "summary": SummaryController,
}


def build_default_registry() -> ControllerRegistry:
    registry = ControllerRegistry()
    for name, controller_cls in DEFAULT_CONTROLLERS.items():
        registry.register(name, controller_cls())
        registry.add_alias(controller_cls.__name__, name)
    return registry


__all__ = [
    "DEFAULT_CONTROLLERS",
    "BaseController",
    "CardioSymptomsController",
    "DemographicsController",
    "MedicalHistoryController",
    "MedicationsController",
    "PHQ2Controller",
    "PreventiveScreeningController",
    "RespiratoryController",
    "SummaryController",
    "SystemsReviewController",
    "build_default_registry",
    "build_summary",
    "check_interactions",
    "format_summary",
]

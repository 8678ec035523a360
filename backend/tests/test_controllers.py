from __future__ import annotations

from typing import Any

import pytest

from checkin_controllers import (
    BaseController,
    CardioSymptomsController,
    DemographicsController,
    MedicalHistoryController,
    MedicationsController,
    PHQ2Controller,
    PreventiveScreeningController,
    RespiratoryController,
    SummaryController,
    SystemsReviewController,
    build_default_registry,
    check_interactions,
)
from checkin_controllers.rules import apply_rules, rule
from checkin_core import ControllerRegistry
from checkin_core.models import ControllerContext
from reasoning import RiskCalculator, ScreeningCatalogue


def _ctx(text: str, context: dict[str, Any] | None = None, response: str | None = None) -> ControllerContext:
    return ControllerContext(
        subject_id="subject-1",
        session_id="session-1",
        node_id="NODE",
        input=text,
        context=context or {},
        risk=RiskCalculator(),
        screening=ScreeningCatalogue(),
        response=response,
    )


@pytest.mark.parametrize("text", ["none", "None", "n/a", "I don't take any medications"])
def test_medications_none_clears_the_list(text):
    result = MedicationsController().preprocess(_ctx(text))
    assert result is not None
    assert result.extra_data == {"medications": [], "noMedications": True}


def test_medications_capture_names_and_doses():
    result = MedicationsController().preprocess(_ctx("I'm taking metformin 500mg and lisinopril"))
    assert result is not None
    assert result.extra_data["noMedications"] is False
    assert result.extra_data["medications"] == [
        {"name": "metformin", "details": "500mg"},
        {"name": "lisinopril"},
    ]


def test_medication_interactions_are_reported_in_postprocess():
    medications = [{"name": "warfarin"}, {"name": "aspirin"}, {"name": "ibuprofen"}]
    assert check_interactions(medications) == [
        "Multiple blood thinners detected - discuss bleeding risk with your doctor",
        "NSAIDs with blood thinners may increase bleeding risk",
    ]
    result = MedicationsController().postprocess(_ctx("", {"medications": medications}))
    assert result is not None
    assert len(result.extra_data["medicationWarnings"]) == 2
    assert MedicationsController().postprocess(_ctx("", {"medications": [{"name": "metformin"}]})) is None


def test_demographics_parses_compact_answer_and_adds_bmi():
    controller = DemographicsController()
    pre = controller.preprocess(_ctx("40, female, 70kg, 1.65m"))
    assert pre is not None
    demographics = pre.extra_data["demographics"]
    assert demographics == {"age": 40, "sexAtBirth": "female", "heightM": 1.65, "weightKg": 70.0}

    post = controller.postprocess(_ctx("", {"demographics": demographics}))
    assert post is not None
    assert post.extra_data["demographics"]["bmi"] == 25.7
    assert post.extra_data["demographics"]["age"] == 40


def test_demographics_merges_with_known_values_and_clears_needs_age():
    existing = {"demographics": {"age": 40, "needsAge": True}}
    result = DemographicsController().preprocess(_ctx("170cm 80kg", existing))
    assert result is not None
    assert result.extra_data["demographics"] == {"age": 40, "heightM": 1.7, "weightKg": 80.0}


def test_demographics_flags_missing_age():
    result = DemographicsController().preprocess(_ctx("hello there"))
    assert result is not None
    assert result.extra_data["demographics"] == {"needsAge": True}


def test_contraction_is_not_read_as_sex():
    assert BaseController.parse_sex("I'm 52") is None
    assert BaseController.parse_age("I'm 52") == 52
    assert BaseController.parse_sex("I'm a man") == "male"
    assert BaseController.parse_height("5'10\"") == pytest.approx(1.778, abs=0.001)
    assert BaseController.parse_height("I'm 5 years older") is None


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1.8 m tall", None),
        ("2 metres, 90 kg", None),
        ("40 m, 70kg", "male"),
        ("f, 165 cm, 60 kg", "female"),
    ],
)
def test_height_in_metres_is_not_read_as_sex(text, expected):
    assert BaseController.parse_sex(text) == expected


def test_demographics_with_metric_height_leaves_sex_unset():
    result = DemographicsController().preprocess(_ctx("I'm 40, 1.65 m and 60 kg"))
    assert result is not None
    assert result.extra_data["demographics"] == {"age": 40, "heightM": 1.65, "weightKg": 60.0}


def test_medical_history_conditions_and_smoking():
    result = MedicalHistoryController().preprocess(
        _ctx("I have diabetes and high blood pressure, and I quit smoking")
    )
    assert result is not None
    assert result.extra_data["medicalHistory"] == {
        "chronicConditions": ["diabetes", "hypertension"],
        "noKnownConditions": False,
    }
    assert result.extra_data["socialHistory"] == {"smoking": "former"}


def test_medical_history_none():
    result = MedicalHistoryController().preprocess(_ctx("none"))
    assert result is not None
    assert result.extra_data["medicalHistory"] == {"chronicConditions": [], "noKnownConditions": True}


def test_cardio_urgent_pattern_overrides_route_and_prepends_banner():
    controller = CardioSymptomsController()
    pre = controller.preprocess(_ctx("Crushing chest pressure radiating to my jaw with sweating"))
    assert pre is not None
    assert pre.override_next_state == "URGENT_CARDIO"
    cardio = pre.extra_data["cardioSymptoms"]
    assert cardio["isUrgent"] is True
    assert {"pressure_character", "radiation", "diaphoresis", "critical_pattern"} <= set(cardio["redFlags"])
    assert cardio["symptoms"]["radiationSites"] == ["jaw"]

    post = controller.postprocess(_ctx("", pre.extra_data, response="Let's talk about it."))
    assert post is not None
    assert post.override_response.startswith("⚠️ IMPORTANT:")
    assert post.override_response.endswith("Let's talk about it.")


def test_cardio_mild_pattern_does_not_escalate():
    pre = CardioSymptomsController().preprocess(_ctx("brief sharp pain on the left side"))
    assert pre is not None
    assert pre.override_next_state is None
    cardio = pre.extra_data["cardioSymptoms"]
    assert cardio["symptoms"] == {"location": "left chest", "quality": "sharp/stabbing", "duration": "seconds"}
    assert cardio["redFlags"] == []


def test_respiratory_cyanosis_escalates():
    pre = RespiratoryController().preprocess(_ctx("I can't breathe and my lips are turning blue"))
    assert pre is not None
    assert pre.override_next_state == "URGENT_RESPIRATORY"
    assert pre.extra_data["respiratorySymptoms"]["symptoms"]["cyanosis"] is True


def test_productive_cough_records_sputum_colour():
    pre = RespiratoryController().preprocess(_ctx("productive cough with green phlegm for a week"))
    assert pre is not None
    symptoms = pre.extra_data["respiratorySymptoms"]["symptoms"]
    assert symptoms["coughType"] == "productive"
    assert symptoms["sputumColor"] == "purulent"
    assert symptoms["duration"] == "chronic"
    assert pre.override_next_state is None


def test_phq2_answers_accumulate():
    controller = PHQ2Controller()
    first = controller.preprocess(_ctx("Several days"))
    assert first.extra_data == {"screenings": {"phq2": ["several days"]}}
    second = controller.preprocess(_ctx("more than half the days", first.extra_data))
    assert second.extra_data == {"screenings": {"phq2": ["several days", "more than half the days"]}}
    assert controller.preprocess(_ctx("purple")) is None


def test_systems_review_lists_affected_systems():
    result = SystemsReviewController().preprocess(_ctx("I have a cough and headaches"))
    review = result.extra_data["systemsReview"]
    assert review["affectedSystems"] == ["respiratory", "neurological"]
    assert review["hasSymptoms"] is True


def test_preventive_screening_requires_age():
    result = PreventiveScreeningController().preprocess(_ctx("", {}))
    assert result.extra_data["screeningRecommendations"]["error"].startswith("Age not available")


def test_preventive_screening_lists_recommendations():
    controller = PreventiveScreeningController()
    context = {"demographics": {"age": 52, "sexAtBirth": "female"}}
    pre = controller.preprocess(_ctx("", context))
    recommendations = pre.extra_data["screeningRecommendations"]["recommendations"]
    assert "Mammogram for breast cancer (every 2 years)" in recommendations
    assert not any("Prostate" in item for item in recommendations)

    post = controller.postprocess(_ctx("", pre.extra_data, response="generated"))
    assert "1. Blood pressure screening (annually)" in post.override_response


def test_summary_controller_renders_collected_context():
    context = {
        "demographics": {"age": 40, "sexAtBirth": "female", "bmi": 25.7},
        "medicalHistory": {"chronicConditions": ["asthma"]},
        "medications": [{"name": "albuterol"}],
        "cardioSymptoms": {"redFlags": ["radiation"], "riskScore": 5},
    }
    controller = SummaryController()
    pre = controller.preprocess(_ctx("", context))
    summary = pre.extra_data["sessionSummary"]
    assert summary["hasRedFlags"] is True
    assert summary["riskScores"] == {"cardiovascular": 5, "bmi": 25.7}

    post = controller.postprocess(_ctx("", {**context, **pre.extra_data}, response="ignored"))
    text = post.override_response
    assert "Health Check-in Summary" in text
    assert "Age 40, female, BMI 25.7" in text
    assert "**Medical Conditions:** asthma" in text
    assert "radiation" in text
    assert text.rstrip().endswith("Please consult your healthcare provider for medical advice.*")


def test_apply_rules_respects_exclusive_groups():
    rules = [
        rule("severity", "severe", r"severe", red_flag="severe", group="severity"),
        rule("severity", "mild", r"mild|severe", group="severity"),
        rule("fever", True, r"fever", red_flag="fever"),
    ]
    symptoms, flags = apply_rules(rules, "severe pain with fever")
    assert symptoms == {"severity": "severe", "fever": True}
    assert flags == ["severe", "fever"]


def test_default_registry_exposes_names_and_class_aliases():
    registry = build_default_registry()
    assert "cardio_symptoms" in registry
    assert registry.get("CardioSymptomsController") is registry.get("cardio_symptoms")
    assert registry.get(None) is None
    with pytest.raises(KeyError):
        registry.resolve("missing")


def test_registry_rejects_controllers_without_hooks():
    with pytest.raises(TypeError):
        ControllerRegistry().register("empty", object())

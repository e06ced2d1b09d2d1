"""
Tests for the conversational responder.
"""
import pytest

from maternal_triage.domain.responder import (
    EMERGENCY_RECOMMENDATIONS,
    GENERAL_GREETING,
    INTENT_TEMPLATES,
    ConversationalResponder,
    calculate_risk_level,
)
from maternal_triage.enums import EmotionalTone, Intent, RiskLevel, SymptomSeverity, UserRole
from maternal_triage.schemas import ConversationContext, ExtractedSymptom


def _symptom(name, severity=SymptomSeverity.MODERATE):
    return ExtractedSymptom(name=name, severity=severity)


class TestCalculateRiskLevel:
    """Tests for symptom-severity risk."""

    def test_no_symptoms_is_level_1(self) -> None:
        assert calculate_risk_level([], ["obesity"]) is RiskLevel.LEVEL_1

    def test_severity_bands(self) -> None:
        assert calculate_risk_level([_symptom("x", SymptomSeverity.CRITICAL)], []) is RiskLevel.LEVEL_4
        assert calculate_risk_level([_symptom("x", SymptomSeverity.SEVERE)], []) is RiskLevel.LEVEL_3
        assert calculate_risk_level([_symptom("a"), _symptom("b")], []) is RiskLevel.LEVEL_3
        assert calculate_risk_level([_symptom("a")], []) is RiskLevel.LEVEL_2

    def test_mild_with_risk_factors(self) -> None:
        """Mild symptoms move to level 2 only when risk factors are present."""
        mild = [_symptom("fatigue", SymptomSeverity.MILD)]
        assert calculate_risk_level(mild, []) is RiskLevel.LEVEL_1
        assert calculate_risk_level(mild, ["diabetes"]) is RiskLevel.LEVEL_2


class TestRespond:
    """Tests for intent and risk templates."""

    def setup_method(self) -> None:
        self.responder = ConversationalResponder()
        self.context = ConversationContext(session_id="s1", user_id="u1")

    def test_symptom_report_escalates_at_level_3(self) -> None:
        reply = self.responder.respond(
            self.context, Intent.SYMPTOM_REPORT,
            [_symptom("headache", SymptomSeverity.SEVERE)], [], UserRole.PATIENT,
        )
        assert reply.risk_level is RiskLevel.LEVEL_3
        assert reply.requires_escalation is True
        assert "headache" in reply.escalation_reason
        assert "I'm concerned about headache" in reply.message
        assert reply.clinical_message is None

    def test_low_risk_symptom_report_does_not_escalate(self) -> None:
        reply = self.responder.respond(
            self.context, Intent.SYMPTOM_REPORT,
            [_symptom("fatigue", SymptomSeverity.MILD)], [], UserRole.PATIENT,
        )
        assert reply.risk_level is RiskLevel.LEVEL_1
        assert reply.requires_escalation is False
        assert reply.recommendations[0] == "Monitor symptoms"

    def test_clinician_gets_clinical_summary(self) -> None:
        self.context.gestational_week = 30
        reply = self.responder.respond(
            self.context, Intent.SYMPTOM_REPORT, [_symptom("nausea")], [], UserRole.CLINICIAN,
        )
        assert reply.message.startswith("Patient reported nausea. Moderate concern.")
        assert "Pregnancy week: 30" in reply.clinical_message
        assert "nausea(moderate)" in reply.clinical_message

    def test_intent_templates(self) -> None:
        reply = self.responder.respond(self.context, Intent.NUTRITION, [], [], UserRole.PATIENT)
        assert reply.message == INTENT_TEMPLATES[Intent.NUTRITION][0]
        assert "Take prenatal vitamins daily" in reply.recommendations

    def test_emotional_support_uses_tone(self) -> None:
        self.context.emotional_tone = EmotionalTone.ANXIOUS
        reply = self.responder.respond(self.context, Intent.EMOTIONAL_SUPPORT, [], [], UserRole.PATIENT)
        assert reply.message.startswith("I hear that you're feeling worried")

    def test_general_falls_back_to_greeting(self) -> None:
        reply = self.responder.respond(self.context, Intent.GENERAL, [], [], UserRole.PATIENT)
        assert reply.message == GENERAL_GREETING
        assert reply.recommendations == []

    def test_confidence_is_mean_of_factors(self) -> None:
        """Intent clarity, symptom specificity and context completeness are averaged."""
        bare = self.responder.respond(self.context, Intent.QUESTION, [], [], UserRole.PATIENT)
        assert bare.confidence == pytest.approx((0.85 + 0.7 + 0.75) / 3)
        self.context.gestational_week = 20
        full = self.responder.respond(
            self.context, Intent.SYMPTOM_REPORT, [_symptom("nausea")], [], UserRole.PATIENT,
        )
        assert full.confidence == pytest.approx((0.85 + 0.9 + 0.9) / 3)


class TestEmergencyResponse:
    """Tests for the pre-check emergency reply."""

    def test_emergency_reply(self) -> None:
        context = ConversationContext(session_id="s1", user_id="u1", gestational_week=34)
        reply = ConversationalResponder().emergency_response(
            ("severe bleeding",), UserRole.CLINICIAN, context,
        )
        assert reply.intent is Intent.EMERGENCY
        assert reply.risk_level is RiskLevel.LEVEL_4
        assert reply.confidence == pytest.approx(0.95)
        assert reply.requires_escalation is True
        assert reply.recommendations == list(EMERGENCY_RECOMMENDATIONS)
        assert "severe bleeding" in reply.message
        assert "Pregnancy week: 34" in reply.clinical_message
        assert reply.symptoms[0].severity is SymptomSeverity.CRITICAL

    def test_patient_gets_no_clinical_message(self) -> None:
        context = ConversationContext(session_id="s1", user_id="u1")
        reply = ConversationalResponder().emergency_response(("seizure",), UserRole.PATIENT, context)
        assert reply.clinical_message is None

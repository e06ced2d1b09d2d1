"""
Tests for the agent pool.
"""
import pytest

from maternal_triage.agents import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentOutput,
    LearningOpportunityType,
    TriageBand,
    default_agent_specs,
    education,
    emergency,
    learning,
    obstetric,
    review_response,
    safety,
    triage,
)
from maternal_triage.enums import RiskLevel, Urgency, UserRole
from maternal_triage.schemas import ConversationContext, ConversationMessage, VitalSigns


def _input(message, role=UserRole.PATIENT, **context):
    return AgentInput(message=message, user_id="user-1", role=role, context=AgentContext(**context))


class TestAgentBase:
    """Tests for shared agent types."""

    def test_display_names(self):
        assert AgentKind.EMERGENCY.display_name == "Emergency Agent"
        assert AgentKind.TRIAGE.display_name == "Triage Agent"

    def test_meta_agents(self):
        assert AgentKind.SAFETY.is_meta is True
        assert AgentKind.LEARNING.is_meta is True
        assert AgentKind.OBSTETRIC.is_meta is False

    def test_abstain_output(self):
        output = AgentOutput.abstain(AgentKind.EDUCATION, 60, "boom")
        assert output.abstained is True
        assert output.confidence == 0.0
        assert output.escalate is False

    def test_default_specs_registration_order(self):
        kinds = [spec.kind for spec in default_agent_specs()]
        assert kinds == [AgentKind.TRIAGE, AgentKind.EMERGENCY, AgentKind.SAFETY,
                         AgentKind.OBSTETRIC, AgentKind.EDUCATION, AgentKind.LEARNING]

    def test_context_snapshot_from_conversation(self):
        conversation = ConversationContext(session_id="s", user_id="u", gestational_week=30)
        for i in range(12):
            conversation.add_message(ConversationMessage.user_message(f"message {i}"))
        snapshot = AgentContext.from_conversation(
            conversation, vital_signs=VitalSigns(systolic_bp=120), history_window=10,
            risk_level=RiskLevel.LEVEL_3,
        )
        assert snapshot.pregnancy_week == 30
        assert snapshot.risk_level is RiskLevel.LEVEL_3
        assert len(snapshot.previous_messages) == 10
        assert snapshot.previous_messages[-1] == ("user", "message 11")
        assert snapshot.vital_signs == {"systolic_bp": 120}


class TestTriageAgent:
    """Tests for keyword-count triage."""

    def test_classification_bands(self):
        assert triage.classify(2, 0) == (TriageBand.EMERGENCY, 0.95)
        assert triage.classify(1, 5) == (TriageBand.URGENT, 0.85)
        assert triage.classify(0, 2) == (TriageBand.MODERATE, 0.8)
        assert triage.classify(0, 1) == (TriageBand.MODERATE, 0.75)
        assert triage.classify(0, 0) == (TriageBand.ROUTINE, 0.7)

    def test_urgent_keywords_escalate(self):
        output = triage.process(_input("there is some bleeding"))
        assert output.metadata["urgency_level"] == "urgent"
        assert output.escalate is True
        assert "bleeding" in output.escalation_reason

    def test_high_risk_context_raises_band(self):
        """Level 3/4 context moves the band up one step and adds confidence."""
        output = triage.process(_input("I have a headache", risk_level=RiskLevel.LEVEL_3))
        assert output.metadata["urgency_level"] == "urgent"
        assert output.confidence == pytest.approx(0.85)

    def test_late_pregnancy_lifts_routine(self):
        output = triage.process(_input("just checking in", pregnancy_week=38))
        assert output.metadata["urgency_level"] == "moderate"
        assert output.confidence == pytest.approx(0.75)
        assert output.escalate is False

    def test_confidence_ceiling(self):
        output = triage.process(_input("severe bleeding emergency", risk_level=RiskLevel.LEVEL_4,
                                       pregnancy_week=38))
        assert output.confidence == pytest.approx(0.98)

    def test_band_to_urgency(self):
        assert TriageBand.MODERATE.to_urgency() is Urgency.SOON
        assert TriageBand.EMERGENCY.raised() is TriageBand.EMERGENCY


class TestEmergencyAgent:
    """Tests for crisis pattern detection."""

    def test_critical_pattern_preferred(self):
        output = emergency.process(_input("labor pains and now heavy bleeding"))
        assert output.escalate is True
        assert output.metadata["severity"] == "critical"
        assert output.metadata["action"] == "call_emergency"
        assert output.response == emergency.EMERGENCY_RESPONSES[emergency.EmergencyAction.CALL_EMERGENCY]

    def test_crisis_line(self):
        output = emergency.process(_input("I want to die"))
        assert output.metadata["action"] == "crisis_line"
        assert "988" in output.response

    def test_precheck_keywords_escalate_without_pattern(self):
        """Pre-check hits with no crisis pattern escalate to urgent care."""
        agent_input = AgentInput(message="blurred vision since noon", user_id="u",
                                 emergency_keywords=("blurred vision",))
        assert emergency.should_activate(agent_input) is True
        output = emergency.process(agent_input)
        assert output.escalate is True
        assert output.metadata["severity"] == "high"
        assert output.metadata["action"] == "urgent_care"
        assert output.escalation_reason == "Emergency keywords detected: blurred vision"

    def test_inactive_without_signals(self):
        assert emergency.should_activate(_input("what should I eat")) is False


class TestSafetyAgent:
    """Tests for input flags and output filtering."""

    def test_unsafe_topic_redirects(self):
        output = safety.process(_input("how do I induce labor at home"))
        assert output.metadata["safety_level"] == "unsafe"
        assert output.requires_human_review is True
        assert "induce labor at home" in output.response

    def test_disclaimer_trigger(self):
        output = safety.process(_input("what dosage is safe"))
        assert output.metadata["safety_level"] == "caution"
        assert output.response == safety.DISCLAIMER

    def test_definitive_claims_hedged(self):
        review = review_response("You definitely have an infection and this will cure it.")
        assert review.approved is False
        assert "You may indicate" not in review.modified_response
        assert "definitely have" not in review.modified_response
        assert "will cure" not in review.modified_response
        assert len(review.issues) == 2

    def test_provider_reminder_appended(self):
        review = review_response("You should rest more.")
        assert review.approved is True
        assert review.modified_response.endswith(safety.PROVIDER_REMINDER)

    def test_review_is_idempotent(self):
        """Reviewing an already reviewed response changes nothing."""
        for text in ("You definitely have anemia. I recommend iron.",
                     "This is certainly fine, you DON'T NEED TO SEE A DOCTOR.",
                     "Rest well."):
            once = review_response(text).modified_response
            twice = review_response(once)
            assert twice.modified_response == once
            assert twice.approved is True


class TestObstetricAgent:
    """Tests for week-range guidance."""

    def test_activates_on_week_or_topic(self):
        assert obstetric.should_activate(_input("hello", pregnancy_week=10)) is True
        assert obstetric.should_activate(_input("is my baby growing")) is True
        assert obstetric.should_activate(_input("hello")) is False

    def test_weekly_guidance(self):
        output = obstetric.process(_input("hello", pregnancy_week=24))
        assert output.response.startswith("At week 24 of pregnancy (second trimester)")
        assert "Glucose screening" in output.response
        assert output.confidence == pytest.approx(0.85)

    def test_full_term_guidance(self):
        assert obstetric.weekly_info(40).baby_development == "Baby is full-term and ready for birth."

    def test_asks_for_week(self):
        output = obstetric.process(_input("my baby"))
        assert output.response == obstetric.ASK_FOR_WEEK
        assert output.confidence == pytest.approx(0.7)


class TestEducationAgent:
    """Tests for topic explanations."""

    def test_topic_first_match(self):
        assert education.detect_topic("tell me about nausea and food") == "morning_sickness"
        assert education.detect_topic("explain something") == "general"

    def test_patient_and_clinical_phrasing(self):
        patient = education.process(_input("tell me about labor"))
        clinician = education.process(_input("tell me about labor", role=UserRole.CLINICIAN))
        assert patient.response == education.PATIENT_EXPLANATIONS["labor"]
        assert clinician.response.startswith("Clinical Reference for labor")
        assert clinician.metadata["language_level"] == "clinical"


class TestLearningAgent:
    """Tests for learning opportunity detection."""

    def test_unknown_terms_and_feedback(self):
        output = learning.process(_input("that was wrong about my symphysis discomfort"))
        kinds = [o.opportunity_type for o in output.metadata["learning_opportunities"]]
        assert LearningOpportunityType.KNOWLEDGE_GAP in kinds
        assert LearningOpportunityType.FEEDBACK_NEEDED in kinds
        assert output.response == "Learning analysis complete."

    def test_known_terms_ignored(self):
        assert learning.find_unknown_terms("preeclampsia contractions") == []

    def test_unusual_case(self):
        output = learning.process(_input("ok", symptoms=("nausea", "fever", "swelling")))
        assert output.metadata["total_opportunities"] == 1
        assert output.metadata["learning_opportunities"][0].opportunity_type == \
            LearningOpportunityType.UNUSUAL_CASE

"""
Tests for the agent orchestrator.
"""
import pytest

from maternal_triage.agents import (
    AgentContext,
    AgentKind,
    AgentOutput,
    AgentSpec,
    LearningOpportunityType,
    TriageBand,
    default_agent_specs,
    emergency,
)
from maternal_triage.domain.orchestrator import (
    EMERGENCY_SAFETY_BYPASS,
    SAFETY_PRECEDENCE,
    TRIAGE_EMERGENCY_CONFLICT,
    AgentOrchestrator,
)
from maternal_triage.enums import UserRole


def _replace(kind, spec):
    return tuple(spec if s.kind is kind else s for s in default_agent_specs())


def _boom(agent_input):
    raise RuntimeError("agent crashed")


class TestEmergencyOverride:
    """Emergency escalation short-circuits the weighted vote."""

    def setup_method(self):
        self.orchestrator = AgentOrchestrator()

    def test_severe_bleeding_overrides(self):
        result = self.orchestrator.process("I have severe bleeding and feel dizzy", "user-1")
        assert result.emergency_override is True
        assert result.requires_escalation is True
        assert result.contributing_agents == ["Emergency Agent"]
        assert result.safety_checked is False
        assert result.overall_confidence == pytest.approx(0.95)
        assert result.final_response == emergency.EMERGENCY_RESPONSES[emergency.EmergencyAction.CALL_EMERGENCY]
        assert result.reasoning.safety_filter_result == EMERGENCY_SAFETY_BYPASS

    def test_agreeing_triage_means_consensus(self):
        result = self.orchestrator.process("I have severe bleeding and feel dizzy", "user-1")
        assert result.triage_band is TriageBand.EMERGENCY
        assert result.conflicts_resolved == []
        assert result.consensus_reached is True

    def test_routine_triage_conflict_resolved_for_safety(self):
        """Routine triage against a detected emergency is recorded and emergency wins."""
        result = self.orchestrator.process("I think my waters breaking", "user-1")
        assert result.triage_band is TriageBand.ROUTINE
        assert result.emergency_override is True
        assert result.conflicts_resolved == [TRIAGE_EMERGENCY_CONFLICT]
        assert result.consensus_reached is False
        assert result.reasoning.conflict_resolution == SAFETY_PRECEDENCE
        assert self.orchestrator.get_statistics()["conflicts"] == 1

    def test_precheck_keyword_alone_escalates(self):
        result = self.orchestrator.process("I have blurred vision since noon", "user-1")
        assert result.emergency_override is True
        assert result.final_response == emergency.EMERGENCY_RESPONSES[emergency.EmergencyAction.URGENT_CARE]
        assert result.learning_opportunity is None

    def test_keyword_at_end_of_long_message_overrides(self):
        message = "I have been feeling okay. " * 400 + "Now I have contractions."
        result = self.orchestrator.process(message, "user-1")
        assert result.emergency_override is True
        assert result.contributing_agents == ["Emergency Agent"]
        assert result.requires_escalation is True


class TestConsensus:
    """Weighted vote across content agents."""

    def setup_method(self):
        self.orchestrator = AgentOrchestrator()

    def test_obstetric_selected_for_week_question(self):
        result = self.orchestrator.process(
            "What should I eat at week 24?", "user-1", context=AgentContext(pregnancy_week=24),
        )
        assert result.emergency_override is False
        assert result.safety_checked is True
        assert result.requires_escalation is False
        assert result.final_response.startswith("At week 24 of pregnancy (second trimester)")
        selected = [v.agent for v in result.reasoning.agent_responses if v.selected]
        assert selected == ["Obstetric Agent"]
        assert result.reasoning.safety_filter_result == "Passed safety review"

    def test_overall_confidence_is_mean_of_all_outputs(self):
        result = self.orchestrator.process(
            "What should I eat at week 24?", "user-1", context=AgentContext(pregnancy_week=24),
        )
        # triage .7, safety .9, obstetric .85, education .75, learning .7
        assert result.overall_confidence == pytest.approx(3.9 / 5)
        assert result.contributing_agents == [
            "Triage Agent", "Safety Agent", "Obstetric Agent", "Education Agent", "Learning Agent",
        ]

    def test_greeting_when_no_content_agent(self):
        specs = tuple(s for s in default_agent_specs() if s.kind.is_meta)
        orchestrator = AgentOrchestrator(specs=specs)
        patient = orchestrator.process("hello", "user-1")
        clinician = orchestrator.process("hello", "user-1", role=UserRole.CLINICIAN)
        assert patient.final_response.startswith("Hello! I'm your maternal health assistant")
        assert clinician.final_response == "Patient initiated general conversation. Awaiting specific inquiry."

    def test_selected_response_passes_safety_filter(self):
        def overconfident(agent_input):
            return AgentOutput(kind=AgentKind.EDUCATION, response="You definitely have preeclampsia.",
                               confidence=0.9, priority=60)

        orchestrator = AgentOrchestrator(specs=(
            AgentSpec(AgentKind.EDUCATION, 60, lambda i: True, overconfident),
        ))
        result = orchestrator.process("explain my results", "user-1")
        assert result.final_response == "may indicate preeclampsia."
        assert result.reasoning.safety_filter_result.startswith("Modified for safety")

    def test_learning_opportunity_surfaced(self):
        result = self.orchestrator.process("that answer was wrong", "user-1")
        assert result.learning_opportunity is not None
        assert result.learning_opportunity.opportunity_type is LearningOpportunityType.FEEDBACK_NEEDED


class TestAgentFailures:
    """A failing agent abstains instead of failing the turn."""

    def test_failing_process_abstains(self):
        specs = _replace(AgentKind.OBSTETRIC, AgentSpec(AgentKind.OBSTETRIC, 90, lambda i: True, _boom))
        orchestrator = AgentOrchestrator(specs=specs)
        result = orchestrator.process(
            "What should I eat at week 24?", "user-1", context=AgentContext(pregnancy_week=24),
        )
        obstetric = result.output_for(AgentKind.OBSTETRIC)
        assert obstetric.abstained is True
        assert "agent crashed" in obstetric.metadata["error"]
        assert result.final_response == "ROUTINE: No immediate concerns detected."
        assert result.overall_confidence == pytest.approx(3.05 / 5)
        assert "Obstetric Agent" not in result.contributing_agents
        assert orchestrator.get_statistics()["agent_failures"] == 1

    def test_failing_activation_skips_agent(self):
        specs = _replace(AgentKind.EDUCATION, AgentSpec(AgentKind.EDUCATION, 60, _boom, _boom))
        orchestrator = AgentOrchestrator(specs=specs)
        result = orchestrator.process("what is preeclampsia", "user-1")
        assert result.output_for(AgentKind.EDUCATION) is None
        assert orchestrator.get_statistics()["agent_failures"] == 1

    def test_statistics(self):
        orchestrator = AgentOrchestrator()
        orchestrator.process("hello", "user-1")
        orchestrator.process("severe bleeding", "user-1")
        stats = orchestrator.get_statistics()
        assert stats["turns"] == 2
        assert stats["emergency_overrides"] == 1
        assert stats["registered_agents"] == 6

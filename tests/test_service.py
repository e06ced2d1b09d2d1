"""
Integration tests for the turn pipeline.
"""
import json

import pytest

from maternal_triage.config import TriageConfig
from maternal_triage.domain.learning import LearningSettings
from maternal_triage.domain.service import TriageService, accumulated_symptoms
from maternal_triage.enums import Environment, Intent, RiskLevel, SymptomSeverity, Urgency, UserRole
from maternal_triage.infrastructure import (
    EscalationNotice, InMemoryKeyValueStore, LoggingEscalationNotifier, NotificationPort, PersistencePort,
)
from maternal_triage.schemas import ExtractedSymptom, VitalSigns


class FailingSink(PersistencePort):
    async def store_record(self, record):
        raise RuntimeError("database unavailable")


class FailingNotifier(NotificationPort):
    async def notify_escalation(self, notice):
        raise ConnectionError("pager offline")


class TestEmergencyTurn:
    """Emergency keywords short-circuit to the highest band."""

    @pytest.mark.asyncio
    async def test_emergency_short_circuit(self, service, notifier):
        result = await service.handle_message("s1", "user-1", "I have severe bleeding and feel dizzy")
        assert result.emergency is True
        assert result.intent is Intent.EMERGENCY
        assert result.risk_level is RiskLevel.LEVEL_4
        assert result.urgency is Urgency.EMERGENCY
        assert result.requires_escalation is True
        assert result.diagnostic is None
        assert result.orchestration.emergency_override is True
        assert result.response == result.orchestration.final_response
        assert "Seek immediate medical attention" in result.recommendations
        assert {"axis": "risk_level", "value": "level_4", "source": "emergency_precheck"} in result.risk_trace

    @pytest.mark.asyncio
    async def test_emergency_notifies(self, service, notifier):
        await service.handle_message("s1", "user-1", "severe bleeding")
        assert len(notifier.notices) == 1
        notice = notifier.notices[0]
        assert notice.emergency is True
        assert notice.risk_level is RiskLevel.LEVEL_4
        assert notice.anonymized_user_id.startswith("anon_")

    @pytest.mark.asyncio
    async def test_emergency_symptoms_recorded_in_context(self, service):
        await service.handle_message("s1", "user-1", "severe bleeding")
        context = await service.contexts.get("s1")
        assert context.current_intent is Intent.EMERGENCY
        assert context.risk_level is RiskLevel.LEVEL_4
        assert "severe bleeding" in context.symptom_names


class TestRoutineTurn:
    """Non-emergency turns run extraction, reasoning and the agent vote."""

    @pytest.mark.asyncio
    async def test_nutrition_question(self, service, notifier):
        result = await service.handle_message("s1", "user-1", "What should I eat?", week=24)
        assert result.emergency is False
        assert result.intent is Intent.NUTRITION
        assert result.risk_level is RiskLevel.LEVEL_1
        assert result.urgency is Urgency.ROUTINE
        assert result.requires_escalation is False
        assert result.response.startswith("At week 24 of pregnancy")
        assert "Take prenatal vitamins daily" in result.recommendations
        assert result.diagnostic is not None
        assert list(notifier.notices) == []

    @pytest.mark.asyncio
    async def test_vital_signs_raise_risk(self, service):
        result = await service.handle_message(
            "s1", "user-1", "just checking in", week=30,
            vital_signs=VitalSigns(systolic_bp=165, diastolic_bp=112),
        )
        assert result.risk_level is RiskLevel.LEVEL_4
        assert result.urgency is Urgency.EMERGENCY
        assert result.requires_escalation is True

    @pytest.mark.asyncio
    async def test_symptoms_accumulate_across_turns(self, service):
        await service.handle_message("s1", "user-1", "I have some nausea", week=20)
        result = await service.handle_message("s1", "user-1", "and now dizziness too")
        assert result.diagnostic is not None
        context = await service.contexts.get("s1")
        assert {"nausea", "dizziness"} <= set(context.symptom_names)
        assert context.turn_count == 2
        assert context.gestational_week == 20

    @pytest.mark.asyncio
    async def test_history(self, service):
        await service.handle_message("s1", "user-1", "hello")
        await service.handle_message("s1", "user-1", "what should I eat?")
        history = await service.get_history("s1")
        assert [m.role for m in history] == ["user", "assistant", "user", "assistant"]
        assert [m.content for m in await service.get_history("s1", limit=1)] == [history[-1].content]
        assert await service.end_session("s1") is True
        assert await service.get_history("s1") == []

    @pytest.mark.asyncio
    async def test_corrupt_context_is_reset(self, service, kv_store):
        await kv_store.set("context:s1", {"session_id": "s1", "gestational_week": 99})
        result = await service.handle_message("s1", "user-1", "hello")
        assert result.response
        assert (await service.contexts.get("s1")).turn_count == 1
        assert await kv_store.keys("context:") == ["context:s1"]
        assert (await kv_store.get("context:s1"))["turn_count"] == 1

    @pytest.mark.asyncio
    async def test_out_of_range_week_on_new_session_is_ignored(self, service):
        result = await service.handle_message("s1", "user-1", "I feel tired", week=50)
        assert result.response
        assert result.diagnostic is not None
        assert (await service.contexts.get("s1")).gestational_week is None

    @pytest.mark.asyncio
    async def test_out_of_range_week_keeps_known_week(self, service):
        await service.handle_message("s1", "user-1", "I feel tired", week=20)
        result = await service.handle_message("s1", "user-1", "still tired", week=50)
        assert result.diagnostic is not None
        assert (await service.contexts.get("s1")).gestational_week == 20


class TestRoleScoping:
    """Result projections depend on the caller's role."""

    @pytest.mark.asyncio
    async def test_patient_projection_hides_clinical_material(self, service):
        result = await service.handle_message("s1", "user-1", "I have a severe headache", week=30)
        data = result.to_dict()
        assert "clinical_message" not in data
        assert "risk_trace" not in data
        assert "orchestration" not in data
        assert set(data["explanation"]) == {"patient"}
        assert "%" not in json.dumps(data["explanation"], ensure_ascii=False)

    @pytest.mark.asyncio
    async def test_clinician_projection(self, service):
        result = await service.handle_message(
            "s1", "clinician-1", "patient reports nausea", role=UserRole.CLINICIAN, week=12,
        )
        data = result.to_dict()
        assert set(data["explanation"]) == {"clinician"}
        assert "risk_trace" in data
        assert data["orchestration"] is not None
        assert result.explanation_text.startswith("## Clinical Summary")

    @pytest.mark.asyncio
    async def test_admin_sees_both_views(self, service):
        result = await service.handle_message("s1", "admin-1", "hello", role=UserRole.ADMIN)
        assert set(result.to_dict()["explanation"]) == {"patient", "clinician"}


class TestCollaborators:
    """Persistence, learning and notification hand-off."""

    @pytest.mark.asyncio
    async def test_persisted_record_is_anonymized(self, service, record_sink):
        await service.handle_message("s1", "jane-doe-42", "My number is 555-123-4567, what should I eat?")
        record = record_sink.records[0]
        assert record["anonymized_user_id"].startswith("anon_")
        assert "jane-doe-42" not in json.dumps(record)
        assert "555-123-4567" not in record["message"]
        assert "[PHONE]" in record["message"]

    @pytest.mark.asyncio
    async def test_learning_record_created(self, service):
        result = await service.handle_message("s1", "user-1", "severe bleeding")
        record = await service.learning.get_record(result.learning_record_id)
        assert record.features.escalation_triggered is True
        assert record.is_learning_candidate is True
        stats = await service.learning.get_learning_stats()
        assert stats["total_conversations"] == 1
        assert stats["pending_review"] == 1

    @pytest.mark.asyncio
    async def test_learning_disabled(self, kv_store):
        config = TriageConfig(environment=Environment.TEST, learning=LearningSettings(enabled=False))
        service = TriageService(config, store=kv_store)
        result = await service.handle_message("s1", "user-1", "hello")
        assert result.learning_record_id is None

    @pytest.mark.asyncio
    async def test_failing_persistence_does_not_fail_turn(self, test_config):
        service = TriageService(test_config, persistence=FailingSink())
        result = await service.handle_message("s1", "user-1", "hello")
        assert result.collaborator_errors == ["persistence"]
        assert service.get_statistics()["collaborator_failures"] == 1
        assert await service.get_history("s1")

    @pytest.mark.asyncio
    async def test_failing_notifier_is_recorded(self, test_config):
        service = TriageService(test_config, notifier=FailingNotifier())
        result = await service.handle_message("s1", "user-1", "severe bleeding")
        assert result.requires_escalation is True
        assert result.collaborator_errors == ["notification"]

    @pytest.mark.asyncio
    async def test_statistics(self, service):
        await service.handle_message("s1", "user-1", "hello")
        await service.handle_message("s2", "user-2", "severe bleeding")
        stats = service.get_statistics()
        assert stats["turns"] == 2
        assert stats["emergencies"] == 1
        assert stats["escalations"] == 1
        assert stats["orchestrator"]["turns"] == 2


class TestAccumulatedSymptoms:
    """Per-name deduplication keeps the most severe report."""

    def test_keeps_highest_severity(self):
        symptoms = [
            ExtractedSymptom(name="headache", severity=SymptomSeverity.MILD),
            ExtractedSymptom(name="Headache", severity=SymptomSeverity.SEVERE),
            ExtractedSymptom(name="nausea"),
        ]
        result = accumulated_symptoms(symptoms)
        assert [(s.name, s.severity) for s in result] == [
            ("Headache", SymptomSeverity.SEVERE), ("nausea", SymptomSeverity.MODERATE),
        ]


class TestFromConfig:

    @pytest.mark.asyncio
    async def test_from_config_uses_supplied_store(self):
        store = InMemoryKeyValueStore()
        service = TriageService.from_config(TriageConfig(environment=Environment.TEST), store=store)
        assert service.get_statistics()["turns"] == 0
        await service.handle_message("s1", "user-1", "I feel tired")
        assert await store.keys("context:") == ["context:s1"]
        assert len(await store.keys("learning:")) >= 1


class TestLoggingEscalationNotifier:

    @pytest.mark.asyncio
    async def test_keeps_only_recent_notices(self):
        notifier = LoggingEscalationNotifier(max_notices=2)
        for i in range(3):
            await notifier.notify_escalation(EscalationNotice(
                session_id=f"s{i}", anonymized_user_id="anon_x", reason="test", risk_level=RiskLevel.LEVEL_4,
            ))
        assert [n.session_id for n in notifier.notices] == ["s1", "s2"]

"""
Maternal Triage - Turn Pipeline.
Wires extraction, reasoning, the agent pool and explanation around the context store.
"""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable
import structlog

from ..agents import AgentContext, AgentKind, default_agent_specs
from ..config import TriageConfig, get_config
from ..enums import EmotionalTone, Intent, RiskLevel, Urgency, UserRole
from ..exceptions import CollaboratorError, InvariantViolationError, StoreError
from ..infrastructure.collaborators import (
    EscalationNotice, InMemoryRecordSink, LoggingEscalationNotifier, NotificationPort, PersistencePort,
)
from ..infrastructure.store import ContextStore, InMemoryKeyValueStore, KeyValueStore
from ..observability import bind_turn_context, clear_turn_context
from ..schemas import (
    ConversationContext, ConversationMessage, DiagnosticInput, ExtractedSymptom, MAX_GESTATIONAL_WEEK,
    MedicalHistory, PregnancyStage, SymptomInput, VitalSigns,
)
from .explainability import ExplainabilityFormatter, Explanation, ExplanationContext, ExplanationSubject
from .extraction import ExtractionResult, LexicalExtractor
from .knowledge_base import KnowledgeBase
from .learning import ConversationFeatures, LearningSystem, ResponseSummary
from .orchestrator import AgentOrchestrator, OrchestratorResult
from .privacy import PIIAnonymizer
from .reasoner import DiagnosticReasoner, DiagnosticResult
from .responder import ConversationalResponder, ResponderReply
from .severity import RiskAccumulator

logger = structlog.get_logger(__name__)

_EMERGENCY_SEVERITY_BANDS: dict[str, tuple[RiskLevel, Urgency]] = {
    "critical": (RiskLevel.LEVEL_4, Urgency.EMERGENCY),
    "high": (RiskLevel.LEVEL_3, Urgency.URGENT),
}


@dataclass
class TurnResult:
    """Everything one turn produced, ready for the caller to render."""
    session_id: str
    role: UserRole
    response: str
    risk_level: RiskLevel
    urgency: Urgency
    requires_escalation: bool
    confidence: float
    intent: Intent
    escalation_reason: str | None = None
    recommendations: list[str] = field(default_factory=list)
    clinical_message: str | None = None
    emergency: bool = False
    explanation: Explanation | None = None
    explanation_text: str = ""
    orchestration: OrchestratorResult | None = None
    diagnostic: DiagnosticResult | None = None
    reply: ResponderReply | None = None
    extraction: ExtractionResult | None = None
    risk_trace: list[dict[str, str]] = field(default_factory=list)
    learning_record_id: str | None = None
    collaborator_errors: list[str] = field(default_factory=list)
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Role-scoped projection. Patients never see the clinical material."""
        is_patient = self.role is UserRole.PATIENT
        data: dict[str, Any] = {
            "session_id": self.session_id,
            "response": self.response,
            "intent": self.intent.value,
            "risk_level": self.risk_level.value,
            "urgency": self.urgency.value,
            "requires_escalation": self.requires_escalation,
            "escalation_reason": self.escalation_reason,
            "recommendations": list(self.recommendations),
            "confidence": round(self.confidence, 4),
            "emergency": self.emergency,
            "explanation": self.explanation.view_for(self.role) if self.explanation else None,
            "processing_time_ms": round(self.processing_time_ms, 2),
        }
        if not is_patient:
            data["clinical_message"] = self.clinical_message
            data["risk_trace"] = list(self.risk_trace)
            data["diagnostic"] = self.diagnostic.to_dict() if self.diagnostic else None
            data["orchestration"] = self.orchestration.to_dict() if self.orchestration else None
        return data


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def accumulated_symptoms(symptoms: list[ExtractedSymptom]) -> list[ExtractedSymptom]:
    """One entry per symptom name, keeping the most severe report."""
    by_name: dict[str, ExtractedSymptom] = {}
    for symptom in symptoms:
        key = symptom.name.lower()
        held = by_name.get(key)
        if held is None or symptom.severity.rank > held.severity.rank:
            by_name[key] = symptom
    return list(by_name.values())


def _usable_week(week: int | None) -> int | None:
    """Out-of-range gestational weeks are treated as unknown."""
    if week is None or 0 <= week <= MAX_GESTATIONAL_WEEK:
        return week
    logger.warning("gestational_week_ignored", week=week, max_week=MAX_GESTATIONAL_WEEK)
    return None


class TriageService:
    """Runs one conversational turn end to end.

    Turns for a session must be serialised by the caller; different
    sessions only share the read-only knowledge base.
    """

    def __init__(
        self,
        config: TriageConfig,
        *,
        store: KeyValueStore | None = None,
        persistence: PersistencePort | None = None,
        notifier: NotificationPort | None = None,
    ) -> None:
        self._config = config
        self._strict = config.strict_invariants
        backend = store if store is not None else InMemoryKeyValueStore()
        self._extractor = LexicalExtractor(config.extractor)
        self._reasoner = DiagnosticReasoner(
            config.reasoner, KnowledgeBase(), strict_invariants=self._strict,
        )
        self._responder = ConversationalResponder()
        self._orchestrator = AgentOrchestrator(
            config.orchestrator, self._extractor, default_agent_specs(), self._responder,
        )
        self._formatter = ExplainabilityFormatter(config.explainability)
        self._anonymizer = PIIAnonymizer(config.privacy)
        self._contexts = ContextStore(backend)
        self._learning = LearningSystem(config.learning, backend, self._anonymizer)
        self._persistence = persistence or InMemoryRecordSink()
        self._notifier = notifier or LoggingEscalationNotifier()
        self._stats = {"turns": 0, "emergencies": 0, "escalations": 0, "collaborator_failures": 0}

    @classmethod
    def from_config(cls, config: TriageConfig | None = None, **kwargs: Any) -> TriageService:
        return cls(config or get_config(), **kwargs)

    @property
    def contexts(self) -> ContextStore:
        return self._contexts

    @property
    def learning(self) -> LearningSystem:
        return self._learning

    @property
    def orchestrator(self) -> AgentOrchestrator:
        return self._orchestrator

    @property
    def reasoner(self) -> DiagnosticReasoner:
        return self._reasoner

    async def handle_message(
        self,
        session_id: str,
        user_id: str,
        message: str,
        role: UserRole = UserRole.PATIENT,
        week: int | None = None,
        vital_signs: VitalSigns | None = None,
        risk_factors: list[str] | None = None,
        medical_history: MedicalHistory | None = None,
        profile_risk_level: RiskLevel | None = None,
    ) -> TurnResult:
        """Process one message. Only invariant violations outside production raise."""
        start = time.perf_counter()
        self._stats["turns"] += 1
        week = _usable_week(week)
        context = await self._load_context(session_id, user_id, role, week, profile_risk_level)
        context.turn_count += 1
        bind_turn_context(session_id, context.turn_count)
        try:
            result = await self._run_turn(
                context, message or "", role, vital_signs, risk_factors or [], medical_history,
            )
            result.processing_time_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "turn_complete",
                risk_level=result.risk_level.value,
                urgency=result.urgency.value,
                escalated=result.requires_escalation,
                emergency=result.emergency,
                elapsed_ms=round(result.processing_time_ms, 2),
            )
            return result
        finally:
            clear_turn_context()

    async def _load_context(
        self, session_id: str, user_id: str, role: UserRole, week: int | None,
        profile_risk_level: RiskLevel | None,
    ) -> ConversationContext:
        try:
            return await self._contexts.get_or_create(session_id, user_id, role, week, profile_risk_level)
        except StoreError:
            logger.warning("context_reset", session_id=session_id)
            await self._contexts.clear(session_id)
            return await self._contexts.get_or_create(session_id, user_id, role, week, profile_risk_level)

    async def _run_turn(
        self,
        context: ConversationContext,
        message: str,
        role: UserRole,
        vital_signs: VitalSigns | None,
        risk_factors: list[str],
        medical_history: MedicalHistory | None,
    ) -> TurnResult:
        acc = RiskAccumulator(strict=self._strict)
        for factor in risk_factors:
            if factor not in context.risk_factors:
                context.risk_factors.append(factor)

        precheck = self._extractor.check_emergency(message)
        extraction: ExtractionResult | None = None
        diagnostic: DiagnosticResult | None = None
        if precheck.is_emergency:
            self._stats["emergencies"] += 1
            reply = self._responder.emergency_response(precheck.keywords, role, context)
            context.current_intent = Intent.EMERGENCY
            context.emotional_tone = EmotionalTone.URGENT
            context.add_symptoms(self._extractor.emergency_symptoms(precheck))
            context.add_message(ConversationMessage.user_message(message))
            acc.fold(RiskLevel.LEVEL_4, Urgency.EMERGENCY, source="emergency_precheck")
            intent, symptoms = Intent.EMERGENCY, list(reply.symptoms)
        else:
            extraction = self._extractor.extract(message, context)
            context.current_intent = extraction.intent
            context.emotional_tone = extraction.emotional_tone
            context.add_symptoms(extraction.symptoms)
            context.add_message(ConversationMessage.user_message(message))
            symptoms = accumulated_symptoms(context.symptoms)
            diagnostic = self._analyze(context, symptoms, vital_signs, medical_history)
            if diagnostic is not None:
                acc.fold(diagnostic.risk_level, diagnostic.urgency, source="reasoner")
            reply = self._responder.respond(
                context, extraction.intent, extraction.symptoms, extraction.entities, role,
            )
            acc.fold(reply.risk_level, source="responder")
            intent = extraction.intent

        orchestration = self._orchestrator.process(
            message, context.user_id, role,
            AgentContext.from_conversation(
                context, vital_signs=vital_signs, history_window=self._config.history_window,
                risk_level=acc.risk_level,
            ),
        )
        self._fold_orchestration(acc, orchestration)
        if precheck.is_emergency and not orchestration.emergency_override:
            response = reply.message
        else:
            response = orchestration.final_response

        recommendations = _dedupe(
            reply.recommendations + ([r.description for r in diagnostic.recommendations] if diagnostic else [])
        )
        requires_escalation = (
            orchestration.requires_escalation or reply.requires_escalation
            or acc.risk_level is RiskLevel.LEVEL_4
        )
        escalation_reason = (
            orchestration.escalation_details or reply.escalation_reason
            or (f"Risk level {acc.risk_level.value} assessed" if requires_escalation else None)
        )

        subject = ExplanationSubject.from_turn(
            risk_level=acc.risk_level,
            confidence=diagnostic.confidence if diagnostic else reply.confidence,
            intent=intent,
            symptoms=symptoms,
            recommendations=recommendations,
            diagnostic=diagnostic,
        )
        explanation = self._formatter.explain(
            subject,
            ExplanationContext(
                pregnancy_week=context.gestational_week,
                symptoms=[s.name for s in symptoms],
                risk_level=context.risk_level,
            ),
        )

        context.risk_level = acc.risk_level
        context.add_message(ConversationMessage.assistant_message(
            response, metadata={"risk_level": acc.risk_level.value, "escalated": requires_escalation},
        ))
        result = TurnResult(
            session_id=context.session_id,
            role=role,
            response=response,
            risk_level=acc.risk_level,
            urgency=acc.urgency,
            requires_escalation=requires_escalation,
            escalation_reason=escalation_reason,
            confidence=orchestration.overall_confidence,
            intent=intent,
            recommendations=recommendations,
            clinical_message=reply.clinical_message,
            emergency=precheck.is_emergency or orchestration.emergency_override,
            explanation=explanation,
            explanation_text=self._formatter.format_for_role(explanation, role),
            orchestration=orchestration,
            diagnostic=diagnostic,
            reply=reply,
            extraction=extraction,
            risk_trace=list(acc.raised_by),
        )
        await self._save_context(context)
        await self._hand_off(context, message, result)
        return result

    def _analyze(
        self,
        context: ConversationContext,
        symptoms: list[ExtractedSymptom],
        vital_signs: VitalSigns | None,
        medical_history: MedicalHistory | None,
    ) -> DiagnosticResult | None:
        try:
            data = DiagnosticInput(
                symptoms=[SymptomInput.from_extracted(s) for s in symptoms],
                pregnancy_stage=PregnancyStage.from_week(context.gestational_week),
                medical_history=medical_history or MedicalHistory(),
                risk_factors=list(context.risk_factors),
                vital_signs=vital_signs,
            )
            return self._reasoner.analyze_input(data)
        except InvariantViolationError:
            raise
        except Exception as e:
            logger.error("reasoning_failed", error=str(e), error_type=type(e).__name__)
            return None

    def _fold_orchestration(self, acc: RiskAccumulator, orchestration: OrchestratorResult) -> None:
        band = orchestration.triage_band
        if band is not None:
            acc.fold(urgency=band.to_urgency(), source="triage_agent")
        if orchestration.emergency_override:
            emergency = orchestration.output_for(AgentKind.EMERGENCY)
            severity = emergency.metadata.get("severity") if emergency else None
            risk_level, urgency = _EMERGENCY_SEVERITY_BANDS.get(
                severity, (RiskLevel.LEVEL_4, Urgency.EMERGENCY),
            )
            acc.fold(risk_level, urgency, source="emergency_agent")

    async def _save_context(self, context: ConversationContext) -> None:
        try:
            await self._contexts.save(context)
        except StoreError:
            logger.error("context_save_failed", session_id=context.session_id)

    async def _hand_off(self, context: ConversationContext, message: str, result: TurnResult) -> None:
        """Persistence, learning and notification. Failures are recorded, never raised."""
        anonymized_user = self._anonymizer.hash_user_id(context.user_id)
        record = {
            "session_id": context.session_id,
            "anonymized_user_id": anonymized_user,
            "message": self._anonymizer.sanitize(message),
            "response": self._anonymizer.sanitize(result.response),
            "intent": result.intent.value,
            "risk_level": result.risk_level.value,
            "urgency": result.urgency.value,
            "requires_escalation": result.requires_escalation,
            "symptoms": context.symptom_names,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self._deliver(result, "persistence", self._persistence.store_record(record))

        if self._config.learning.enabled:
            learning_record = await self._deliver(
                result, "learning", self._learning.record_conversation(
                    context.session_id, context.user_id,
                    [("user", message), ("assistant", result.response)],
                    self._features(context, result),
                    [self._response_summary(result)],
                ),
            )
            if learning_record is not None:
                result.learning_record_id = learning_record.record_id

        if result.requires_escalation:
            self._stats["escalations"] += 1
            notice = EscalationNotice(
                session_id=context.session_id,
                anonymized_user_id=anonymized_user,
                reason=self._anonymizer.sanitize(result.escalation_reason or ""),
                risk_level=result.risk_level,
                emergency=result.emergency,
            )
            await self._deliver(result, "notification", self._notifier.notify_escalation(notice))

    async def _deliver(self, result: TurnResult, collaborator: str, call: Awaitable[Any]) -> Any:
        try:
            return await self._await_collaborator(collaborator, call)
        except CollaboratorError as error:
            self._stats["collaborator_failures"] += 1
            result.collaborator_errors.append(collaborator)
            logger.error("collaborator_skipped", collaborator=collaborator, error=error.message)
            return None

    @staticmethod
    async def _await_collaborator(collaborator: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except Exception as e:
            raise CollaboratorError(collaborator, f"{collaborator} collaborator failed: {e}", cause=e) from e

    @staticmethod
    def _features(context: ConversationContext, result: TurnResult) -> ConversationFeatures:
        return ConversationFeatures(
            symptoms=[s.name for s in accumulated_symptoms(context.symptoms)],
            risk_level=result.risk_level,
            pregnancy_week=context.gestational_week,
            pregnancy_trimester=context.trimester,
            top_intent=result.intent.value,
            emotional_tone=context.emotional_tone.value,
            risk_factors=list(context.risk_factors),
            escalation_triggered=result.requires_escalation,
        )

    @staticmethod
    def _response_summary(result: TurnResult) -> ResponseSummary:
        orchestration = result.orchestration
        safety = orchestration.output_for(AgentKind.SAFETY) if orchestration else None
        return ResponseSummary(
            response_type=result.intent.value,
            risk_level=result.risk_level,
            recommendation_count=len(result.recommendations),
            confidence=result.confidence,
            escalated=result.requires_escalation,
            agents_used=list(orchestration.contributing_agents) if orchestration else [],
            safety_flags=list(safety.metadata.get("unsafe_topics_detected", [])) if safety else [],
        )

    async def get_history(self, session_id: str, limit: int | None = None) -> list[ConversationMessage]:
        return await self._contexts.get_history(session_id, limit)

    async def end_session(self, session_id: str) -> bool:
        return await self._contexts.clear(session_id)

    def get_statistics(self) -> dict[str, Any]:
        return {
            **self._stats,
            "extractor": self._extractor.get_statistics(),
            "reasoner": self._reasoner.get_statistics(),
            "orchestrator": self._orchestrator.get_statistics(),
            "learning": self._learning.get_statistics(),
        }

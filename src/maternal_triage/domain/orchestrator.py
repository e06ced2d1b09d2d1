"""
Maternal Triage - Agent Orchestrator.
Routes a turn through the agent pool, short-circuits on emergencies, selects a
response by weighted vote and resolves conflicts in favour of safety.
"""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from ..agents import (
    AgentContext, AgentInput, AgentKind, AgentOutput, AgentSpec, LearningOpportunity,
    TriageBand, default_agent_specs, review_response,
)
from ..enums import UserRole
from ..exceptions import AgentExecutionError
from .extraction import LexicalExtractor
from .responder import ConversationalResponder

logger = structlog.get_logger(__name__)

EMERGENCY_SAFETY_BYPASS = "Emergency override - safety check bypassed for urgency"
TRIAGE_EMERGENCY_CONFLICT = "Triage assessed as routine but Emergency Agent detected emergency patterns"
SAFETY_PRECEDENCE = "Conflicts resolved by prioritizing safety: Emergency Agent assessment takes precedence."


class OrchestratorSettings(BaseSettings):
    """Agent orchestration configuration."""
    emergency_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    priority_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    confidence_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    contribution_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_ORCHESTRATOR_", env_file=".env", extra="ignore")


@dataclass
class AgentVote:
    agent: str
    confidence: float
    selected: bool

    def to_dict(self) -> dict[str, Any]:
        return {"agent": self.agent, "confidence": self.confidence, "selected": self.selected}


@dataclass
class OrchestratorReasoning:
    routing_decision: str = ""
    agent_responses: list[AgentVote] = field(default_factory=list)
    safety_filter_result: str = ""
    conflict_resolution: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "routing_decision": self.routing_decision,
            "agent_responses": [v.to_dict() for v in self.agent_responses],
            "safety_filter_result": self.safety_filter_result,
            "conflict_resolution": self.conflict_resolution,
        }


@dataclass
class OrchestratorResult:
    """Outcome of routing one message through the agent pool."""
    final_response: str
    contributing_agents: list[str]
    consensus_reached: bool
    overall_confidence: float
    safety_checked: bool
    requires_escalation: bool
    conflicts_resolved: list[str] = field(default_factory=list)
    escalation_details: str | None = None
    learning_opportunity: LearningOpportunity | None = None
    requires_human_review: bool = False
    emergency_override: bool = False
    reasoning: OrchestratorReasoning = field(default_factory=OrchestratorReasoning)
    outputs: list[AgentOutput] = field(default_factory=list)
    processing_time_ms: float = 0.0

    def output_for(self, kind: AgentKind) -> AgentOutput | None:
        return next((o for o in self.outputs if o.kind is kind), None)

    @property
    def triage_band(self) -> TriageBand | None:
        triage = self.output_for(AgentKind.TRIAGE)
        if triage is None or triage.abstained:
            return None
        return TriageBand(triage.metadata["urgency_level"])

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_response": self.final_response,
            "contributing_agents": list(self.contributing_agents),
            "consensus_reached": self.consensus_reached,
            "conflicts_resolved": list(self.conflicts_resolved),
            "overall_confidence": round(self.overall_confidence, 4),
            "safety_checked": self.safety_checked,
            "requires_escalation": self.requires_escalation,
            "escalation_details": self.escalation_details,
            "learning_opportunity": self.learning_opportunity.to_dict() if self.learning_opportunity else None,
            "requires_human_review": self.requires_human_review,
            "emergency_override": self.emergency_override,
            "reasoning": self.reasoning.to_dict(),
        }


class AgentOrchestrator:
    """Coordinates the agent pool for a single turn.

    Holds no per-session state: ``process`` is pure over the supplied
    context snapshot, apart from the statistics counters.
    """

    def __init__(
        self,
        settings: OrchestratorSettings | None = None,
        extractor: LexicalExtractor | None = None,
        specs: tuple[AgentSpec, ...] | None = None,
        responder: ConversationalResponder | None = None,
    ) -> None:
        self._settings = settings or OrchestratorSettings()
        self._extractor = extractor or LexicalExtractor()
        self._specs = specs if specs is not None else default_agent_specs()
        self._responder = responder or ConversationalResponder()
        self._stats = {"turns": 0, "emergency_overrides": 0, "agent_failures": 0, "conflicts": 0}

    @property
    def specs(self) -> tuple[AgentSpec, ...]:
        return self._specs

    def process(
        self,
        message: str,
        user_id: str,
        role: UserRole = UserRole.PATIENT,
        context: AgentContext | None = None,
    ) -> OrchestratorResult:
        start = time.perf_counter()
        self._stats["turns"] += 1
        precheck = self._extractor.check_emergency(message)
        agent_input = AgentInput(
            message=message or "", user_id=user_id, role=role,
            context=context or AgentContext(), emergency_keywords=precheck.keywords,
        )
        reasoning = OrchestratorReasoning()

        active = [spec for spec in self._specs if self._activates(spec, agent_input)]
        active.sort(key=lambda s: s.priority, reverse=True)
        reasoning.routing_decision = (
            f"Activated {len(active)} agents: {', '.join(s.name for s in active)}"
        )
        outputs = [self._run(spec, agent_input) for spec in active]

        emergency = next(
            (o for o in outputs if o.kind is AgentKind.EMERGENCY and o.escalate and not o.abstained), None,
        )
        if emergency is not None:
            result = self._emergency_result(emergency, outputs, reasoning)
        else:
            result = self._consensus_result(outputs, reasoning, role)
        result.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "orchestration_complete",
            active_agents=len(active),
            emergency_override=result.emergency_override,
            requires_escalation=result.requires_escalation,
            confidence=round(result.overall_confidence, 3),
            elapsed_ms=round(result.processing_time_ms, 2),
        )
        return result

    def _activates(self, spec: AgentSpec, agent_input: AgentInput) -> bool:
        try:
            return self._invoke(spec, spec.should_activate, agent_input)
        except AgentExecutionError:
            return False

    def _run(self, spec: AgentSpec, agent_input: AgentInput) -> AgentOutput:
        try:
            return self._invoke(spec, spec.process, agent_input)
        except AgentExecutionError as error:
            return AgentOutput.abstain(spec.kind, spec.priority, error.message)

    def _invoke(self, spec: AgentSpec, fn: Any, agent_input: AgentInput) -> Any:
        """Call an agent function; any failure becomes an AgentExecutionError."""
        try:
            return fn(agent_input)
        except Exception as e:
            self._stats["agent_failures"] += 1
            raise AgentExecutionError(spec.name, f"Agent '{spec.name}' failed and abstained: {e}",
                                      cause=e) from e

    def _emergency_result(
        self, emergency: AgentOutput, outputs: list[AgentOutput], reasoning: OrchestratorReasoning,
    ) -> OrchestratorResult:
        self._stats["emergency_overrides"] += 1
        reasoning.agent_responses = [
            AgentVote(o.agent_name, o.confidence, o.kind is AgentKind.EMERGENCY) for o in outputs
        ]
        reasoning.safety_filter_result = EMERGENCY_SAFETY_BYPASS
        conflicts = self._detect_conflicts(outputs)
        if conflicts:
            reasoning.conflict_resolution = SAFETY_PRECEDENCE
        logger.warning("emergency_override", reason=emergency.escalation_reason)
        return OrchestratorResult(
            final_response=emergency.response,
            contributing_agents=[AgentKind.EMERGENCY.display_name],
            consensus_reached=not conflicts,
            conflicts_resolved=conflicts,
            overall_confidence=self._settings.emergency_confidence,
            safety_checked=False,
            requires_escalation=True,
            escalation_details=emergency.escalation_reason,
            requires_human_review=any(o.requires_human_review for o in outputs),
            emergency_override=True,
            reasoning=reasoning,
            outputs=outputs,
        )

    def _consensus_result(
        self, outputs: list[AgentOutput], reasoning: OrchestratorReasoning, role: UserRole,
    ) -> OrchestratorResult:
        selected = self._select(outputs)
        reasoning.agent_responses = [
            AgentVote(o.agent_name, o.confidence, o is selected) for o in outputs
        ]
        candidate = selected.response if selected else self._responder.general_greeting(role)
        review = review_response(candidate)
        reasoning.safety_filter_result = (
            "Passed safety review" if review.approved
            else f"Modified for safety: {', '.join(review.issues)}"
        )
        conflicts = self._detect_conflicts(outputs)
        if conflicts:
            reasoning.conflict_resolution = SAFETY_PRECEDENCE
        escalating = next((o for o in outputs if o.escalate), None)
        return OrchestratorResult(
            final_response=review.modified_response,
            contributing_agents=[
                o.agent_name for o in outputs if o.confidence > self._settings.contribution_threshold
            ],
            consensus_reached=not conflicts,
            conflicts_resolved=conflicts,
            overall_confidence=self._overall_confidence(outputs),
            safety_checked=True,
            requires_escalation=escalating is not None,
            escalation_details=escalating.escalation_reason if escalating else None,
            learning_opportunity=self._first_learning_opportunity(outputs),
            requires_human_review=any(o.requires_human_review for o in outputs),
            reasoning=reasoning,
            outputs=outputs,
        )

    def _select(self, outputs: list[AgentOutput]) -> AgentOutput | None:
        """Highest ``w_p * priority/100 + w_c * confidence`` among content agents; first wins ties."""
        best: AgentOutput | None = None
        best_score = -1.0
        for output in outputs:
            if output.kind.is_meta or output.abstained:
                continue
            score = (self._settings.priority_weight * (output.priority / 100)
                     + self._settings.confidence_weight * output.confidence)
            if score > best_score:
                best, best_score = output, score
        return best

    def _detect_conflicts(self, outputs: list[AgentOutput]) -> list[str]:
        triage = next((o for o in outputs if o.kind is AgentKind.TRIAGE and not o.abstained), None)
        emergency = next((o for o in outputs if o.kind is AgentKind.EMERGENCY and not o.abstained), None)
        if triage is None or emergency is None:
            return []
        if (triage.metadata.get("urgency_level") == TriageBand.ROUTINE.value
                and emergency.metadata.get("emergency_detected")):
            self._stats["conflicts"] += 1
            logger.info("agent_conflict_detected", agents=[triage.agent_name, emergency.agent_name])
            return [TRIAGE_EMERGENCY_CONFLICT]
        return []

    @staticmethod
    def _overall_confidence(outputs: list[AgentOutput]) -> float:
        if not outputs:
            return 0.0
        return sum(o.confidence for o in outputs) / len(outputs)

    @staticmethod
    def _first_learning_opportunity(outputs: list[AgentOutput]) -> LearningOpportunity | None:
        for output in outputs:
            if output.kind is AgentKind.LEARNING and not output.abstained:
                opportunities = output.metadata.get("learning_opportunities") or []
                return opportunities[0] if opportunities else None
        return None

    def get_statistics(self) -> dict[str, Any]:
        return {**self._stats, "registered_agents": len(self._specs)}

"""
Maternal Triage - Agent Pool Types.
Tagged agent variants: each AgentKind is paired with pure activation and
processing functions instead of a class hierarchy.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, NamedTuple

from ..enums import RiskLevel, UserRole
from ..schemas import ConversationContext, VitalSigns


class AgentKind(str, Enum):
    """Agents in the pool, keyed by their stable identifier."""
    TRIAGE = "triage_agent"
    EMERGENCY = "emergency_agent"
    SAFETY = "safety_agent"
    OBSTETRIC = "obstetric_agent"
    EDUCATION = "education_agent"
    LEARNING = "learning_agent"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_meta(self) -> bool:
        """Meta agents review or observe; they never supply the response."""
        return self in (AgentKind.SAFETY, AgentKind.LEARNING)


_DISPLAY_NAMES: dict[AgentKind, str] = {
    AgentKind.TRIAGE: "Triage Agent",
    AgentKind.EMERGENCY: "Emergency Agent",
    AgentKind.SAFETY: "Safety Agent",
    AgentKind.OBSTETRIC: "Obstetric Agent",
    AgentKind.EDUCATION: "Education Agent",
    AgentKind.LEARNING: "Learning Agent",
}


class LearningOpportunityType(str, Enum):
    NEW_SYMPTOM_PATTERN = "new_symptom_pattern"
    UNUSUAL_CASE = "unusual_case"
    FEEDBACK_NEEDED = "feedback_needed"
    KNOWLEDGE_GAP = "knowledge_gap"


@dataclass(frozen=True)
class AgentContext:
    """Read-only snapshot of session state handed to every agent."""
    pregnancy_week: int | None = None
    risk_level: RiskLevel | None = None
    previous_messages: tuple[tuple[str, str], ...] = ()
    symptoms: tuple[str, ...] = ()
    vital_signs: dict[str, float] = field(default_factory=dict)
    risk_factors: tuple[str, ...] = ()

    @classmethod
    def from_conversation(
        cls,
        context: ConversationContext,
        *,
        vital_signs: VitalSigns | None = None,
        history_window: int = 10,
        risk_level: RiskLevel | None = None,
    ) -> AgentContext:
        """Snapshot a live session; ``risk_level`` overrides the stored level."""
        return cls(
            pregnancy_week=context.gestational_week,
            risk_level=risk_level or context.risk_level,
            previous_messages=tuple(
                (m.role, m.content) for m in context.recent_messages(history_window)
            ),
            symptoms=tuple(context.symptom_names),
            vital_signs=vital_signs.provided() if vital_signs else {},
            risk_factors=tuple(context.risk_factors),
        )


@dataclass(frozen=True)
class AgentInput:
    message: str
    user_id: str
    role: UserRole = UserRole.PATIENT
    context: AgentContext = field(default_factory=AgentContext)
    emergency_keywords: tuple[str, ...] = ()

    @property
    def message_lower(self) -> str:
        return self.message.lower()


@dataclass
class LearningOpportunity:
    opportunity_type: LearningOpportunityType
    description: str
    suggested_action: str
    data_for_review: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.opportunity_type.value,
            "description": self.description,
            "suggested_action": self.suggested_action,
            "data_for_review": dict(self.data_for_review),
        }


@dataclass
class AgentOutput:
    """One agent's confidence-weighted contribution to a turn."""
    kind: AgentKind
    response: str
    confidence: float
    priority: int
    metadata: dict[str, Any] = field(default_factory=dict)
    requires_human_review: bool = False
    escalate: bool = False
    escalation_reason: str | None = None
    abstained: bool = False

    @property
    def agent_name(self) -> str:
        return self.kind.display_name

    @classmethod
    def abstain(cls, kind: AgentKind, priority: int, error: str) -> AgentOutput:
        """Empty output for an agent that failed."""
        return cls(kind=kind, response="", confidence=0.0, priority=priority,
                   metadata={"error": error}, abstained=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.kind.value,
            "agent_name": self.agent_name,
            "response": self.response,
            "confidence": self.confidence,
            "priority": self.priority,
            "metadata": self.metadata,
            "requires_human_review": self.requires_human_review,
            "escalate": self.escalate,
            "escalation_reason": self.escalation_reason,
            "abstained": self.abstained,
        }


class AgentSpec(NamedTuple):
    """Pairs an agent kind with its activation and processing functions."""
    kind: AgentKind
    priority: int
    should_activate: Callable[[AgentInput], bool]
    process: Callable[[AgentInput], AgentOutput]

    @property
    def name(self) -> str:
        return self.kind.display_name

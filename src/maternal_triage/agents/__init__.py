"""
Maternal Triage - Agent Pool.
Triage, emergency, safety, obstetric, education and learning agents.
"""
from .base import (
    AgentContext,
    AgentInput,
    AgentKind,
    AgentOutput,
    AgentSpec,
    LearningOpportunity,
    LearningOpportunityType,
)
from . import education, emergency, learning, obstetric, safety, triage
from .safety import SafetyReview, review_response
from .triage import TriageBand


def default_agent_specs() -> tuple[AgentSpec, ...]:
    """The standard pool, in registration order."""
    return (
        AgentSpec(AgentKind.TRIAGE, triage.PRIORITY, triage.should_activate, triage.process),
        AgentSpec(AgentKind.EMERGENCY, emergency.PRIORITY, emergency.should_activate, emergency.process),
        AgentSpec(AgentKind.SAFETY, safety.PRIORITY, safety.should_activate, safety.process),
        AgentSpec(AgentKind.OBSTETRIC, obstetric.PRIORITY, obstetric.should_activate, obstetric.process),
        AgentSpec(AgentKind.EDUCATION, education.PRIORITY, education.should_activate, education.process),
        AgentSpec(AgentKind.LEARNING, learning.PRIORITY, learning.should_activate, learning.process),
    )


__all__ = [
    "AgentContext",
    "AgentInput",
    "AgentKind",
    "AgentOutput",
    "AgentSpec",
    "LearningOpportunity",
    "LearningOpportunityType",
    "SafetyReview",
    "TriageBand",
    "default_agent_specs",
    "review_response",
]

"""
Maternal Triage - Triage Agent.
Keyword-count urgency banding with context and late-pregnancy adjustments.
"""
from __future__ import annotations
from enum import Enum

from ..enums import RiskLevel, Urgency
from .base import AgentInput, AgentKind, AgentOutput

PRIORITY = 100

URGENT_KEYWORDS: tuple[str, ...] = (
    "emergency", "urgent", "severe", "intense", "unbearable",
    "bleeding", "hemorrhage", "unconscious", "seizure", "can't breathe",
    "chest pain", "no movement", "water broke", "contractions",
)

MODERATE_KEYWORDS: tuple[str, ...] = (
    "worried", "concerned", "persistent", "worsening", "increasing",
    "fever", "pain", "swelling", "headache", "nausea",
)

LATE_PREGNANCY_WEEK = 36
CONFIDENCE_CEILING = 0.98


class TriageBand(str, Enum):
    """Triage urgency bands, ascending."""
    ROUTINE = "routine"
    MODERATE = "moderate"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    def raised(self) -> TriageBand:
        order = list(TriageBand)
        return order[min(order.index(self) + 1, len(order) - 1)]

    def to_urgency(self) -> Urgency:
        return _BAND_URGENCY[self]


_BAND_URGENCY: dict[TriageBand, Urgency] = {
    TriageBand.ROUTINE: Urgency.ROUTINE,
    TriageBand.MODERATE: Urgency.SOON,
    TriageBand.URGENT: Urgency.URGENT,
    TriageBand.EMERGENCY: Urgency.EMERGENCY,
}

_RESPONSES: dict[TriageBand, str] = {
    TriageBand.EMERGENCY: "EMERGENCY TRIAGE: Immediate medical attention required.",
    TriageBand.URGENT: "URGENT TRIAGE: Please seek medical attention within the next few hours.",
    TriageBand.MODERATE: "MODERATE CONCERN: Consider contacting your healthcare provider soon.",
    TriageBand.ROUTINE: "ROUTINE: No immediate concerns detected.",
}


def should_activate(agent_input: AgentInput) -> bool:
    return True


def classify(urgent_count: int, moderate_count: int) -> tuple[TriageBand, float]:
    """Band and base confidence from keyword counts."""
    if urgent_count >= 2:
        return TriageBand.EMERGENCY, 0.95
    if urgent_count == 1:
        return TriageBand.URGENT, 0.85
    if moderate_count >= 2:
        return TriageBand.MODERATE, 0.8
    if moderate_count == 1:
        return TriageBand.MODERATE, 0.75
    return TriageBand.ROUTINE, 0.7


def process(agent_input: AgentInput) -> AgentOutput:
    text = agent_input.message_lower
    urgent = [k for k in URGENT_KEYWORDS if k in text]
    moderate = [k for k in MODERATE_KEYWORDS if k in text]
    band, confidence = classify(len(urgent), len(moderate))

    context = agent_input.context
    if context.risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4):
        band = band.raised()
        confidence = min(confidence + 0.1, CONFIDENCE_CEILING)
    if context.pregnancy_week is not None and context.pregnancy_week > LATE_PREGNANCY_WEEK:
        if band is TriageBand.ROUTINE:
            band = TriageBand.MODERATE
        confidence = min(confidence + 0.05, CONFIDENCE_CEILING)

    output = AgentOutput(
        kind=AgentKind.TRIAGE,
        response=_RESPONSES[band],
        confidence=confidence,
        priority=PRIORITY,
        metadata={
            "urgency_level": band.value,
            "urgent_keywords_found": urgent,
            "moderate_keywords_found": moderate,
        },
    )
    if band in (TriageBand.EMERGENCY, TriageBand.URGENT):
        output.escalate = True
        output.escalation_reason = f"Triage level: {band.value}. Keywords: {', '.join(urgent + moderate)}"
    return output

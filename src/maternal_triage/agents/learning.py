"""
Maternal Triage - Learning Agent.
Observes turns for review-worthy cases. Never supplies the response.
"""
from __future__ import annotations
import re

from .base import AgentInput, AgentKind, AgentOutput, LearningOpportunity, LearningOpportunityType

PRIORITY = 30

KNOWN_TERMS: tuple[str, ...] = (
    "eclampsia", "preeclampsia", "placenta", "gestational", "trimester",
    "fetal", "contractions", "dilation", "effacement", "braxton",
)

FEEDBACK_PHRASES: tuple[str, ...] = ("didn't help", "wrong", "not accurate")

UNUSUAL_CASE_SYMPTOMS = 3
MAX_UNKNOWN_TERMS = 3

_VOWEL = re.compile(r"[aeiou]", re.IGNORECASE)


def find_unknown_terms(message: str) -> list[str]:
    """Long words that are not recognised obstetric vocabulary."""
    words = message.lower().split()
    candidates = [
        w for w in words
        if len(w) > 6 and not any(t in w for t in KNOWN_TERMS) and _VOWEL.search(w)
    ]
    return candidates[:MAX_UNKNOWN_TERMS]


def identify_opportunities(agent_input: AgentInput) -> list[LearningOpportunity]:
    opportunities: list[LearningOpportunity] = []
    symptoms = agent_input.context.symptoms
    if len(symptoms) >= UNUSUAL_CASE_SYMPTOMS:
        opportunities.append(LearningOpportunity(
            opportunity_type=LearningOpportunityType.UNUSUAL_CASE,
            description="Multiple symptoms reported - may represent novel case",
            suggested_action="Flag for medical review and potential dataset addition",
            data_for_review={"symptoms": list(symptoms)},
        ))
    unknown = find_unknown_terms(agent_input.message)
    if unknown:
        opportunities.append(LearningOpportunity(
            opportunity_type=LearningOpportunityType.KNOWLEDGE_GAP,
            description=f"Potentially unknown terms detected: {', '.join(unknown)}",
            suggested_action="Review terms for potential addition to medical ontology",
            data_for_review={"unknown_terms": unknown},
        ))
    text = agent_input.message_lower
    if any(p in text for p in FEEDBACK_PHRASES):
        opportunities.append(LearningOpportunity(
            opportunity_type=LearningOpportunityType.FEEDBACK_NEEDED,
            description="User indicated dissatisfaction with previous response",
            suggested_action="Review conversation for response improvement",
            data_for_review={"message_length": len(agent_input.message)},
        ))
    return opportunities


def should_activate(agent_input: AgentInput) -> bool:
    return True


def process(agent_input: AgentInput) -> AgentOutput:
    opportunities = identify_opportunities(agent_input)
    return AgentOutput(
        kind=AgentKind.LEARNING,
        response="Learning analysis complete.",
        confidence=0.7,
        priority=PRIORITY,
        metadata={
            "learning_opportunities": opportunities,
            "total_opportunities": len(opportunities),
        },
    )

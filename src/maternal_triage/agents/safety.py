"""
Maternal Triage - Safety Agent.
Flags unsafe topics on input and hedges definitive claims on output.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any

from .base import AgentInput, AgentKind, AgentOutput

PRIORITY = 95

UNSAFE_TOPICS: tuple[str, ...] = (
    "abortion", "terminate", "end pregnancy", "induce labor at home",
    "skip prenatal", "don't need doctor", "natural only", "refuse treatment",
    "home birth alone", "ignore symptoms",
)

DISCLAIMER_TRIGGERS: tuple[str, ...] = (
    "medication", "drug", "dosage", "treatment", "diagnosis",
    "definitely", "certainly", "guarantee", "cure", "will fix",
)

DEFINITIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"you definitely have",
    r"this is certainly",
    r"guaranteed to",
    r"will cure",
    r"don't need to see a doctor",
))

HEDGE = "may indicate"
PROVIDER_REMINDER = "\n\nPlease consult with your healthcare provider for personalized medical advice."
DISCLAIMER = (
    "DISCLAIMER: This information is for educational purposes only and should not replace "
    "professional medical advice. Always consult with your healthcare provider before making "
    "any medical decisions or changes to your treatment plan."
)
PASSED = "Content passed safety review."


@dataclass
class SafetyReview:
    approved: bool
    modified_response: str
    issues: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"approved": self.approved, "modified_response": self.modified_response,
                "issues": list(self.issues)}


def should_activate(agent_input: AgentInput) -> bool:
    return True


def _redirect(topics: list[str]) -> str:
    return (
        "I understand you may have concerns, but I need to ensure your safety. "
        f"For topics related to {', '.join(topics)}, please speak directly with your healthcare "
        "provider who can give you personalized guidance based on your specific situation. "
        "Your health and your baby's health are the priority."
    )


def process(agent_input: AgentInput) -> AgentOutput:
    text = agent_input.message_lower
    unsafe = [t for t in UNSAFE_TOPICS if t in text]
    needs_disclaimer = any(t in text for t in DISCLAIMER_TRIGGERS)
    if unsafe:
        level, response, confidence = "unsafe", _redirect(unsafe), 0.95
    elif needs_disclaimer:
        level, response, confidence = "caution", DISCLAIMER, 0.85
    else:
        level, response, confidence = "safe", PASSED, 0.9
    return AgentOutput(
        kind=AgentKind.SAFETY,
        response=response,
        confidence=confidence,
        priority=PRIORITY,
        metadata={
            "safety_level": level,
            "unsafe_topics_detected": unsafe,
            "disclaimer_added": needs_disclaimer,
        },
        requires_human_review=bool(unsafe),
    )


def review_response(response: str) -> SafetyReview:
    """Hedge definitive claims and make sure advice points to a provider.

    Idempotent: reviewing an already reviewed text returns it unchanged.
    """
    issues: list[str] = []
    modified = response
    for pattern in DEFINITIVE_PATTERNS:
        if pattern.search(modified):
            issues.append(f"Found potentially unsafe definitive claim: {pattern.pattern}")
            modified = pattern.sub(HEDGE, modified)
    lowered = modified.lower()
    if ("recommend" in lowered or "should" in lowered) and not (
        "healthcare provider" in lowered or "doctor" in lowered
    ):
        modified += PROVIDER_REMINDER
    return SafetyReview(approved=not issues, modified_response=modified, issues=issues)

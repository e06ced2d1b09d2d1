"""
Maternal Triage - Emergency Agent.
Crisis pattern detection. A match escalates and bypasses orchestration.
"""
from __future__ import annotations
import re
from enum import Enum
from typing import NamedTuple

from .base import AgentInput, AgentKind, AgentOutput

PRIORITY = 100


class EmergencySeverity(str, Enum):
    HIGH = "high"
    CRITICAL = "critical"


class EmergencyAction(str, Enum):
    CALL_EMERGENCY = "call_emergency"
    GO_HOSPITAL = "go_hospital"
    URGENT_CARE = "urgent_care"
    CRISIS_LINE = "crisis_line"


class EmergencyPattern(NamedTuple):
    pattern: re.Pattern[str]
    severity: EmergencySeverity
    action: EmergencyAction


def _p(regex: str, severity: EmergencySeverity, action: EmergencyAction) -> EmergencyPattern:
    return EmergencyPattern(re.compile(regex, re.IGNORECASE), severity, action)


_C, _H = EmergencySeverity.CRITICAL, EmergencySeverity.HIGH

EMERGENCY_PATTERNS: tuple[EmergencyPattern, ...] = (
    _p(r"severe bleeding|hemorrhage|heavy bleeding", _C, EmergencyAction.CALL_EMERGENCY),
    _p(r"seizure|convulsion|fitting", _C, EmergencyAction.CALL_EMERGENCY),
    _p(r"unconscious|passed out|fainted and not waking", _C, EmergencyAction.CALL_EMERGENCY),
    _p(r"can't breathe|difficulty breathing|shortness of breath", _C, EmergencyAction.CALL_EMERGENCY),
    _p(r"no (fetal|baby) movement|baby (not|hasn't) moved", _H, EmergencyAction.URGENT_CARE),
    _p(r"water broke|waters breaking|leaking fluid", _H, EmergencyAction.GO_HOSPITAL),
    _p(r"regular contractions|labor pains", _H, EmergencyAction.GO_HOSPITAL),
    _p(r"severe headache|worst headache", _H, EmergencyAction.URGENT_CARE),
    _p(r"chest pain|heart attack", _C, EmergencyAction.CALL_EMERGENCY),
    _p(r"suicidal|want to die|harm myself", _C, EmergencyAction.CRISIS_LINE),
)

EMERGENCY_RESPONSES: dict[EmergencyAction, str] = {
    EmergencyAction.CALL_EMERGENCY: """🚨 EMERGENCY ALERT 🚨

This is a medical emergency. Please take these steps IMMEDIATELY:

1. Call emergency services (911) NOW
2. Stay where you are - help is coming
3. If possible, have someone stay with you
4. Lie down in a safe position
5. Keep your phone nearby

If you're alone:
• Call emergency services first
• Then call your emergency contact
• Leave your door unlocked if possible

DO NOT wait to see if symptoms improve. Your life and your baby's life may depend on getting immediate help.""",

    EmergencyAction.GO_HOSPITAL: """⚠️ URGENT - Go to Hospital

Please go to the hospital or birthing center NOW:

1. Call someone to drive you - do NOT drive yourself
2. If no one is available, call an ambulance
3. Bring your hospital bag and ID
4. Call the hospital on the way if possible

Signs this is happening:
• Regular, strong contractions
• Water has broken
• Active labor beginning

Stay calm and focused. This is what you've prepared for.""",

    EmergencyAction.URGENT_CARE: """⚠️ Seek Urgent Medical Care

Please contact your healthcare provider immediately or go to urgent care:

1. Call your doctor's emergency line
2. If unavailable, go to the emergency room
3. Have someone accompany you if possible

While waiting:
• Sit or lie down comfortably
• Monitor your symptoms
• Note when symptoms started

This needs prompt attention but may not require emergency services.""",

    EmergencyAction.CRISIS_LINE: """💚 You're Not Alone

I hear that you're going through something very difficult. Your feelings matter, and help is available.

Please reach out NOW:
• National Suicide Prevention Lifeline: 988
• Crisis Text Line: Text HOME to 741741
• International Association for Suicide Prevention: https://www.iasp.info/resources/Crisis_Centres/

You deserve support. A trained counselor can help you through this moment.

If you're in immediate danger, please call 911.""",
}


def match_patterns(message: str) -> list[EmergencyPattern]:
    return [p for p in EMERGENCY_PATTERNS if p.pattern.search(message)]


def should_activate(agent_input: AgentInput) -> bool:
    """Any crisis pattern, or a hit from the emergency keyword pre-check."""
    return bool(agent_input.emergency_keywords) or bool(match_patterns(agent_input.message))


def process(agent_input: AgentInput) -> AgentOutput:
    matched = match_patterns(agent_input.message)
    if matched:
        chosen = next((m for m in matched if m.severity is EmergencySeverity.CRITICAL), matched[0])
        return AgentOutput(
            kind=AgentKind.EMERGENCY,
            response=EMERGENCY_RESPONSES[chosen.action],
            confidence=0.95,
            priority=PRIORITY,
            metadata={
                "emergency_detected": True,
                "severity": chosen.severity.value,
                "action": chosen.action.value,
                "matched_patterns": [m.pattern.pattern for m in matched],
            },
            escalate=True,
            escalation_reason=f"Emergency detected: {chosen.severity.value} - {chosen.action.value}",
        )
    if agent_input.emergency_keywords:
        # Pre-check keywords without a crisis pattern still escalate.
        return AgentOutput(
            kind=AgentKind.EMERGENCY,
            response=EMERGENCY_RESPONSES[EmergencyAction.URGENT_CARE],
            confidence=0.95,
            priority=PRIORITY,
            metadata={
                "emergency_detected": True,
                "severity": EmergencySeverity.HIGH.value,
                "action": EmergencyAction.URGENT_CARE.value,
                "keywords": list(agent_input.emergency_keywords),
            },
            escalate=True,
            escalation_reason=f"Emergency keywords detected: {', '.join(agent_input.emergency_keywords)}",
        )
    return AgentOutput(
        kind=AgentKind.EMERGENCY, response="No emergency detected.", confidence=0.9,
        priority=PRIORITY, metadata={"emergency_detected": False},
    )

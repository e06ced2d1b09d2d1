"""
Maternal Triage Canonical Enums.

Ordinal bands and classification labels shared by every pipeline stage.
Import these instead of defining local duplicates.
"""

from __future__ import annotations

from enum import Enum


class RiskLevel(str, Enum):
    """Clinical risk bands.

    Values (ascending concern): LEVEL_1 < LEVEL_2 < LEVEL_3 < LEVEL_4.
    """

    LEVEL_1 = "level_1"
    LEVEL_2 = "level_2"
    LEVEL_3 = "level_3"
    LEVEL_4 = "level_4"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    @property
    def label(self) -> str:
        """Display form, e.g. ``LEVEL 3``."""
        return self.value.replace("_", " ").upper()

    @classmethod
    def from_string(cls, value: str) -> RiskLevel:
        """Case-insensitive lookup with common alias mapping.

        Accepts ``level_N``, ``level N``, a bare digit ``1``-``4``, or
        ``low``/``moderate``/``high``/``critical``.
        """
        _ALIASES: dict[str, RiskLevel] = {
            "1": cls.LEVEL_1, "low": cls.LEVEL_1,
            "2": cls.LEVEL_2, "moderate": cls.LEVEL_2,
            "3": cls.LEVEL_3, "high": cls.LEVEL_3,
            "4": cls.LEVEL_4, "critical": cls.LEVEL_4,
        }
        normalized = value.strip().lower().replace(" ", "_")
        if normalized in _ALIASES:
            return _ALIASES[normalized]
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(
            f"Unknown risk level: '{value}'. "
            f"Valid values: {', '.join(m.value for m in cls)}"
        )


_RISK_ORDER: tuple[RiskLevel, ...] = (
    RiskLevel.LEVEL_1, RiskLevel.LEVEL_2, RiskLevel.LEVEL_3, RiskLevel.LEVEL_4,
)


class Urgency(str, Enum):
    """Response timeframe bands.

    Values (ascending): ROUTINE < SOON < URGENT < EMERGENCY.
    """

    ROUTINE = "routine"
    SOON = "soon"
    URGENT = "urgent"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _URGENCY_ORDER.index(self)


_URGENCY_ORDER: tuple[Urgency, ...] = (
    Urgency.ROUTINE, Urgency.SOON, Urgency.URGENT, Urgency.EMERGENCY,
)


class SymptomSeverity(str, Enum):
    """Ordinal symptom and condition severity: MILD < MODERATE < SEVERE < CRITICAL."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def to_risk_level(self) -> RiskLevel:
        """MILD -> LEVEL_1, MODERATE -> LEVEL_2, SEVERE -> LEVEL_3, CRITICAL -> LEVEL_4."""
        return _RISK_ORDER[self.rank]

    @property
    def feature_weight(self) -> float:
        return _SEVERITY_WEIGHTS[self]

    @property
    def is_serious(self) -> bool:
        return self in (SymptomSeverity.SEVERE, SymptomSeverity.CRITICAL)


_SEVERITY_ORDER: tuple[SymptomSeverity, ...] = (
    SymptomSeverity.MILD, SymptomSeverity.MODERATE,
    SymptomSeverity.SEVERE, SymptomSeverity.CRITICAL,
)

_SEVERITY_WEIGHTS: dict[SymptomSeverity, float] = {
    SymptomSeverity.MILD: 0.3,
    SymptomSeverity.MODERATE: 0.5,
    SymptomSeverity.SEVERE: 0.8,
    SymptomSeverity.CRITICAL: 1.0,
}


class UserRole(str, Enum):
    """Audience of a response or explanation."""

    PATIENT = "patient"
    CLINICIAN = "clinician"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, value: str) -> UserRole:
        """Case-insensitive lookup; ``mother`` and ``doctor`` are accepted aliases."""
        _ALIASES: dict[str, UserRole] = {
            "patient": cls.PATIENT,
            "mother": cls.PATIENT,
            "clinician": cls.CLINICIAN,
            "doctor": cls.CLINICIAN,
            "admin": cls.ADMIN,
        }
        normalized = value.strip().lower()
        if normalized in _ALIASES:
            return _ALIASES[normalized]
        raise ValueError(
            f"Unknown role: '{value}'. "
            f"Valid values: {', '.join(_ALIASES.keys())}"
        )


class Intent(str, Enum):
    SYMPTOM_REPORT = "symptom_report"
    EMERGENCY = "emergency"
    APPOINTMENT = "appointment"
    MEDICATION = "medication"
    NUTRITION = "nutrition"
    EMOTIONAL_SUPPORT = "emotional_support"
    QUESTION = "question"
    EDUCATION = "education"
    GENERAL = "general"


class EmotionalTone(str, Enum):
    URGENT = "urgent"
    ANXIOUS = "anxious"
    DISTRESSED = "distressed"
    CALM = "calm"
    NEUTRAL = "neutral"


class EntityType(str, Enum):
    SYMPTOM = "symptom"
    MEDICATION = "medication"
    CONDITION = "condition"
    BODY_PART = "body_part"
    TIME_EXPRESSION = "time_expression"
    MEASUREMENT = "measurement"


class RecommendationType(str, Enum):
    ACTION = "action"
    TEST = "test"
    REFERRAL = "referral"
    MONITORING = "monitoring"


class RecommendationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FeatureImpact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

"""
Maternal Triage - Input and Context Schemas.
Pydantic models for pipeline inputs and per-session conversation state.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    EmotionalTone, EntityType, Intent, RiskLevel, SymptomSeverity, UserRole,
)

DEFAULT_GESTATIONAL_WEEK = 20
MAX_GESTATIONAL_WEEK = 45


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def trimester_for_week(week: int) -> int:
    """Weeks 0-12 are the first trimester, 13-27 the second, 28+ the third."""
    if week <= 12:
        return 1
    if week <= 27:
        return 2
    return 3


class ExtractedSymptom(BaseModel):
    """Symptom detected in message text."""
    name: str
    severity: SymptomSeverity = SymptomSeverity.MODERATE
    duration: str | None = None
    frequency: str | None = None
    location: str | None = None
    model_config = {"frozen": True}


class MedicalEntity(BaseModel):
    """Typed span found in a single message."""
    entity_type: EntityType
    value: str
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class ConversationMessage(BaseModel):
    """One message in a session transcript."""
    message_id: str = Field(default_factory=lambda: str(uuid4()))
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
    model_config = {"frozen": True}

    @classmethod
    def user_message(cls, content: str, metadata: dict[str, Any] | None = None) -> ConversationMessage:
        return cls(role="user", content=content, metadata=metadata or {})

    @classmethod
    def assistant_message(cls, content: str, metadata: dict[str, Any] | None = None) -> ConversationMessage:
        return cls(role="assistant", content=content, metadata=metadata or {})


class ConversationContext(BaseModel):
    """Accumulated state for one chat session."""
    model_config = ConfigDict(validate_assignment=True)

    session_id: str
    user_id: str
    role: UserRole = UserRole.PATIENT
    messages: list[ConversationMessage] = Field(default_factory=list)
    symptoms: list[ExtractedSymptom] = Field(default_factory=list)
    current_intent: Intent = Intent.GENERAL
    emotional_tone: EmotionalTone = EmotionalTone.NEUTRAL
    gestational_week: int | None = Field(default=None, ge=0, le=MAX_GESTATIONAL_WEEK)
    risk_factors: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LEVEL_1
    turn_count: int = 0
    last_updated: datetime = Field(default_factory=_utcnow)

    @property
    def trimester(self) -> int | None:
        if self.gestational_week is None:
            return None
        return trimester_for_week(self.gestational_week)

    @property
    def symptom_names(self) -> list[str]:
        return [s.name for s in self.symptoms]

    def add_message(self, message: ConversationMessage) -> None:
        self.messages.append(message)
        self.last_updated = _utcnow()

    def add_symptoms(self, symptoms: list[ExtractedSymptom]) -> None:
        self.symptoms.extend(symptoms)
        self.last_updated = _utcnow()

    def recent_messages(self, limit: int) -> list[ConversationMessage]:
        return self.messages[-limit:] if limit > 0 else []


class SymptomInput(BaseModel):
    """Symptom as supplied to the reasoner."""
    name: str = Field(min_length=1)
    severity: SymptomSeverity = SymptomSeverity.MODERATE
    duration: str | None = None
    frequency: str | None = None

    @classmethod
    def from_extracted(cls, symptom: ExtractedSymptom) -> SymptomInput:
        return cls(name=symptom.name, severity=symptom.severity,
                   duration=symptom.duration, frequency=symptom.frequency)


class PregnancyStage(BaseModel):
    """Gestational week and trimester."""
    week: int = Field(default=DEFAULT_GESTATIONAL_WEEK, ge=0, le=MAX_GESTATIONAL_WEEK)
    trimester: int = Field(default=2, ge=1, le=3)

    @classmethod
    def from_week(cls, week: int | None) -> PregnancyStage:
        """Unknown weeks fall back to mid-pregnancy."""
        if week is None:
            return cls()
        return cls(week=week, trimester=trimester_for_week(week))


class MedicalHistory(BaseModel):
    """Informational only; not scored."""
    conditions: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    previous_pregnancies: int | None = Field(default=None, ge=0)
    previous_complications: list[str] = Field(default_factory=list)


class VitalSigns(BaseModel):
    """Measured vitals. Temperature is in Celsius and weight in kilograms."""
    systolic_bp: float | None = Field(default=None, gt=0)
    diastolic_bp: float | None = Field(default=None, gt=0)
    heart_rate: float | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, gt=0)
    weight: float | None = Field(default=None, gt=0)
    oxygen_saturation: float | None = Field(default=None, gt=0, le=100)

    def get(self, sign: str) -> float | None:
        return getattr(self, sign, None)

    def provided(self) -> dict[str, float]:
        return {name: value for name, value in self.model_dump().items() if value is not None}


class DiagnosticInput(BaseModel):
    """Full input to one reasoner run."""
    symptoms: list[SymptomInput] = Field(default_factory=list)
    pregnancy_stage: PregnancyStage = Field(default_factory=PregnancyStage)
    medical_history: MedicalHistory = Field(default_factory=MedicalHistory)
    risk_factors: list[str] = Field(default_factory=list)
    vital_signs: VitalSigns | None = None

    def symptom_names_lower(self) -> list[str]:
        return [s.name.lower() for s in self.symptoms]

    def has_symptom_containing(self, *fragments: str) -> bool:
        names = self.symptom_names_lower()
        return any(fragment in name for name in names for fragment in fragments)

    def vital(self, sign: str) -> float | None:
        if self.vital_signs is None:
            return None
        return self.vital_signs.get(sign)

"""
Maternal Triage - Lexical Extraction from Patient Messages.
Detects emergencies, intent, emotional tone, symptoms and medical entities.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from ..enums import EmotionalTone, EntityType, Intent, SymptomSeverity
from ..exceptions import ExtractionError
from ..schemas import ConversationContext, ExtractedSymptom, MedicalEntity

logger = structlog.get_logger(__name__)

EMERGENCY_KEYWORDS: tuple[str, ...] = (
    "severe bleeding", "heavy bleeding", "hemorrhage",
    "seizure", "convulsion", "fit",
    "unconscious", "fainted", "passed out",
    "can't breathe", "difficulty breathing", "shortness of breath",
    "severe headache", "worst headache",
    "vision problems", "seeing spots", "blurred vision",
    "severe abdominal pain", "intense pain",
    "no fetal movement", "baby not moving", "reduced movement",
    "water broke", "waters breaking", "leaking fluid",
    "contractions", "labor pains",
    "swelling face", "swelling hands",
    "high blood pressure", "bp high",
    "chest pain", "heart palpitations",
)

# (pattern, name, severity); "$1" in the name is replaced by the first capture group.
SYMPTOM_PATTERNS: tuple[tuple[str, str, SymptomSeverity], ...] = (
    (r"severe\s+(headache|pain|bleeding)", "$1", SymptomSeverity.SEVERE),
    (r"mild\s+(headache|nausea|cramping)", "$1", SymptomSeverity.MILD),
    (r"(nausea|vomiting|dizziness)", "$1", SymptomSeverity.MODERATE),
    (r"\b(bleeding|spotting)\b", "bleeding", SymptomSeverity.MODERATE),
    (r"\b(swelling|edema)\b", "swelling", SymptomSeverity.MODERATE),
    (r"\b(fever|temperature)\b", "fever", SymptomSeverity.MODERATE),
    (r"\b(fatigue|tired|exhausted)\b", "fatigue", SymptomSeverity.MILD),
    (r"\b(back pain|backache)\b", "back pain", SymptomSeverity.MODERATE),
    (r"\b(cramping|cramps)\b", "cramping", SymptomSeverity.MODERATE),
    (r"\b(discharge)\b", "vaginal discharge", SymptomSeverity.MILD),
)

INTENT_PATTERNS: tuple[tuple[str, Intent], ...] = (
    (r"\b(pain|hurt|ache|bleeding|discharge|symptom|feel sick|unwell)\b", Intent.SYMPTOM_REPORT),
    (r"\b(emergency|urgent|help|serious|dangerous)\b", Intent.EMERGENCY),
    (r"\b(appointment|schedule|book|see doctor|visit)\b", Intent.APPOINTMENT),
    (r"\b(medication|medicine|drug|prescription|pill|tablet)\b", Intent.MEDICATION),
    (r"\b(eat|food|diet|nutrition|vitamin|supplement)\b", Intent.NUTRITION),
    (r"\b(worried|anxious|scared|stressed|emotional|crying)\b", Intent.EMOTIONAL_SUPPORT),
    (r"\b(what|how|why|when|can I|should I|is it normal)\b", Intent.QUESTION),
    (r"\b(learn|information|article|read about|tell me about)\b", Intent.EDUCATION),
)

EMOTIONAL_PATTERNS: tuple[tuple[str, EmotionalTone], ...] = (
    (r"\b(help|emergency|urgent|now|immediately)\b", EmotionalTone.URGENT),
    (r"\b(worried|anxious|nervous|scared|afraid|fear)\b", EmotionalTone.ANXIOUS),
    (r"\b(terrified|panic|desperate|can't cope|overwhelmed)\b", EmotionalTone.DISTRESSED),
    (r"\b(fine|okay|good|normal|curious)\b", EmotionalTone.CALM),
)

TIME_PATTERNS: tuple[str, ...] = (
    r"(\d+)\s*(hour|day|week|month)s?\s*(ago)?",
    r"(yesterday|today|this morning|last night)",
    r"(since|for)\s*(\d+)\s*(day|week|hour)s?",
)

MEASUREMENT_PATTERNS: tuple[str, ...] = (
    r"(\d+/\d+)\s*(mmHg|mm\s*Hg)",
    r"(\d+\.?\d*)\s*(kg|pounds?|lbs?)",
    r"(\d+\.?\d*)\s*°?\s*(C|F|celsius|fahrenheit)",
    r"(\d+)\s*(bpm|beats?\s*per\s*min)",
)

BODY_PARTS: tuple[str, ...] = (
    "head", "stomach", "abdomen", "back", "chest", "leg", "arm", "pelvis", "uterus",
)


class ExtractorSettings(BaseSettings):
    """Lexical extractor configuration."""
    max_message_length: int = Field(default=10000, ge=1)
    time_confidence: float = Field(default=0.85, ge=0.0, le=1.0)
    measurement_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    body_part_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    emergency_entity_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_EXTRACTOR_", env_file=".env", extra="ignore")


@dataclass(frozen=True)
class EmergencyCheck:
    """Outcome of the emergency keyword pre-check."""
    keywords: tuple[str, ...] = ()

    @property
    def is_emergency(self) -> bool:
        return bool(self.keywords)

    def to_dict(self) -> dict[str, Any]:
        return {"is_emergency": self.is_emergency, "keywords": list(self.keywords)}


@dataclass
class ExtractionResult:
    """Everything the lexical layer found in one message."""
    intent: Intent = Intent.GENERAL
    emotional_tone: EmotionalTone = EmotionalTone.NEUTRAL
    symptoms: list[ExtractedSymptom] = field(default_factory=list)
    entities: list[MedicalEntity] = field(default_factory=list)
    emergency: EmergencyCheck = field(default_factory=EmergencyCheck)
    new_symptom_names: list[str] = field(default_factory=list)
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.value,
            "emotional_tone": self.emotional_tone.value,
            "symptoms": [s.model_dump(mode="json") for s in self.symptoms],
            "entities": [e.model_dump(mode="json") for e in self.entities],
            "emergency": self.emergency.to_dict(),
            "new_symptom_names": list(self.new_symptom_names),
            "degraded": self.degraded,
        }


class LexicalExtractor:
    """Keyword and regex detectors over raw message text.

    Every table is ordered and first-match-wins where a single label is
    returned. All patterns are linear-time: no nested quantifiers.
    """

    def __init__(self, settings: ExtractorSettings | None = None) -> None:
        self._settings = settings or ExtractorSettings()
        self._symptom_patterns = [
            (re.compile(p, re.IGNORECASE), name, severity) for p, name, severity in SYMPTOM_PATTERNS
        ]
        self._intent_patterns = [(re.compile(p, re.IGNORECASE), i) for p, i in INTENT_PATTERNS]
        self._tone_patterns = [(re.compile(p, re.IGNORECASE), t) for p, t in EMOTIONAL_PATTERNS]
        self._time_patterns = [re.compile(p, re.IGNORECASE) for p in TIME_PATTERNS]
        self._measurement_patterns = [re.compile(p, re.IGNORECASE) for p in MEASUREMENT_PATTERNS]
        self._stats = {"extractions": 0, "emergencies": 0, "symptoms_found": 0, "degraded": 0}

    @staticmethod
    def _text(text: str | None) -> str:
        if not text:
            return ""
        if not isinstance(text, str):
            raise ExtractionError(
                "Message text must be a string", details={"type": type(text).__name__},
            )
        return text

    def _bounded(self, text: str | None) -> str:
        return self._text(text)[: self._settings.max_message_length]

    def check_emergency(self, text: str | None) -> EmergencyCheck:
        """Case-insensitive substring match against the emergency keyword list.

        Scans the whole message; only the regex detectors are length-capped.
        """
        lowered = self._text(text).lower()
        found = tuple(k for k in EMERGENCY_KEYWORDS if k in lowered)
        if found:
            self._stats["emergencies"] += 1
            logger.warning("emergency_keywords_detected", keywords=list(found))
        return EmergencyCheck(keywords=found)

    def detect_intent(self, text: str | None) -> Intent:
        bounded = self._bounded(text)
        for regex, intent in self._intent_patterns:
            if regex.search(bounded):
                return intent
        return Intent.GENERAL

    def detect_emotional_tone(self, text: str | None) -> EmotionalTone:
        bounded = self._bounded(text)
        for regex, tone in self._tone_patterns:
            if regex.search(bounded):
                return tone
        return EmotionalTone.NEUTRAL

    def extract_symptoms(self, text: str | None) -> list[ExtractedSymptom]:
        bounded = self._bounded(text)
        symptoms: list[ExtractedSymptom] = []
        seen: set[str] = set()
        for regex, name, severity in self._symptom_patterns:
            match = regex.search(bounded)
            if not match:
                continue
            extracted = name
            if "$1" in name and match.group(1):
                extracted = name.replace("$1", match.group(1))
            key = extracted.lower()
            if key in seen:
                continue
            seen.add(key)
            symptoms.append(ExtractedSymptom(name=extracted, severity=severity))
        return symptoms

    def extract_entities(self, text: str | None) -> list[MedicalEntity]:
        bounded = self._bounded(text)
        entities: list[MedicalEntity] = []
        for regex in self._time_patterns:
            for match in regex.finditer(bounded):
                entities.append(MedicalEntity(
                    entity_type=EntityType.TIME_EXPRESSION, value=match.group(0),
                    confidence=self._settings.time_confidence,
                ))
        for regex in self._measurement_patterns:
            for match in regex.finditer(bounded):
                entities.append(MedicalEntity(
                    entity_type=EntityType.MEASUREMENT, value=match.group(0),
                    confidence=self._settings.measurement_confidence,
                ))
        lowered = bounded.lower()
        for part in BODY_PARTS:
            if part in lowered:
                entities.append(MedicalEntity(
                    entity_type=EntityType.BODY_PART, value=part,
                    confidence=self._settings.body_part_confidence,
                ))
        return entities

    def emergency_symptoms(self, check: EmergencyCheck) -> list[ExtractedSymptom]:
        """Emergency keywords recorded as critical symptoms."""
        return [ExtractedSymptom(name=k, severity=SymptomSeverity.CRITICAL) for k in check.keywords]

    def emergency_entities(self, check: EmergencyCheck) -> list[MedicalEntity]:
        return [
            MedicalEntity(entity_type=EntityType.SYMPTOM, value=k,
                          confidence=self._settings.emergency_entity_confidence)
            for k in check.keywords
        ]

    def extract(self, text: str | None, context: ConversationContext | None = None) -> ExtractionResult:
        """Run the full lexical pass. Never raises; failures degrade to defaults."""
        self._stats["extractions"] += 1
        try:
            emergency = self.check_emergency(text)
            result = ExtractionResult(
                intent=self.detect_intent(text),
                emotional_tone=self.detect_emotional_tone(text),
                symptoms=self.extract_symptoms(text),
                entities=self.extract_entities(text),
                emergency=emergency,
            )
        except ExtractionError:
            self._stats["degraded"] += 1
            return ExtractionResult(degraded=True)
        except Exception as e:
            self._stats["degraded"] += 1
            logger.error("extraction_failed", error=str(e), error_type=type(e).__name__)
            return ExtractionResult(degraded=True)
        if context is not None:
            known = {name.lower() for name in context.symptom_names}
            result.new_symptom_names = [s.name for s in result.symptoms if s.name.lower() not in known]
        else:
            result.new_symptom_names = [s.name for s in result.symptoms]
        self._stats["symptoms_found"] += len(result.symptoms)
        logger.debug(
            "extraction_complete",
            intent=result.intent.value,
            tone=result.emotional_tone.value,
            symptom_count=len(result.symptoms),
            entity_count=len(result.entities),
            emergency=emergency.is_emergency,
        )
        return result

    def get_statistics(self) -> dict[str, Any]:
        return {**self._stats}

"""
Maternal Triage - Continual Learning Buffer.
Stores anonymized conversations, surfaces review candidates for admin approval
and tracks model versions. Nothing here retrains anything.
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import uuid4
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from ..enums import RiskLevel
from ..exceptions import StoreError
from ..infrastructure.store import InMemoryKeyValueStore, KeyValueStore
from .privacy import PIIAnonymizer

logger = structlog.get_logger(__name__)

RECORD_PREFIX = "learning:record:"
CANDIDATE_PREFIX = "learning:candidate:"
VERSION_PREFIX = "learning:version:"
FEEDBACK_PREFIX = "learning:feedback:"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LearningSettings(BaseSettings):
    """Learning buffer configuration."""
    enabled: bool = Field(default=True)
    min_signals: int = Field(default=2, ge=1)
    low_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    complex_symptom_count: int = Field(default=3, ge=1)
    negative_rating_threshold: int = Field(default=2, ge=1, le=5)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_LEARNING_", env_file=".env", extra="ignore")


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    USED_FOR_TRAINING = "used_for_training"


class CandidateType(str, Enum):
    EMERGENCY_DETECTION = "emergency_detection"
    CLINICAL_PATTERN = "clinical_pattern"
    EDGE_CASE = "edge_case"
    KNOWLEDGE_GAP = "knowledge_gap"


class CandidatePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(CandidatePriority).index(self)


class CandidateStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class AnonymizedMessage(BaseModel):
    role: Literal["user", "assistant"]
    content_hash: str
    sanitized_content: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ConversationFeatures(BaseModel):
    symptoms: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LEVEL_1
    pregnancy_week: int | None = None
    pregnancy_trimester: int | None = None
    top_intent: str = "general"
    emotional_tone: str = "neutral"
    risk_factors: list[str] = Field(default_factory=list)
    escalation_triggered: bool = False


class ResponseSummary(BaseModel):
    response_type: str
    risk_level: RiskLevel
    recommendation_count: int = 0
    confidence: float = Field(ge=0.0, le=1.0)
    escalated: bool = False
    agents_used: list[str] = Field(default_factory=list)
    safety_flags: list[str] = Field(default_factory=list)


class ConversationRecord(BaseModel):
    """Anonymized turn kept for offline review."""
    record_id: str = Field(default_factory=lambda: f"learn_{uuid4().hex[:12]}")
    session_id: str
    anonymized_user_id: str
    messages: list[AnonymizedMessage] = Field(default_factory=list)
    features: ConversationFeatures
    responses: list[ResponseSummary] = Field(default_factory=list)
    review_status: ReviewStatus = ReviewStatus.PENDING
    review_flag_reason: str | None = None
    is_learning_candidate: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class DatasetAddition(BaseModel):
    category: str
    input_pattern: str
    expected_output: str
    context: dict[str, Any] = Field(default_factory=dict)


class LearningCandidate(BaseModel):
    candidate_id: str = Field(default_factory=lambda: f"cand_{uuid4().hex[:12]}")
    candidate_type: CandidateType
    priority: CandidatePriority
    description: str
    source_records: list[str] = Field(default_factory=list)
    suggested_addition: DatasetAddition
    estimated_impact: str
    status: CandidateStatus = CandidateStatus.PENDING
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ValidationMetrics(BaseModel):
    accuracy: float = 0.85
    precision: float = 0.82
    recall: float = 0.88
    f1_score: float = 0.85
    safety_score: float = 0.95
    clinical_validation_score: float = 0.80
    sample_size: int = 10000


class ModelVersion(BaseModel):
    version: str
    release_date: datetime = Field(default_factory=_utcnow)
    improvements: list[str] = Field(default_factory=list)
    known_limitations: list[str] = Field(default_factory=list)
    validation_metrics: ValidationMetrics = Field(default_factory=ValidationMetrics)
    status: Literal["training", "validating", "active", "deprecated"] = "active"
    previous_version: str | None = None


class FeedbackEntry(BaseModel):
    record_id: str
    rating: int = Field(ge=1, le=5)
    helpful: bool = True
    accurate: bool = True
    comments: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


DEFAULT_MODEL_VERSION = "maternal-ai-v1.0"


class LearningSystem:
    """Anonymized learning buffer over a :class:`KeyValueStore`."""

    def __init__(
        self,
        settings: LearningSettings | None = None,
        store: KeyValueStore | None = None,
        anonymizer: PIIAnonymizer | None = None,
    ) -> None:
        self._settings = settings or LearningSettings()
        self._store = store if store is not None else InMemoryKeyValueStore()
        self._anonymizer = anonymizer or PIIAnonymizer()
        self._stats = {"records": 0, "candidates": 0, "approved": 0, "rejected": 0,
                       "feedback": 0, "flagged": 0}

    async def record_conversation(
        self,
        session_id: str,
        user_id: str,
        messages: list[tuple[Literal["user", "assistant"], str]],
        features: ConversationFeatures,
        responses: list[ResponseSummary],
    ) -> ConversationRecord | None:
        """Anonymize and store one turn; creates a review candidate when warranted."""
        if not self._settings.enabled:
            return None
        record = ConversationRecord(
            session_id=session_id,
            anonymized_user_id=self._anonymizer.hash_user_id(user_id),
            messages=[
                AnonymizedMessage(
                    role=role,
                    content_hash=self._anonymizer.hash_content(content),
                    sanitized_content=self._anonymizer.sanitize(content),
                )
                for role, content in messages
            ],
            features=features,
            responses=responses,
        )
        record.is_learning_candidate = self.evaluate_learning_potential(record)
        await self._store.set(f"{RECORD_PREFIX}{record.record_id}", record.model_dump(mode="json"))
        self._stats["records"] += 1
        if record.is_learning_candidate:
            await self._create_candidate(record)
        logger.debug("learning_record_stored", record_id=record.record_id,
                     candidate=record.is_learning_candidate)
        return record

    def learning_signals(self, record: ConversationRecord) -> list[str]:
        features = record.features
        signals: list[str] = []
        if features.escalation_triggered:
            signals.append("escalation")
        if len(features.symptoms) >= self._settings.complex_symptom_count:
            signals.append("complex_symptoms")
        if features.risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4):
            signals.append("high_risk")
        if any(r.confidence < self._settings.low_confidence_threshold for r in record.responses):
            signals.append("low_confidence")
        if any(r.safety_flags for r in record.responses):
            signals.append("safety_flags")
        return signals

    def evaluate_learning_potential(self, record: ConversationRecord) -> bool:
        return len(self.learning_signals(record)) >= self._settings.min_signals

    async def _create_candidate(self, record: ConversationRecord) -> LearningCandidate:
        features = record.features
        if features.escalation_triggered:
            kind, priority = CandidateType.EMERGENCY_DETECTION, CandidatePriority.CRITICAL
            description = "Emergency escalation case - review for response accuracy"
        elif len(features.symptoms) >= self._settings.complex_symptom_count:
            kind, priority = CandidateType.CLINICAL_PATTERN, CandidatePriority.MEDIUM
            description = f"Complex symptom pattern: {', '.join(features.symptoms)}"
        elif features.risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4):
            kind, priority = CandidateType.EDGE_CASE, CandidatePriority.HIGH
            description = f"High-risk presentation at {features.risk_level.label} - review for response accuracy"
        else:
            kind, priority = CandidateType.KNOWLEDGE_GAP, CandidatePriority.HIGH
            description = "Low confidence response - may indicate knowledge gap"
        candidate = LearningCandidate(
            candidate_type=kind,
            priority=priority,
            description=description,
            source_records=[record.record_id],
            suggested_addition=DatasetAddition(
                category=features.top_intent,
                input_pattern=(f"Symptoms: {', '.join(features.symptoms)} in trimester "
                               f"{features.pregnancy_trimester or 'unknown'}"),
                expected_output=f"Appropriate response for {features.risk_level.value} risk level",
                context={"trimester": features.pregnancy_trimester,
                         "risk_level": features.risk_level.value,
                         "emotional_tone": features.emotional_tone},
            ),
            estimated_impact=self._estimate_impact(kind, priority),
        )
        await self._save_candidate(candidate)
        self._stats["candidates"] += 1
        logger.info("learning_candidate_created", candidate_id=candidate.candidate_id,
                    candidate_type=kind.value, priority=priority.value)
        return candidate

    @staticmethod
    def _estimate_impact(kind: CandidateType, priority: CandidatePriority) -> str:
        if priority is CandidatePriority.CRITICAL:
            return "Critical safety improvement"
        if priority is CandidatePriority.HIGH:
            return "Significant accuracy improvement expected"
        if kind is CandidateType.KNOWLEDGE_GAP:
            return "Will address response gap"
        return "Incremental improvement to model coverage"

    async def _save_candidate(self, candidate: LearningCandidate) -> None:
        await self._store.set(f"{CANDIDATE_PREFIX}{candidate.candidate_id}",
                              candidate.model_dump(mode="json"))

    async def get_candidate(self, candidate_id: str) -> LearningCandidate | None:
        raw = await self._store.get(f"{CANDIDATE_PREFIX}{candidate_id}")
        return LearningCandidate.model_validate(raw) if raw is not None else None

    async def _candidates(self) -> list[LearningCandidate]:
        candidates: list[LearningCandidate] = []
        for key in await self._store.keys(CANDIDATE_PREFIX):
            raw = await self._store.get(key)
            if raw is not None:
                candidates.append(LearningCandidate.model_validate(raw))
        return candidates

    async def get_pending_candidates(self, limit: int = 20) -> list[LearningCandidate]:
        """Pending candidates, highest priority first, newest first within a priority."""
        pending = [c for c in await self._candidates() if c.status is CandidateStatus.PENDING]
        pending.sort(key=lambda c: (c.priority.rank, c.created_at), reverse=True)
        return pending[:limit]

    async def get_approved_candidates(self) -> list[LearningCandidate]:
        approved = [c for c in await self._candidates() if c.status is CandidateStatus.APPROVED]
        return sorted(approved, key=lambda c: c.created_at)

    async def approve_candidate(self, candidate_id: str, reviewer_id: str, notes: str | None = None) -> LearningCandidate:
        candidate = await self._review(candidate_id, reviewer_id, CandidateStatus.APPROVED, notes)
        self._stats["approved"] += 1
        return candidate

    async def reject_candidate(self, candidate_id: str, reviewer_id: str, reason: str) -> LearningCandidate:
        candidate = await self._review(candidate_id, reviewer_id, CandidateStatus.REJECTED, reason)
        self._stats["rejected"] += 1
        return candidate

    async def _review(
        self, candidate_id: str, reviewer_id: str, status: CandidateStatus, notes: str | None,
    ) -> LearningCandidate:
        candidate = await self.get_candidate(candidate_id)
        if candidate is None:
            raise StoreError(f"Unknown learning candidate {candidate_id}",
                             key=f"{CANDIDATE_PREFIX}{candidate_id}")
        candidate.status = status
        candidate.reviewed_by = self._anonymizer.hash_user_id(reviewer_id)
        candidate.reviewed_at = _utcnow()
        candidate.review_notes = notes
        await self._save_candidate(candidate)
        logger.info("learning_candidate_reviewed", candidate_id=candidate_id, status=status.value)
        return candidate

    async def record_feedback(
        self,
        record_id: str,
        rating: int,
        accurate: bool = True,
        helpful: bool = True,
        comments: str | None = None,
    ) -> FeedbackEntry:
        """Store user feedback; poor ratings or inaccuracy flag the record for review."""
        entry = FeedbackEntry(
            record_id=record_id, rating=rating, helpful=helpful, accurate=accurate,
            comments=self._anonymizer.sanitize(comments) if comments else None,
        )
        key = f"{FEEDBACK_PREFIX}{record_id}"
        existing = await self._store.get(key) or []
        existing.append(entry.model_dump(mode="json"))
        await self._store.set(key, existing)
        self._stats["feedback"] += 1
        if rating <= self._settings.negative_rating_threshold or not accurate:
            await self._flag_for_review(record_id, "negative_feedback")
        return entry

    async def _flag_for_review(self, record_id: str, reason: str) -> None:
        key = f"{RECORD_PREFIX}{record_id}"
        raw = await self._store.get(key)
        if raw is None:
            logger.warning("feedback_for_unknown_record", record_id=record_id)
            return
        record = ConversationRecord.model_validate(raw)
        record.review_status = ReviewStatus.PENDING
        record.review_flag_reason = reason
        await self._store.set(key, record.model_dump(mode="json"))
        self._stats["flagged"] += 1

    async def get_record(self, record_id: str) -> ConversationRecord | None:
        raw = await self._store.get(f"{RECORD_PREFIX}{record_id}")
        return ConversationRecord.model_validate(raw) if raw is not None else None

    async def create_model_version(
        self,
        version: str,
        improvements: list[str] | None = None,
        known_limitations: list[str] | None = None,
        metrics: ValidationMetrics | None = None,
        activate: bool = True,
    ) -> ModelVersion:
        """Register a version; activating it deprecates the current active one."""
        previous = await self.get_active_model_version() if activate else None
        if previous is not None and previous.version != version:
            previous.status = "deprecated"
            await self._store.set(f"{VERSION_PREFIX}{previous.version}", previous.model_dump(mode="json"))
        model_version = ModelVersion(
            version=version,
            improvements=improvements or [],
            known_limitations=known_limitations or [],
            validation_metrics=metrics or ValidationMetrics(),
            status="active" if activate else "validating",
            previous_version=previous.version if previous else None,
        )
        await self._store.set(f"{VERSION_PREFIX}{version}", model_version.model_dump(mode="json"))
        logger.info("model_version_recorded", version=version, status=model_version.status)
        return model_version

    async def get_model_versions(self) -> list[ModelVersion]:
        versions: list[ModelVersion] = []
        for key in await self._store.keys(VERSION_PREFIX):
            raw = await self._store.get(key)
            if raw is not None:
                versions.append(ModelVersion.model_validate(raw))
        return sorted(versions, key=lambda v: v.release_date, reverse=True)

    async def get_active_model_version(self) -> ModelVersion:
        """The newest active version, or the built-in default when none is recorded."""
        active = [v for v in await self.get_model_versions() if v.status == "active"]
        if active:
            return active[0]
        return ModelVersion(
            version=DEFAULT_MODEL_VERSION,
            release_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            improvements=["Initial release"],
            known_limitations=["Based on general obstetric guidelines"],
        )

    async def get_learning_stats(self) -> dict[str, Any]:
        candidates = await self._candidates()
        ratings: list[int] = []
        for key in await self._store.keys(FEEDBACK_PREFIX):
            ratings.extend(entry["rating"] for entry in await self._store.get(key) or [])
        return {
            "total_conversations": len(await self._store.keys(RECORD_PREFIX)),
            "pending_review": sum(1 for c in candidates if c.status is CandidateStatus.PENDING),
            "approved_candidates": sum(1 for c in candidates if c.status is CandidateStatus.APPROVED),
            "model_versions": max(len(await self._store.keys(VERSION_PREFIX)), 1),
            "average_feedback_rating": sum(ratings) / len(ratings) if ratings else 0.0,
        }

    def get_statistics(self) -> dict[str, Any]:
        return {**self._stats, "enabled": self._settings.enabled}

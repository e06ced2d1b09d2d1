"""
Maternal Triage - Key-Value and Session Context Stores.
Session state lives in an explicit store keyed by session id.
"""
from __future__ import annotations
import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any
from pydantic import ValidationError
import structlog

from ..enums import EmotionalTone, Intent, RiskLevel, UserRole
from ..exceptions import StoreError
from ..schemas import ConversationContext, ConversationMessage, ExtractedSymptom

logger = structlog.get_logger(__name__)

CONTEXT_PREFIX = "context:"


class KeyValueStore(ABC):
    """Abstract base for key-value storage backends. Values are JSON-compatible."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value for ``key`` or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``; True when something was removed."""
        pass

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """Keys starting with ``prefix``, in insertion order."""
        pass


class InMemoryKeyValueStore(KeyValueStore):
    """In-memory store for development and testing."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            self._data[key] = copy.deepcopy(value)
        logger.debug("kv_set", key=key)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> list[str]:
        async with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)


def derive_profile_risk_factors(risk_level: RiskLevel | None, week: int | None) -> list[str]:
    """Risk-factor tags implied by a patient profile."""
    factors: list[str] = []
    if risk_level is not None and risk_level is not RiskLevel.LEVEL_1:
        factors.append(f"elevated_risk_{risk_level.value}")
    if week is not None and week > 36:
        factors.append("late_pregnancy")
    if week is not None and week < 12:
        factors.append("early_pregnancy")
    return factors


class ContextStore:
    """Conversation contexts persisted through a :class:`KeyValueStore`.

    Turns for one session are expected to be serialised by the caller.
    """

    def __init__(self, backend: KeyValueStore | None = None) -> None:
        self._backend = backend if backend is not None else InMemoryKeyValueStore()

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{CONTEXT_PREFIX}{session_id}"

    async def get(self, session_id: str) -> ConversationContext | None:
        raw = await self._backend.get(self._key(session_id))
        if raw is None:
            return None
        try:
            return ConversationContext.model_validate(raw)
        except ValidationError as e:
            raise StoreError("Stored conversation context is corrupt", key=self._key(session_id),
                             cause=e) from e

    async def get_or_create(
        self,
        session_id: str,
        user_id: str,
        role: UserRole = UserRole.PATIENT,
        gestational_week: int | None = None,
        profile_risk_level: RiskLevel | None = None,
    ) -> ConversationContext:
        """Load the session, creating it on the first message."""
        context = await self.get(session_id)
        if context is not None:
            if gestational_week is not None:
                context.gestational_week = gestational_week
            return context
        risk_factors = (
            derive_profile_risk_factors(profile_risk_level, gestational_week)
            if role is UserRole.PATIENT else []
        )
        context = ConversationContext(
            session_id=session_id, user_id=user_id, role=role,
            gestational_week=gestational_week, risk_factors=risk_factors,
            risk_level=profile_risk_level or RiskLevel.LEVEL_1,
        )
        logger.info("context_created", session_id=session_id, role=role.value,
                    risk_factor_count=len(risk_factors))
        return context

    async def save(self, context: ConversationContext) -> None:
        await self._backend.set(self._key(context.session_id), context.model_dump(mode="json"))

    async def clear(self, session_id: str) -> bool:
        removed = await self._backend.delete(self._key(session_id))
        if removed:
            logger.info("context_cleared", session_id=session_id)
        return removed

    async def get_history(self, session_id: str, limit: int | None = None) -> list[ConversationMessage]:
        context = await self.get(session_id)
        if context is None:
            return []
        if limit is None:
            return list(context.messages)
        return context.recent_messages(limit)

    async def add_message(self, session_id: str, message: ConversationMessage) -> ConversationContext:
        context = await self._require(session_id)
        context.add_message(message)
        await self.save(context)
        return context

    async def add_symptoms(self, session_id: str, symptoms: list[ExtractedSymptom]) -> ConversationContext:
        context = await self._require(session_id)
        context.add_symptoms(symptoms)
        await self.save(context)
        return context

    async def update_intent(
        self, session_id: str, intent: Intent, tone: EmotionalTone | None = None,
    ) -> ConversationContext:
        context = await self._require(session_id)
        context.current_intent = intent
        if tone is not None:
            context.emotional_tone = tone
        await self.save(context)
        return context

    async def _require(self, session_id: str) -> ConversationContext:
        context = await self.get(session_id)
        if context is None:
            raise StoreError(f"No conversation context for session {session_id}", key=self._key(session_id))
        return context

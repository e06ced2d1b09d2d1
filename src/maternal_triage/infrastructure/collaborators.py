"""
Maternal Triage - Outbound Collaborator Ports.
Persistence receives anonymized conversation records; notification receives escalations.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import structlog

from ..enums import RiskLevel

logger = structlog.get_logger(__name__)


@dataclass
class EscalationNotice:
    """What a notification collaborator is told about an escalated turn."""
    session_id: str
    anonymized_user_id: str
    reason: str
    risk_level: RiskLevel
    emergency: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "anonymized_user_id": self.anonymized_user_id,
            "reason": self.reason,
            "risk_level": self.risk_level.value,
            "emergency": self.emergency,
            "created_at": self.created_at.isoformat(),
        }


class PersistencePort(ABC):
    """Accepts anonymized conversation records. Raw PII never reaches it."""

    @abstractmethod
    async def store_record(self, record: dict[str, Any]) -> None:
        pass


class NotificationPort(ABC):
    """Fans out escalations to clinicians or emergency contacts."""

    @abstractmethod
    async def notify_escalation(self, notice: EscalationNotice) -> None:
        pass


class InMemoryRecordSink(PersistencePort):
    """Collects records in memory for development and testing."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    async def store_record(self, record: dict[str, Any]) -> None:
        self.records.append(record)
        logger.debug("record_stored", record_count=len(self.records))


class LoggingEscalationNotifier(NotificationPort):
    """Writes escalations to the structured log; keeps the last notices for inspection."""

    def __init__(self, max_notices: int = 100) -> None:
        self.notices: deque[EscalationNotice] = deque(maxlen=max_notices)

    async def notify_escalation(self, notice: EscalationNotice) -> None:
        self.notices.append(notice)
        logger.warning(
            "escalation_notified",
            session_id=notice.session_id,
            risk_level=notice.risk_level.value,
            emergency=notice.emergency,
            reason=notice.reason,
        )

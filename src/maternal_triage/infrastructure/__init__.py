"""
Maternal Triage - Infrastructure.
Key-value storage, session context persistence and outbound collaborator ports.
"""
from .collaborators import (
    EscalationNotice,
    InMemoryRecordSink,
    LoggingEscalationNotifier,
    NotificationPort,
    PersistencePort,
)
from .store import (
    ContextStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    derive_profile_risk_factors,
)

__all__ = [
    "ContextStore",
    "EscalationNotice",
    "InMemoryKeyValueStore",
    "InMemoryRecordSink",
    "KeyValueStore",
    "LoggingEscalationNotifier",
    "NotificationPort",
    "PersistencePort",
    "derive_profile_risk_factors",
]

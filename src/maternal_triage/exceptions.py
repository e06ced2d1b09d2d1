"""
Maternal Triage Exception Hierarchy.

Every error carries a stable code, a category for routing, a severity for
log level selection and a frozen context that ties it to a session and
operation. Errors log themselves once, when raised.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field
import structlog

logger = structlog.get_logger(__name__)

PATIENT_SAFE_MESSAGE = "Something went wrong while reviewing your message."


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def is_loud(self) -> bool:
        return self in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL)


class ErrorCategory(str, Enum):
    EXTRACTION = "extraction"
    AGENT = "agent"
    STORAGE = "storage"
    COLLABORATOR = "collaborator"
    INTERNAL = "internal"


class ErrorContext(BaseModel):
    """Where and when an error happened."""
    model_config = ConfigDict(frozen=True)

    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    component: str = "maternal-triage"
    operation: str | None = None
    session_id: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def with_operation(self, operation: str) -> ErrorContext:
        return self.model_copy(update={"operation": operation})

    def with_session(self, session_id: str) -> ErrorContext:
        return self.model_copy(update={"session_id": session_id})


def _merge_details(details: dict[str, Any] | None, **fields: Any) -> dict[str, Any]:
    merged = dict(details or {})
    merged.update({k: v for k, v in fields.items() if v is not None})
    return merged


def _describe_cause(cause: BaseException) -> dict[str, str]:
    return {"type": type(cause).__name__, "message": str(cause)}


class TriageError(Exception):
    """Root of the triage pipeline errors."""
    error_code: str = "TRIAGE_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(
        self,
        message: str,
        *,
        user_message: str | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or PATIENT_SAFE_MESSAGE
        self.context = context or ErrorContext()
        self.cause = cause
        self.details = details or {}
        self._emit()

    def _emit(self) -> None:
        fields: dict[str, Any] = {
            "error_code": self.error_code,
            "category": self.category.value,
            "severity": self.severity.value,
            "correlation_id": self.context.correlation_id,
            "operation": self.context.operation,
            "session_id": self.context.session_id,
            "details": self.details,
            "error_message": self.message,
        }
        if self.cause is not None:
            fields["cause"] = _describe_cause(self.cause)
        log = logger.error if self.severity.is_loud else logger.warning
        log("triage_error_raised", **fields)

    def to_dict(self) -> dict[str, Any]:
        """Caller-safe payload. Never includes the internal message."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.user_message,
                "correlation_id": self.context.correlation_id,
                "timestamp": self.context.occurred_at.isoformat(),
            }
        }

    def to_internal_dict(self) -> dict[str, Any]:
        payload = self.to_dict()
        internal: dict[str, Any] = {
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "operation": self.context.operation,
            "details": self.details,
        }
        if self.cause is not None:
            internal["cause"] = _describe_cause(self.cause)
        payload["internal"] = internal
        return payload


class InvariantViolationError(TriageError):
    """A value fell outside a closed ordinal set. Raised only outside production."""
    error_code = "INVARIANT_VIOLATION"
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, *, field: str | None = None, value: Any = None,
                 **kwargs: Any) -> None:
        self.field = field
        self.value = value
        details = _merge_details(kwargs.pop("details", None), field=field, value=repr(value))
        super().__init__(message, details=details, **kwargs)


class ExtractionError(TriageError):
    error_code = "EXTRACTION_ERROR"
    category = ErrorCategory.EXTRACTION
    severity = ErrorSeverity.LOW


class AgentExecutionError(TriageError):
    error_code = "AGENT_EXECUTION_ERROR"
    category = ErrorCategory.AGENT

    def __init__(self, agent_name: str, message: str | None = None, **kwargs: Any) -> None:
        self.agent_name = agent_name
        details = _merge_details(kwargs.pop("details", None), agent=agent_name)
        super().__init__(message or f"Agent '{agent_name}' failed and abstained",
                         details=details, **kwargs)


class StoreError(TriageError):
    error_code = "STORE_ERROR"
    category = ErrorCategory.STORAGE

    def __init__(self, message: str, *, key: str | None = None, **kwargs: Any) -> None:
        self.key = key
        super().__init__(message, details=_merge_details(kwargs.pop("details", None), key=key),
                         **kwargs)


class CollaboratorError(TriageError):
    """An outbound collaborator (persistence or notification) rejected a call."""
    error_code = "COLLABORATOR_ERROR"
    category = ErrorCategory.COLLABORATOR

    def __init__(self, collaborator: str, message: str, **kwargs: Any) -> None:
        self.collaborator = collaborator
        details = _merge_details(kwargs.pop("details", None), collaborator=collaborator)
        super().__init__(message, details=details, **kwargs)

"""Maternal Triage PII Protection - Placeholder substitution of personal identifiers."""

from __future__ import annotations
import hashlib
import re
from enum import Enum
from typing import Any
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

logger = structlog.get_logger(__name__)


class PIIType(str, Enum):
    """Kinds of personal identifiers stripped before data leaves the core."""

    NAME = "name"
    PHONE = "phone"
    EMAIL = "email"
    DATE = "date"
    ZIP = "zip"
    SSN = "ssn"
    DOCTOR_NAME = "doctor_name"
    FACILITY = "facility"


class PrivacySettings(BaseSettings):
    """PII anonymization configuration."""

    enable_anonymization: bool = Field(default=True)
    user_id_salt: str = Field(default="")
    log_detections: bool = Field(default=True)
    log_sensitive_keys: list[str] = Field(
        default_factory=lambda: ["message", "content", "text", "sanitized_content", "comments"]
    )
    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_PRIVACY_", env_file=".env", extra="ignore"
    )


class PIIPattern(BaseModel):
    """Pattern definition for PII substitution."""

    pii_type: PIIType
    pattern: str
    replacement: str
    ignore_case: bool = False
    description: str = ""


# Applied in order; earlier substitutions shadow later ones.
DEFAULT_PATTERNS: list[PIIPattern] = [
    PIIPattern(
        pii_type=PIIType.NAME,
        pattern=r"\b[A-Z][a-z]+ [A-Z][a-z]+\b",
        replacement="[NAME]",
        description="Capitalised first and last name",
    ),
    PIIPattern(
        pii_type=PIIType.PHONE,
        pattern=r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b",
        replacement="[PHONE]",
        description="US phone number",
    ),
    PIIPattern(
        pii_type=PIIType.EMAIL,
        pattern=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b",
        replacement="[EMAIL]",
        description="Email address",
    ),
    PIIPattern(
        pii_type=PIIType.DATE,
        pattern=r"\b\d{1,2}/\d{1,2}/\d{2,4}\b",
        replacement="[DATE]",
        description="Slash-separated date",
    ),
    PIIPattern(
        pii_type=PIIType.ZIP,
        pattern=r"\b\d{5}(?:-\d{4})?\b",
        replacement="[ZIP]",
        description="ZIP or ZIP+4",
    ),
    PIIPattern(
        pii_type=PIIType.SSN,
        pattern=r"\b\d{3}-\d{2}-\d{4}\b",
        replacement="[SSN]",
        description="SSN format XXX-XX-XXXX",
    ),
    PIIPattern(
        pii_type=PIIType.DOCTOR_NAME,
        pattern=r"\b(?:Dr\.|Doctor|Dr) [A-Z][a-z]+\b",
        replacement="[DOCTOR_NAME]",
        ignore_case=True,
        description="Clinician title followed by a surname",
    ),
    PIIPattern(
        pii_type=PIIType.FACILITY,
        pattern=r"\b(?:hospital|clinic|medical center) [A-Za-z]+\b",
        replacement="[FACILITY]",
        ignore_case=True,
        description="Facility keyword followed by a name",
    ),
]


class AnonymizationResult(BaseModel):
    """Outcome of one anonymization pass."""

    original_length: int
    sanitized_text: str
    pii_types_found: list[PIIType] = Field(default_factory=list)
    substitutions: int = 0

    @property
    def contains_pii(self) -> bool:
        return self.substitutions > 0


class PIIAnonymizer:
    """Replace personal identifiers with fixed placeholder tokens."""

    def __init__(
        self,
        settings: PrivacySettings | None = None,
        patterns: list[PIIPattern] | None = None,
    ) -> None:
        self._settings = settings or PrivacySettings()
        self._patterns = patterns or DEFAULT_PATTERNS
        self._compiled = [
            (p, re.compile(p.pattern, re.IGNORECASE if p.ignore_case else 0))
            for p in self._patterns
        ]
        self._sensitive_keys = {k.lower() for k in self._settings.log_sensitive_keys}

    def anonymize(self, text: str) -> AnonymizationResult:
        """Apply every pattern in order and report what was replaced."""
        if not text or not self._settings.enable_anonymization:
            return AnonymizationResult(original_length=len(text or ""), sanitized_text=text or "")
        sanitized = text
        found: list[PIIType] = []
        total = 0
        for pattern, regex in self._compiled:
            sanitized, count = regex.subn(pattern.replacement, sanitized)
            if count:
                total += count
                if pattern.pii_type not in found:
                    found.append(pattern.pii_type)
        if total and self._settings.log_detections:
            logger.info("pii_substituted", count=total, types=[t.value for t in found])
        return AnonymizationResult(
            original_length=len(text),
            sanitized_text=sanitized,
            pii_types_found=found,
            substitutions=total,
        )

    def sanitize(self, text: str) -> str:
        return self.anonymize(text).sanitized_text

    def sanitize_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Sanitize string values stored under sensitive keys, recursing into containers."""
        result: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str) and key.lower() in self._sensitive_keys:
                result[key] = self._quiet_sanitize(value)
            elif isinstance(value, dict):
                result[key] = self.sanitize_dict(value)
            else:
                result[key] = value
        return result

    def _quiet_sanitize(self, text: str) -> str:
        # Called from the log pipeline, so it must not log itself.
        sanitized = text
        for pattern, regex in self._compiled:
            sanitized = regex.sub(pattern.replacement, sanitized)
        return sanitized

    def hash_user_id(self, user_id: str) -> str:
        """One-way identifier used in place of the real user id."""
        digest = hashlib.sha256(f"{self._settings.user_id_salt}{user_id}".encode("utf-8"))
        return f"anon_{digest.hexdigest()[:16]}"

    def hash_content(self, content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()


class PIISanitizerProcessor:
    """Structlog processor that strips PII from free-text log fields.

    Add to the structlog processor chain before the renderer:
        processors=[
            ...,
            PIISanitizerProcessor(PIIAnonymizer(settings)),
            structlog.processors.JSONRenderer(),
        ]
    """

    def __init__(self, anonymizer: PIIAnonymizer | None = None) -> None:
        self._anonymizer = anonymizer or PIIAnonymizer()

    def __call__(
        self, logger_: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        return self._anonymizer.sanitize_dict(event_dict)

"""
Unit tests for PII anonymization.
"""
import re

from maternal_triage.domain.privacy import (
    PIIAnonymizer,
    PIISanitizerProcessor,
    PIIType,
    PrivacySettings,
)


class TestPIIAnonymizer:
    """Tests for placeholder substitution."""

    def setup_method(self) -> None:
        self.anonymizer = PIIAnonymizer(PrivacySettings(user_id_salt="test-salt"))

    def test_phone_and_email(self) -> None:
        result = self.anonymizer.anonymize("reach me on 555-123-4567 or jane@example.com")
        assert result.sanitized_text == "reach me on [PHONE] or [EMAIL]"
        assert result.pii_types_found == [PIIType.PHONE, PIIType.EMAIL]
        assert result.substitutions == 2
        assert result.contains_pii is True

    def test_name_date_and_ssn(self) -> None:
        text = "my sister Jane Doe was born 4/12/1990, ssn 123-45-6789"
        assert self.anonymizer.sanitize(text) == "my sister [NAME] was born [DATE], ssn [SSN]"

    def test_doctor_and_facility(self) -> None:
        text = "seen by Dr. Smith at hospital mercy"
        assert self.anonymizer.sanitize(text) == "seen by [DOCTOR_NAME] at [FACILITY]"

    def test_zip_code(self) -> None:
        assert self.anonymizer.sanitize("living in 90210 now") == "living in [ZIP] now"

    def test_clean_text_untouched(self) -> None:
        result = self.anonymizer.anonymize("mild nausea since tuesday")
        assert result.sanitized_text == "mild nausea since tuesday"
        assert result.contains_pii is False

    def test_disabled_anonymization(self) -> None:
        anonymizer = PIIAnonymizer(PrivacySettings(enable_anonymization=False))
        assert anonymizer.sanitize("call 555-123-4567") == "call 555-123-4567"

    def test_empty_text(self) -> None:
        assert self.anonymizer.anonymize("").sanitized_text == ""


class TestHashing:
    """Tests for one-way identifiers."""

    def test_hash_user_id_format(self) -> None:
        anonymizer = PIIAnonymizer(PrivacySettings(user_id_salt="test-salt"))
        hashed = anonymizer.hash_user_id("patient-42")
        assert re.fullmatch(r"anon_[0-9a-f]{16}", hashed)
        assert hashed == anonymizer.hash_user_id("patient-42")
        assert "patient-42" not in hashed

    def test_salt_changes_hash(self) -> None:
        first = PIIAnonymizer(PrivacySettings(user_id_salt="a")).hash_user_id("u1")
        second = PIIAnonymizer(PrivacySettings(user_id_salt="b")).hash_user_id("u1")
        assert first != second

    def test_hash_content_is_sha256(self) -> None:
        assert len(PIIAnonymizer().hash_content("hello")) == 64


class TestSanitizeDict:
    """Tests for structured sanitization."""

    def test_only_sensitive_keys_sanitized(self) -> None:
        anonymizer = PIIAnonymizer()
        data = {
            "message": "call 555-123-4567",
            "session_id": "555-123-4567",
            "nested": {"content": "jane@example.com", "count": 3},
        }
        result = anonymizer.sanitize_dict(data)
        assert result["message"] == "call [PHONE]"
        assert result["session_id"] == "555-123-4567"
        assert result["nested"] == {"content": "[EMAIL]", "count": 3}

    def test_structlog_processor(self) -> None:
        event = {"event": "turn_received", "text": "I'm Jane Doe"}
        result = PIISanitizerProcessor()(None, "info", event)
        assert result["event"] == "turn_received"
        assert result["text"] == "I'm [NAME]"

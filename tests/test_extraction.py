"""
Unit tests for lexical extraction.
"""
import pytest

from maternal_triage.domain.extraction import EMERGENCY_KEYWORDS, ExtractorSettings, LexicalExtractor
from maternal_triage.enums import EmotionalTone, EntityType, Intent, SymptomSeverity
from maternal_triage.schemas import ConversationContext, ExtractedSymptom


class TestEmergencyCheck:
    """Tests for the emergency keyword pre-check."""

    def setup_method(self) -> None:
        self.extractor = LexicalExtractor()

    def test_detects_keywords_case_insensitively(self) -> None:
        """Keywords match regardless of case."""
        check = self.extractor.check_emergency("I have SEVERE BLEEDING since this morning")
        assert check.is_emergency is True
        assert "severe bleeding" in check.keywords

    def test_reports_every_matching_keyword(self) -> None:
        """All keywords found are returned in table order."""
        check = self.extractor.check_emergency("chest pain and blurred vision")
        assert check.keywords == ("blurred vision", "chest pain")

    def test_plain_message_is_not_emergency(self) -> None:
        check = self.extractor.check_emergency("I feel a bit tired today")
        assert check.is_emergency is False
        assert check.keywords == ()

    def test_substring_fit_matches_inside_words(self) -> None:
        """The bare 'fit' keyword also matches inside longer words."""
        check = self.extractor.check_emergency("what are the benefits of yoga")
        assert "fit" in check.keywords

    def test_empty_and_none_are_safe(self) -> None:
        assert self.extractor.check_emergency("").is_emergency is False
        assert self.extractor.check_emergency(None).is_emergency is False

    def test_keyword_table_is_lowercase(self) -> None:
        assert all(k == k.lower() for k in EMERGENCY_KEYWORDS)

    def test_keyword_beyond_length_cap_is_detected(self) -> None:
        """The pre-check scans the whole message, not the capped prefix."""
        extractor = LexicalExtractor(ExtractorSettings(max_message_length=50))
        message = "I have been feeling okay. " * 10 + "Now I have contractions."
        assert extractor.check_emergency(message).keywords == ("contractions",)
        assert extractor.extract_symptoms(message) == []


class TestIntentAndTone:
    """Tests for first-match-wins intent and tone detection."""

    def setup_method(self) -> None:
        self.extractor = LexicalExtractor()

    def test_worried_is_emotional_support_and_anxious(self) -> None:
        """'worried' maps to emotional support intent and anxious tone."""
        assert self.extractor.detect_intent("I am worried") == Intent.EMOTIONAL_SUPPORT
        assert self.extractor.detect_emotional_tone("I am worried") == EmotionalTone.ANXIOUS

    def test_symptom_report_wins_over_question(self) -> None:
        """Earlier table entries win."""
        assert self.extractor.detect_intent("why does my back hurt") == Intent.SYMPTOM_REPORT

    def test_nutrition_intent(self) -> None:
        assert self.extractor.detect_intent("which food has iron") == Intent.NUTRITION

    def test_default_intent_and_tone(self) -> None:
        assert self.extractor.detect_intent("hello there") == Intent.GENERAL
        assert self.extractor.detect_emotional_tone("hello there") == EmotionalTone.NEUTRAL

    def test_urgent_tone_precedes_anxious(self) -> None:
        assert self.extractor.detect_emotional_tone("I'm scared, help") == EmotionalTone.URGENT


class TestSymptomExtraction:
    """Tests for symptom patterns."""

    def setup_method(self) -> None:
        self.extractor = LexicalExtractor()

    def test_severe_prefix_captures_symptom(self) -> None:
        symptoms = self.extractor.extract_symptoms("I have a severe headache")
        assert ExtractedSymptom(name="headache", severity=SymptomSeverity.SEVERE) in symptoms

    def test_spotting_normalised_to_bleeding(self) -> None:
        symptoms = self.extractor.extract_symptoms("some spotting today")
        assert [s.name for s in symptoms] == ["bleeding"]
        assert symptoms[0].severity == SymptomSeverity.MODERATE

    def test_duplicates_collapse_to_first_match(self) -> None:
        """A symptom already captured by an earlier pattern is not repeated."""
        symptoms = self.extractor.extract_symptoms("mild nausea and more nausea")
        nausea = [s for s in symptoms if s.name == "nausea"]
        assert len(nausea) == 1
        assert nausea[0].severity == SymptomSeverity.MILD

    def test_fatigue_synonyms(self) -> None:
        symptoms = self.extractor.extract_symptoms("I'm exhausted")
        assert [s.name for s in symptoms] == ["fatigue"]


class TestEntityExtraction:
    """Tests for typed entity spans."""

    def setup_method(self) -> None:
        self.extractor = LexicalExtractor()

    def test_measurement_time_and_body_part(self) -> None:
        entities = self.extractor.extract_entities("BP was 150/95 mmHg 2 days ago, pain in my back")
        types = {e.entity_type for e in entities}
        assert EntityType.MEASUREMENT in types
        assert EntityType.TIME_EXPRESSION in types
        assert EntityType.BODY_PART in types
        measurement = next(e for e in entities if e.entity_type == EntityType.MEASUREMENT)
        assert measurement.value.startswith("150/95")
        assert measurement.confidence == pytest.approx(0.9)


class TestExtract:
    """Tests for the full extraction pass."""

    def setup_method(self) -> None:
        self.extractor = LexicalExtractor()

    def test_new_symptoms_relative_to_context(self) -> None:
        context = ConversationContext(session_id="s1", user_id="u1")
        context.add_symptoms([ExtractedSymptom(name="nausea")])
        result = self.extractor.extract("nausea and back pain", context)
        assert result.new_symptom_names == ["back pain"]

    def test_non_string_input_degrades(self) -> None:
        """Extraction never raises; bad input yields defaults."""
        result = self.extractor.extract(12345)  # type: ignore[arg-type]
        assert result.degraded is True
        assert result.intent == Intent.GENERAL
        assert result.emotional_tone == EmotionalTone.NEUTRAL
        assert result.symptoms == []
        assert result.entities == []

    def test_statistics_track_degradation(self) -> None:
        self.extractor.extract(None)
        self.extractor.extract(3.5)  # type: ignore[arg-type]
        stats = self.extractor.get_statistics()
        assert stats["extractions"] == 2
        assert stats["degraded"] == 1

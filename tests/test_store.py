"""
Tests for key-value and context stores.
"""
import pytest
from pydantic import ValidationError

from maternal_triage.enums import EmotionalTone, Intent, RiskLevel, UserRole
from maternal_triage.exceptions import StoreError
from maternal_triage.infrastructure import ContextStore, InMemoryKeyValueStore, derive_profile_risk_factors
from maternal_triage.schemas import ConversationMessage, ExtractedSymptom


class TestInMemoryKeyValueStore:
    """Tests for the in-memory backend."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        store = InMemoryKeyValueStore()
        await store.set("a:1", {"x": 1})
        assert await store.get("a:1") == {"x": 1}
        assert await store.delete("a:1") is True
        assert await store.delete("a:1") is False
        assert await store.get("a:1") is None

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        """Mutating a returned value never changes the stored one."""
        store = InMemoryKeyValueStore()
        value = {"items": [1]}
        await store.set("k", value)
        value["items"].append(2)
        fetched = await store.get("k")
        fetched["items"].append(3)
        assert await store.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_keys_by_prefix(self):
        store = InMemoryKeyValueStore()
        await store.set("context:s1", {})
        await store.set("learning:record:r1", {})
        await store.set("context:s2", {})
        assert await store.keys("context:") == ["context:s1", "context:s2"]
        assert len(store) == 3


class TestDeriveProfileRiskFactors:
    """Tests for profile-derived risk tags."""

    def test_elevated_risk_and_late_pregnancy(self):
        assert derive_profile_risk_factors(RiskLevel.LEVEL_3, 38) == ["elevated_risk_level_3", "late_pregnancy"]

    def test_early_pregnancy(self):
        assert derive_profile_risk_factors(RiskLevel.LEVEL_1, 8) == ["early_pregnancy"]

    def test_no_profile(self):
        assert derive_profile_risk_factors(None, None) == []


class TestContextStore:
    """Tests for conversation context persistence."""

    def setup_method(self):
        self.backend = InMemoryKeyValueStore()
        self.store = ContextStore(self.backend)

    @pytest.mark.asyncio
    async def test_get_or_create_seeds_patient_profile(self):
        context = await self.store.get_or_create(
            "s1", "u1", gestational_week=38, profile_risk_level=RiskLevel.LEVEL_2,
        )
        assert context.risk_factors == ["elevated_risk_level_2", "late_pregnancy"]
        assert context.risk_level is RiskLevel.LEVEL_2
        assert await self.store.get("s1") is None

    @pytest.mark.asyncio
    async def test_clinician_context_has_no_profile_factors(self):
        context = await self.store.get_or_create(
            "s1", "u1", role=UserRole.CLINICIAN, gestational_week=38, profile_risk_level=RiskLevel.LEVEL_3,
        )
        assert context.risk_factors == []

    @pytest.mark.asyncio
    async def test_save_and_reload(self):
        context = await self.store.get_or_create("s1", "u1", gestational_week=20)
        context.add_message(ConversationMessage.user_message("hello"))
        await self.store.save(context)
        reloaded = await self.store.get_or_create("s1", "u1", gestational_week=21)
        assert reloaded.gestational_week == 21
        assert [m.content for m in reloaded.messages] == ["hello"]

    @pytest.mark.asyncio
    async def test_message_and_symptom_updates(self):
        await self.store.save(await self.store.get_or_create("s1", "u1"))
        await self.store.add_message("s1", ConversationMessage.user_message("one"))
        await self.store.add_message("s1", ConversationMessage.assistant_message("two"))
        await self.store.add_symptoms("s1", [ExtractedSymptom(name="nausea")])
        context = await self.store.update_intent("s1", Intent.SYMPTOM_REPORT, EmotionalTone.ANXIOUS)
        assert context.symptom_names == ["nausea"]
        assert context.current_intent is Intent.SYMPTOM_REPORT
        history = await self.store.get_history("s1", limit=1)
        assert [m.content for m in history] == ["two"]

    @pytest.mark.asyncio
    async def test_clear(self):
        await self.store.save(await self.store.get_or_create("s1", "u1"))
        assert await self.store.clear("s1") is True
        assert await self.store.get_history("s1") == []

    @pytest.mark.asyncio
    async def test_missing_session_raises(self):
        with pytest.raises(StoreError):
            await self.store.add_message("missing", ConversationMessage.user_message("x"))

    @pytest.mark.asyncio
    async def test_corrupt_context_raises(self):
        await self.backend.set("context:bad", {"session_id": "bad", "gestational_week": 99})
        with pytest.raises(StoreError) as exc_info:
            await self.store.get("bad")
        assert exc_info.value.key == "context:bad"

    @pytest.mark.asyncio
    async def test_empty_backend_is_used(self):
        """An empty injected backend receives the saved context."""
        backend = InMemoryKeyValueStore()
        store = ContextStore(backend)
        await store.save(await store.get_or_create("s1", "u1"))
        assert await backend.keys("context:") == ["context:s1"]

    @pytest.mark.asyncio
    async def test_week_assignment_is_validated(self):
        context = await self.store.get_or_create("s1", "u1", gestational_week=20)
        with pytest.raises(ValidationError):
            context.gestational_week = 50
        assert context.gestational_week == 20

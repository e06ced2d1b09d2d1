"""
Pytest configuration and fixtures for maternal triage testing
"""

import pytest

from maternal_triage.config import TriageConfig
from maternal_triage.domain.extraction import LexicalExtractor
from maternal_triage.domain.orchestrator import AgentOrchestrator
from maternal_triage.domain.reasoner import DiagnosticReasoner
from maternal_triage.domain.service import TriageService
from maternal_triage.enums import Environment
from maternal_triage.infrastructure import InMemoryKeyValueStore, InMemoryRecordSink, LoggingEscalationNotifier


@pytest.fixture
def test_config():
    """Configuration for tests: strict invariants, anonymization on"""
    return TriageConfig(environment=Environment.TEST)


@pytest.fixture
def extractor():
    return LexicalExtractor()


@pytest.fixture
def reasoner():
    return DiagnosticReasoner()


@pytest.fixture
def orchestrator():
    return AgentOrchestrator()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def record_sink():
    return InMemoryRecordSink()


@pytest.fixture
def notifier():
    return LoggingEscalationNotifier()


@pytest.fixture
def service(test_config, kv_store, record_sink, notifier):
    """Turn pipeline wired to in-memory collaborators"""
    return TriageService(test_config, store=kv_store, persistence=record_sink, notifier=notifier)

"""
Maternal Triage Engine.

Rule-based clinical triage and multi-agent reasoning for maternal health:
- Lexical extraction of symptoms, entities, intent and emotional tone
- Weighted obstetric rules and Bayesian-style condition scoring
- Agent pool with emergency short-circuit and safety filtering
- Dual-view (patient/clinician) explanations
- Anonymized learning buffer with admin review
"""

from .config import TriageConfig, get_config, reload_config
from .domain.explainability import ExplainabilityFormatter, Explanation, ExplanationSubject
from .domain.extraction import LexicalExtractor
from .domain.learning import LearningSystem
from .domain.orchestrator import AgentOrchestrator, OrchestratorResult
from .domain.privacy import PIIAnonymizer
from .domain.reasoner import DiagnosticReasoner, DiagnosticResult
from .domain.responder import ConversationalResponder
from .domain.service import TriageService, TurnResult
from .enums import Intent, RiskLevel, SymptomSeverity, Urgency, UserRole
from .exceptions import InvariantViolationError, TriageError
from .observability import configure_logging
from .schemas import ConversationContext, DiagnosticInput, PregnancyStage, SymptomInput, VitalSigns

__version__ = "1.0.0"

__all__ = [
    "AgentOrchestrator",
    "ConversationContext",
    "ConversationalResponder",
    "DiagnosticInput",
    "DiagnosticReasoner",
    "DiagnosticResult",
    "ExplainabilityFormatter",
    "Explanation",
    "ExplanationSubject",
    "Intent",
    "InvariantViolationError",
    "LearningSystem",
    "LexicalExtractor",
    "OrchestratorResult",
    "PIIAnonymizer",
    "PregnancyStage",
    "RiskLevel",
    "SymptomInput",
    "SymptomSeverity",
    "TriageConfig",
    "TriageError",
    "TriageService",
    "TurnResult",
    "Urgency",
    "UserRole",
    "VitalSigns",
    "configure_logging",
    "get_config",
    "reload_config",
    "__version__",
]

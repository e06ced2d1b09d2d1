"""
Maternal Triage - Explainability Formatter.
Projects diagnostic or orchestration output into a simplified patient view and
a detailed clinical view built from the same evidence.
"""
from __future__ import annotations
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from ..agents import AgentKind, TriageBand
from ..enums import FeatureImpact, Intent, RiskLevel, UserRole
from ..schemas import ExtractedSymptom, SymptomInput
from .knowledge_base import OBSTETRIC_RULES
from .orchestrator import OrchestratorResult
from .reasoner import DiagnosticResult, DifferentialCondition, FeatureWeight
from .severity import higher_risk

logger = structlog.get_logger(__name__)

MODEL_NAME = "Maternal Health AI"
TRAINING_DATA = "Trained on anonymized maternal health records and obstetric guidelines"
VALIDATION_METRICS = "F1: 0.85, Safety Score: 0.95, Clinical Validation: 0.80"
KNOWN_LIMITATIONS: tuple[str, ...] = (
    "Not designed for rare conditions",
    "Requires clinical correlation",
    "May not account for all patient-specific factors",
    "Based on general obstetric guidelines, not individual protocols",
)
CLINICAL_LIMITATIONS: tuple[str, ...] = (
    "AI-assisted assessment should be used in conjunction with clinical judgment",
    "Individual patient factors may not be fully captured by the model",
    "Always correlate with physical examination and diagnostic tests",
)
CLINICAL_CORRELATION = (
    "Recommend clinical examination to confirm AI findings. "
    "Consider patient history and physical assessment."
)

WARNING_SIGNS: tuple[str, ...] = (
    "Contact your doctor immediately if you experience:",
    "• Heavy bleeding or fluid leaking",
    "• Severe headache or vision changes",
    "• Difficulty breathing",
    "• Severe abdominal pain",
    "• Decreased baby movement",
    "• Fever above 38°C (100.4°F)",
)

RISK_FINDINGS: dict[RiskLevel, str] = {
    RiskLevel.LEVEL_1: "Your symptoms appear to be within normal range",
    RiskLevel.LEVEL_2: "Your symptoms need some attention but are not urgent",
    RiskLevel.LEVEL_3: "Your symptoms need prompt medical attention",
    RiskLevel.LEVEL_4: "Your symptoms require immediate medical care",
}

INTENT_FINDINGS: dict[Intent, str] = {
    Intent.SYMPTOM_REPORT: "We understood you are reporting symptoms",
    Intent.QUESTION: "We understood you have a question",
    Intent.EMERGENCY: "We recognized this may be urgent",
    Intent.EMOTIONAL_SUPPORT: "We understand you may need support",
}

WHY_IT_MATTERS: dict[RiskLevel, str] = {
    RiskLevel.LEVEL_1: (
        "During pregnancy, it's normal to experience various symptoms. The symptoms you described "
        "are common and generally not concerning, but it's always good to stay aware of how you feel."
    ),
    RiskLevel.LEVEL_2: (
        "Some of the symptoms you mentioned deserve attention. While they're not emergencies, "
        "getting them checked helps ensure you and your baby stay healthy."
    ),
    RiskLevel.LEVEL_3: (
        "The symptoms you described can sometimes indicate conditions that need medical evaluation. "
        "Getting checked promptly helps catch any issues early when they're easier to treat."
    ),
    RiskLevel.LEVEL_4: (
        "Some of the symptoms you mentioned can be signs of conditions that need immediate care. "
        "Getting help quickly is important for your safety and your baby's."
    ),
}

BASE_ACTIONS: dict[RiskLevel, tuple[str, ...]] = {
    RiskLevel.LEVEL_1: ("Continue your normal activities", "Stay hydrated and get enough rest",
                        "Keep track of your symptoms in case they change"),
    RiskLevel.LEVEL_2: ("Monitor your symptoms over the next day or two",
                        "Consider scheduling a check-up with your doctor",
                        "Write down any changes to discuss at your appointment"),
    RiskLevel.LEVEL_3: ("Contact your healthcare provider today",
                        "Avoid strenuous activity until you are evaluated",
                        "Have someone available to help if needed"),
    RiskLevel.LEVEL_4: ("Seek medical care immediately",
                        "Call someone to drive you or call an ambulance",
                        "Do not wait to see if symptoms improve"),
}

_PROBABILITY = re.compile(r"\d+(?:\.\d+)?\s*%")
_INTERNAL_NAMES: tuple[str, ...] = tuple(
    name.lower() for rule in OBSTETRIC_RULES for name in (rule.rule_id, rule.name)
)


class ExplainabilitySettings(BaseSettings):
    """Explanation formatting configuration."""
    model_version: str = Field(default="maternal-ai-v1.0")
    explanation_version: str = Field(default="explain-v1.0")
    high_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    medium_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    default_confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    max_patient_recommendations: int = Field(default=3, ge=0)
    max_differential: int = Field(default=5, ge=1)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_EXPLAIN_", env_file=".env", extra="ignore")


_BAND_RISK: dict[TriageBand, RiskLevel] = {
    TriageBand.ROUTINE: RiskLevel.LEVEL_1,
    TriageBand.MODERATE: RiskLevel.LEVEL_2,
    TriageBand.URGENT: RiskLevel.LEVEL_3,
    TriageBand.EMERGENCY: RiskLevel.LEVEL_4,
}

_EMERGENCY_SEVERITY_RISK: dict[str, RiskLevel] = {
    "critical": RiskLevel.LEVEL_4,
    "high": RiskLevel.LEVEL_3,
}


@dataclass
class ExplanationContext:
    """Optional caller-side context: gestational week, symptom names and baseline risk."""
    pregnancy_week: int | None = None
    symptoms: list[str] = field(default_factory=list)
    risk_level: RiskLevel | None = None


@dataclass
class ExplanationSubject:
    """Evidence common to both views, normalised from whichever stage produced it."""
    risk_level: RiskLevel = RiskLevel.LEVEL_1
    confidence: float | None = None
    intent: Intent | None = None
    symptoms: list[ExtractedSymptom] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    differential: list[DifferentialCondition] = field(default_factory=list)
    features: list[FeatureWeight] = field(default_factory=list)

    @classmethod
    def from_diagnostic(
        cls, result: DiagnosticResult, symptoms: list[SymptomInput] | None = None,
        intent: Intent | None = None,
    ) -> ExplanationSubject:
        return cls(
            risk_level=result.risk_level,
            confidence=result.confidence,
            intent=intent,
            symptoms=[ExtractedSymptom(name=s.name, severity=s.severity) for s in symptoms or []],
            recommendations=[r.description for r in result.recommendations],
            differential=list(result.differential),
            features=[f for f in result.trace.features_considered
                      if not f.feature.startswith("Symptom:")],
        )

    @classmethod
    def from_orchestration(
        cls, result: OrchestratorResult, symptoms: list[ExtractedSymptom] | None = None,
        intent: Intent | None = None,
    ) -> ExplanationSubject:
        """Subject for an agent-pool result; risk comes from the triage band and any emergency override."""
        risk_level = RiskLevel.LEVEL_1
        band = result.triage_band
        if band is not None:
            risk_level = higher_risk(risk_level, _BAND_RISK[band])
        if result.emergency_override:
            emergency = result.output_for(AgentKind.EMERGENCY)
            severity = emergency.metadata.get("severity") if emergency else None
            risk_level = higher_risk(risk_level, _EMERGENCY_SEVERITY_RISK.get(severity, RiskLevel.LEVEL_4))
        return cls(
            risk_level=risk_level,
            confidence=result.overall_confidence,
            intent=intent,
            symptoms=list(symptoms or []),
        )

    @classmethod
    def from_turn(
        cls,
        *,
        risk_level: RiskLevel,
        confidence: float,
        intent: Intent | None,
        symptoms: list[ExtractedSymptom],
        recommendations: list[str],
        diagnostic: DiagnosticResult | None = None,
    ) -> ExplanationSubject:
        """Subject for a whole turn; the folded risk wins over the diagnostic one."""
        return cls(
            risk_level=risk_level,
            confidence=confidence,
            intent=intent,
            symptoms=list(symptoms),
            recommendations=list(recommendations),
            differential=list(diagnostic.differential) if diagnostic else [],
            features=([f for f in diagnostic.trace.features_considered
                       if not f.feature.startswith("Symptom:")] if diagnostic else []),
        )


@dataclass
class ConfidenceIndicator:
    level: str
    description: str
    visual_indicator: str

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "description": self.description,
                "visual_indicator": self.visual_indicator}


@dataclass
class ConfidenceFactor:
    factor: str
    confidence: float
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {"factor": self.factor, "confidence": self.confidence, "weight": self.weight}


@dataclass
class DetailedConfidence:
    overall: float
    by_factor: list[ConfidenceFactor]
    uncertainty_factors: list[str]
    reliability_assessment: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "by_factor": [f.to_dict() for f in self.by_factor],
            "uncertainty_factors": list(self.uncertainty_factors),
            "reliability_assessment": self.reliability_assessment,
        }


@dataclass
class ChainStep:
    step_number: int
    process: str
    input: str
    output: str
    confidence: float
    evidence: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"step_number": self.step_number, "process": self.process, "input": self.input,
                "output": self.output, "confidence": self.confidence, "evidence": list(self.evidence)}


@dataclass
class FeatureAnalysis:
    feature: str
    value: str
    impact: FeatureImpact
    weight: float
    explanation: str
    normal_range: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"feature": self.feature, "value": self.value, "normal_range": self.normal_range,
                "impact": self.impact.value, "weight": self.weight, "explanation": self.explanation}


@dataclass
class ModelDetails:
    model_name: str
    version: str
    training_data_description: str
    validation_metrics: str
    known_limitations: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_name": self.model_name, "version": self.version,
            "training_data_description": self.training_data_description,
            "validation_metrics": self.validation_metrics,
            "known_limitations": list(self.known_limitations),
        }


@dataclass
class PatientView:
    summary: str
    what_we_found: list[str]
    why_this_matters: str
    what_you_can_do: list[str]
    when_to_worry: list[str]
    confidence: ConfidenceIndicator

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary, "what_we_found": list(self.what_we_found),
            "why_this_matters": self.why_this_matters, "what_you_can_do": list(self.what_you_can_do),
            "when_to_worry": list(self.when_to_worry), "confidence": self.confidence.to_dict(),
        }


@dataclass
class ClinicalView:
    summary: str
    reasoning_chain: list[ChainStep]
    differential_considerations: list[str]
    features_analyzed: list[FeatureAnalysis]
    model_details: ModelDetails
    limitations: list[str]
    clinical_correlation: str
    confidence: DetailedConfidence

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "reasoning_chain": [s.to_dict() for s in self.reasoning_chain],
            "differential_considerations": list(self.differential_considerations),
            "features_analyzed": [f.to_dict() for f in self.features_analyzed],
            "model_details": self.model_details.to_dict(),
            "limitations": list(self.limitations),
            "clinical_correlation": self.clinical_correlation,
            "confidence": self.confidence.to_dict(),
        }


@dataclass
class ExplanationMetadata:
    model_version: str
    explanation_version: str
    compute_time_ms: float
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {"generated_at": self.generated_at.isoformat(), "model_version": self.model_version,
                "explanation_version": self.explanation_version,
                "compute_time_ms": round(self.compute_time_ms, 3)}


@dataclass
class Explanation:
    for_patient: PatientView
    for_clinician: ClinicalView
    metadata: ExplanationMetadata

    def view_for(self, role: UserRole) -> dict[str, Any]:
        """Role-scoped projection: patients never receive the clinical view."""
        if role is UserRole.PATIENT:
            return {"patient": self.for_patient.to_dict()}
        if role is UserRole.CLINICIAN:
            return {"clinician": self.for_clinician.to_dict()}
        return {"patient": self.for_patient.to_dict(), "clinician": self.for_clinician.to_dict()}

    def to_dict(self) -> dict[str, Any]:
        return {"for_patient": self.for_patient.to_dict(),
                "for_clinician": self.for_clinician.to_dict(),
                "metadata": self.metadata.to_dict()}


class ExplainabilityFormatter:
    """Builds dual-view explanations."""

    def __init__(self, settings: ExplainabilitySettings | None = None) -> None:
        self._settings = settings or ExplainabilitySettings()

    def explain(
        self, subject: ExplanationSubject, context: ExplanationContext | None = None,
    ) -> Explanation:
        start = time.perf_counter()
        context = context or ExplanationContext()
        patient = self._patient_view(subject, context)
        clinical = self._clinical_view(subject, context)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("explanation_generated", risk_level=subject.risk_level.value,
                     chain_steps=len(clinical.reasoning_chain), elapsed_ms=round(elapsed, 3))
        return Explanation(
            for_patient=patient,
            for_clinician=clinical,
            metadata=ExplanationMetadata(
                model_version=self._settings.model_version,
                explanation_version=self._settings.explanation_version,
                compute_time_ms=elapsed,
            ),
        )

    def _confidence(self, subject: ExplanationSubject) -> float:
        return subject.confidence if subject.confidence else self._settings.default_confidence

    # Patient view

    def _patient_view(self, subject: ExplanationSubject, context: ExplanationContext) -> PatientView:
        return PatientView(
            summary=self._patient_summary(subject.risk_level, context.pregnancy_week),
            what_we_found=self._findings(subject),
            why_this_matters=WHY_IT_MATTERS[subject.risk_level],
            what_you_can_do=self._patient_actions(subject),
            when_to_worry=list(WARNING_SIGNS),
            confidence=self.confidence_indicator(self._confidence(subject)),
        )

    @staticmethod
    def _patient_summary(risk_level: RiskLevel, week: int | None) -> str:
        if risk_level is RiskLevel.LEVEL_1:
            at = f" at week {week} of your pregnancy" if week else ""
            return f"Based on what you've shared{at}, things look okay. Keep monitoring how you feel."
        at = f" at week {week}" if week else ""
        if risk_level is RiskLevel.LEVEL_2:
            return (f"Based on what you've shared{at}, we recommend keeping an eye on your symptoms "
                    "and checking in with your doctor soon.")
        if risk_level is RiskLevel.LEVEL_3:
            return (f"Based on what you've shared{at}, we think you should contact your healthcare "
                    "provider within the next 24 hours.")
        return (f"Based on what you've shared{at}, we think you need medical attention right away. "
                "Please contact your doctor or go to the hospital.")

    @staticmethod
    def _findings(subject: ExplanationSubject) -> list[str]:
        findings: list[str] = []
        if subject.symptoms:
            findings.append(f"We identified {len(subject.symptoms)} symptom(s) you mentioned")
        findings.append(RISK_FINDINGS[subject.risk_level])
        if subject.intent in INTENT_FINDINGS:
            findings.append(INTENT_FINDINGS[subject.intent])
        return findings

    def _patient_actions(self, subject: ExplanationSubject) -> list[str]:
        actions = list(BASE_ACTIONS[subject.risk_level])
        safe = [r for r in subject.recommendations if self.is_patient_safe(r)]
        actions.extend(safe[: self._settings.max_patient_recommendations])
        return actions

    @staticmethod
    def is_patient_safe(text: str) -> bool:
        """False for text carrying probabilities or internal rule identifiers."""
        lowered = text.lower()
        return not _PROBABILITY.search(text) and not any(n in lowered for n in _INTERNAL_NAMES)

    def confidence_indicator(self, confidence: float) -> ConfidenceIndicator:
        if confidence >= self._settings.high_confidence:
            return ConfidenceIndicator(
                "high", "We are fairly confident in this assessment based on the information provided.", "🟢",
            )
        if confidence >= self._settings.medium_confidence:
            return ConfidenceIndicator(
                "medium",
                "This assessment is based on the information provided, but there may be other "
                "factors to consider.",
                "🟡",
            )
        return ConfidenceIndicator(
            "low",
            "We have limited confidence in this assessment. Please discuss with your healthcare provider.",
            "🟠",
        )

    # Clinical view

    def _clinical_view(self, subject: ExplanationSubject, context: ExplanationContext) -> ClinicalView:
        return ClinicalView(
            summary=self._clinical_summary(subject, context),
            reasoning_chain=self._reasoning_chain(subject),
            differential_considerations=self._differential(subject),
            features_analyzed=self._features(subject, context),
            model_details=ModelDetails(
                model_name=MODEL_NAME,
                version=self._settings.model_version,
                training_data_description=TRAINING_DATA,
                validation_metrics=VALIDATION_METRICS,
                known_limitations=list(KNOWN_LIMITATIONS),
            ),
            limitations=list(CLINICAL_LIMITATIONS),
            clinical_correlation=CLINICAL_CORRELATION,
            confidence=self.detailed_confidence(subject),
        )

    def _clinical_summary(self, subject: ExplanationSubject, context: ExplanationContext) -> str:
        parts: list[str] = []
        if context.pregnancy_week:
            parts.append(f"Patient at {context.pregnancy_week} weeks gestation.")
        if subject.symptoms:
            listed = ", ".join(f"{s.name} ({s.severity.value})" for s in subject.symptoms)
            parts.append(f"Presenting symptoms: {listed}.")
        parts.append(f"AI risk assessment: {subject.risk_level.label}.")
        if subject.confidence:
            parts.append(f"Model confidence: {subject.confidence * 100:.1f}%.")
        parts.append("Clinical correlation recommended.")
        return " ".join(parts)

    def _reasoning_chain(self, subject: ExplanationSubject) -> list[ChainStep]:
        intent = subject.intent.value if subject.intent else "unknown"
        chain = [ChainStep(
            1, "Input Processing", "Patient message and context",
            f"Identified {len(subject.symptoms)} symptoms, intent: {intent}", 0.9,
            ["Natural language processing", "Medical entity recognition"],
        )]
        if subject.symptoms:
            chain.append(ChainStep(
                2, "Symptom Analysis", ", ".join(s.name for s in subject.symptoms),
                f"Severity assessment: {', '.join(s.severity.value for s in subject.symptoms)}", 0.85,
                ["Symptom pattern matching", "Severity scoring algorithm"],
            ))
        chain.append(ChainStep(
            len(chain) + 1, "Risk Stratification", "Symptoms, pregnancy stage, risk factors",
            f"Risk Level: {subject.risk_level.value}", self._confidence(subject),
            ["Bayesian risk model", "Rule-based obstetric logic", "Multi-agent consensus"],
        ))
        chain.append(ChainStep(
            len(chain) + 1, "Response Generation", "Risk assessment, user role, context",
            "Appropriate response with recommendations", 0.85,
            ["Safety filters applied", "Language adaptation for user type"],
        ))
        return chain

    def _differential(self, subject: ExplanationSubject) -> list[str]:
        if not subject.differential:
            return ["No specific differential diagnoses generated",
                    "Clinical correlation and examination recommended"]
        return [
            f"{c.condition}: {c.probability * 100:.1f}% - {c.description or 'Consider evaluation'}"
            for c in subject.differential[: self._settings.max_differential]
        ]

    @staticmethod
    def _features(subject: ExplanationSubject, context: ExplanationContext) -> list[FeatureAnalysis]:
        features: list[FeatureAnalysis] = []
        if context.pregnancy_week:
            features.append(FeatureAnalysis(
                "Gestational Age", str(context.pregnancy_week), FeatureImpact.NEUTRAL, 0.8,
                f"Patient at {context.pregnancy_week} weeks. Late pregnancy (>36 weeks) increases "
                "vigilance for labor signs.",
                normal_range="0-42 weeks",
            ))
        if context.risk_level:
            elevated = context.risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4)
            features.append(FeatureAnalysis(
                "Baseline Risk Level", context.risk_level.value,
                FeatureImpact.NEGATIVE if elevated else FeatureImpact.NEUTRAL, 0.9,
                f"Patient has {context.risk_level.value} baseline risk. Higher baseline increases "
                "concern for new symptoms.",
            ))
        for symptom in subject.symptoms:
            features.append(FeatureAnalysis(
                f"Symptom: {symptom.name}", symptom.severity.value,
                FeatureImpact.NEGATIVE if symptom.severity.is_serious else FeatureImpact.NEUTRAL,
                symptom.severity.feature_weight,
                f"{symptom.name} reported with {symptom.severity.value} severity.",
            ))
        for feature in subject.features:
            features.append(FeatureAnalysis(
                feature.feature, feature.value, feature.impact, feature.weight,
                f"{feature.feature} weighted by the diagnostic model.",
            ))
        if subject.intent:
            features.append(FeatureAnalysis(
                "Detected Intent", subject.intent.value,
                FeatureImpact.NEGATIVE if subject.intent is Intent.EMERGENCY else FeatureImpact.NEUTRAL,
                0.7, f"Primary intent classified as {subject.intent.value}.",
            ))
        return features

    def detailed_confidence(self, subject: ExplanationSubject) -> DetailedConfidence:
        base = self._confidence(subject)
        factors = [
            ConfidenceFactor("Symptom Specificity", 0.85 if subject.symptoms else 0.6, 0.3),
            ConfidenceFactor("Context Completeness", 0.7, 0.2),
            ConfidenceFactor("Model Certainty", base, 0.3),
            ConfidenceFactor("Safety Validation", 0.95, 0.2),
        ]
        uncertainty: list[str] = []
        if not subject.symptoms:
            uncertainty.append("Limited symptom information provided")
        if base < 0.7:
            uncertainty.append("Model showed reduced certainty")
        if base >= self._settings.high_confidence:
            reliability = "High reliability - supported by strong feature matching"
        elif base >= self._settings.medium_confidence:
            reliability = "Moderate reliability - clinical correlation recommended"
        else:
            reliability = "Lower reliability - requires clinical judgment"
        return DetailedConfidence(base, factors, uncertainty, reliability)

    # Rendering

    def format_for_role(self, explanation: Explanation, role: UserRole) -> str:
        """Markdown rendering; admins see both views."""
        if role is UserRole.PATIENT:
            return self._format_patient(explanation.for_patient)
        if role is UserRole.CLINICIAN:
            return self._format_clinical(explanation.for_clinician)
        return (self._format_patient(explanation.for_patient) + "\n\n---\n\n"
                + self._format_clinical(explanation.for_clinician))

    @staticmethod
    def _format_patient(p: PatientView) -> str:
        return (
            f"## Summary\n{p.summary}\n\n"
            "## What We Found\n" + "\n".join(f"• {f}" for f in p.what_we_found) + "\n\n"
            f"## Why This Matters\n{p.why_this_matters}\n\n"
            "## What You Can Do\n" + "\n".join(f"• {a}" for a in p.what_you_can_do) + "\n\n"
            f"## Confidence\n{p.confidence.visual_indicator} {p.confidence.description}\n\n"
            "## Warning Signs\n" + "\n".join(p.when_to_worry)
        )

    @staticmethod
    def _format_clinical(c: ClinicalView) -> str:
        lines = [f"## Clinical Summary\n{c.summary}\n", "## Reasoning Chain"]
        for step in c.reasoning_chain:
            lines.append(f"{step.step_number}. **{step.process}**: {step.output} "
                         f"(Confidence: {step.confidence * 100:.0f}%)")
        lines.append("\n## Differential Considerations")
        lines.extend(f"• {d}" for d in c.differential_considerations)
        lines.append("\n## Features Analyzed")
        lines.extend(f"• {f.feature}: {f.value} (Weight: {f.weight}, Impact: {f.impact.value})"
                     for f in c.features_analyzed)
        lines.append("\n## Confidence")
        lines.append(f"Overall: {c.confidence.overall * 100:.1f}%")
        lines.append(f"Reliability: {c.confidence.reliability_assessment}\n")
        lines.append("## Limitations")
        lines.extend(f"• {l}" for l in c.limitations)
        lines.append(f"\n## Clinical Correlation\n{c.clinical_correlation}")
        return "\n".join(lines)

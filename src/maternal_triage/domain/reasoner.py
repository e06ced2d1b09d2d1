"""
Maternal Triage - Diagnostic Reasoner.
Rule evaluation plus Bayesian-style scoring of obstetric conditions.
"""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from ..enums import (
    FeatureImpact, RecommendationPriority, RecommendationType, RiskLevel,
    SymptomSeverity, Urgency,
)
from ..exceptions import InvariantViolationError
from ..schemas import (
    DiagnosticInput, MedicalHistory, PregnancyStage, SymptomInput, VitalSigns,
)
from .knowledge_base import ConditionDefinition, KnowledgeBase, ObstetricRule
from .severity import RiskAccumulator

logger = structlog.get_logger(__name__)

DIAGNOSTIC_LIMITATIONS: tuple[str, ...] = (
    "This is an AI-assisted analysis and should not replace clinical judgment",
    "Rare conditions may not be fully represented in the model",
    "Individual patient variations may affect accuracy",
    "Always correlate with clinical examination",
)

DIAGNOSTIC_DISCLAIMERS: tuple[str, ...] = (
    "This diagnostic assessment is provided for informational purposes only.",
    "It is not a definitive diagnosis and should not replace professional medical advice.",
    "Always consult with a qualified healthcare provider for medical decisions.",
    "In case of emergency, seek immediate medical attention.",
)

_URGENCY_PRIORITY: dict[Urgency, RecommendationPriority] = {
    Urgency.ROUTINE: RecommendationPriority.LOW,
    Urgency.SOON: RecommendationPriority.MEDIUM,
    Urgency.URGENT: RecommendationPriority.HIGH,
    Urgency.EMERGENCY: RecommendationPriority.CRITICAL,
}

_URGENCY_TIMEFRAME: dict[Urgency, str] = {
    Urgency.ROUTINE: "Within 1-2 weeks",
    Urgency.SOON: "Within 24-48 hours",
    Urgency.URGENT: "Within hours",
    Urgency.EMERGENCY: "Immediately",
}

_VITAL_LABELS: dict[str, str] = {
    "systolic_bp": "Systolic Blood Pressure",
    "diastolic_bp": "Diastolic Blood Pressure",
    "heart_rate": "Heart Rate",
    "temperature": "Temperature",
    "weight": "Weight",
    "oxygen_saturation": "Oxygen Saturation",
}


def _fmt(value: float | None) -> str:
    return "-" if value is None else f"{value:g}"


class ReasonerSettings(BaseSettings):
    """Diagnostic reasoner configuration."""
    probability_cap: float = Field(default=0.95, gt=0.0, le=1.0)
    inclusion_threshold: float = Field(default=0.10, ge=0.0, le=1.0)
    escalation_threshold: float = Field(default=0.50, ge=0.0, le=1.0)
    test_threshold: float = Field(default=0.30, ge=0.0, le=1.0)
    symptom_weight_factor: float = Field(default=0.3, ge=0.0)
    vital_weight_factor: float = Field(default=0.2, ge=0.0)
    max_differential: int = Field(default=5, ge=1)
    max_test_conditions: int = Field(default=3, ge=0)
    step_confidence_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    clarity_bonus: float = Field(default=0.3, ge=0.0)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_REASONER_", env_file=".env", extra="ignore")


@dataclass
class ReasoningStep:
    step: int
    description: str
    conclusion: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "description": self.description,
                "conclusion": self.conclusion, "confidence": self.confidence}


@dataclass
class BayesianFactor:
    factor: str
    prior_probability: float
    likelihood_ratio: float
    posterior_probability: float
    evidence: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "factor": self.factor,
            "prior_probability": self.prior_probability,
            "likelihood_ratio": round(self.likelihood_ratio, 4),
            "posterior_probability": round(self.posterior_probability, 4),
            "evidence": "; ".join(self.evidence),
        }


@dataclass
class RuleApplication:
    rule_id: str
    rule_name: str
    rule_description: str
    triggered: bool
    inputs: list[str]
    output: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id, "rule_name": self.rule_name,
            "rule_description": self.rule_description, "triggered": self.triggered,
            "inputs": list(self.inputs), "output": self.output,
        }


@dataclass
class FeatureWeight:
    feature: str
    value: str
    weight: float
    impact: FeatureImpact

    def to_dict(self) -> dict[str, Any]:
        return {"feature": self.feature, "value": self.value,
                "weight": self.weight, "impact": self.impact.value}


@dataclass
class Recommendation:
    recommendation_type: RecommendationType
    priority: RecommendationPriority
    description: str
    rationale: str
    timeframe: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.recommendation_type.value, "priority": self.priority.value,
            "description": self.description, "rationale": self.rationale,
            "timeframe": self.timeframe,
        }


@dataclass
class DifferentialCondition:
    condition: str
    probability: float
    severity: SymptomSeverity
    description: str
    icd_code: str
    matching_symptoms: list[str] = field(default_factory=list)
    recommended_tests: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "condition": self.condition, "probability": round(self.probability, 4),
            "severity": self.severity.value, "description": self.description,
            "icd_code": self.icd_code, "matching_symptoms": list(self.matching_symptoms),
            "recommended_tests": list(self.recommended_tests),
        }


@dataclass
class ExplanationTrace:
    input_summary: str
    reasoning_steps: list[ReasoningStep] = field(default_factory=list)
    bayesian_factors: list[BayesianFactor] = field(default_factory=list)
    rules_applied: list[RuleApplication] = field(default_factory=list)
    features_considered: list[FeatureWeight] = field(default_factory=list)
    alternative_interpretations: list[str] = field(default_factory=list)
    limitations: list[str] = field(default_factory=lambda: list(DIAGNOSTIC_LIMITATIONS))

    @property
    def triggered_rules(self) -> list[RuleApplication]:
        return [r for r in self.rules_applied if r.triggered]

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_summary": self.input_summary,
            "reasoning_steps": [s.to_dict() for s in self.reasoning_steps],
            "bayesian_factors": [b.to_dict() for b in self.bayesian_factors],
            "rules_applied": [r.to_dict() for r in self.rules_applied],
            "features_considered": [f.to_dict() for f in self.features_considered],
            "alternative_interpretations": list(self.alternative_interpretations),
            "limitations": list(self.limitations),
        }


@dataclass
class DiagnosticResult:
    differential: list[DifferentialCondition]
    risk_level: RiskLevel
    urgency: Urgency
    recommendations: list[Recommendation]
    trace: ExplanationTrace
    confidence: float
    justification: str
    disclaimers: list[str] = field(default_factory=lambda: list(DIAGNOSTIC_DISCLAIMERS))
    processing_time_ms: float = 0.0

    @property
    def requires_clinician_review(self) -> bool:
        return self.risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "differential": [d.to_dict() for d in self.differential],
            "risk_level": self.risk_level.value,
            "urgency": self.urgency.value,
            "recommendations": [r.to_dict() for r in self.recommendations],
            "trace": self.trace.to_dict(),
            "confidence": round(self.confidence, 4),
            "justification": self.justification,
            "disclaimers": list(self.disclaimers),
            "requires_clinician_review": self.requires_clinician_review,
        }


class DiagnosticReasoner:
    """Scores obstetric conditions and folds rule and condition severities.

    Risk level and urgency are held in a :class:`RiskAccumulator`, so no
    stage of ``analyze`` can lower what an earlier stage raised.
    """

    def __init__(
        self,
        settings: ReasonerSettings | None = None,
        knowledge_base: KnowledgeBase | None = None,
        *,
        strict_invariants: bool = True,
    ) -> None:
        self._settings = settings or ReasonerSettings()
        self._kb = knowledge_base or KnowledgeBase()
        self._strict = strict_invariants
        self._stats = {"analyses": 0, "rules_triggered": 0, "escalations": 0, "rule_errors": 0}

    def analyze(
        self,
        symptoms: list[SymptomInput | dict[str, Any]] | None = None,
        pregnancy_stage: PregnancyStage | None = None,
        medical_history: MedicalHistory | None = None,
        risk_factors: list[str] | None = None,
        vital_signs: VitalSigns | None = None,
    ) -> DiagnosticResult:
        """Analyze one presentation. Pure; the knowledge base is never mutated."""
        data = DiagnosticInput(
            symptoms=symptoms or [],
            pregnancy_stage=pregnancy_stage or PregnancyStage(),
            medical_history=medical_history or MedicalHistory(),
            risk_factors=risk_factors or [],
            vital_signs=vital_signs,
        )
        return self.analyze_input(data)

    def analyze_input(self, data: DiagnosticInput) -> DiagnosticResult:
        start = time.perf_counter()
        self._stats["analyses"] += 1
        acc = RiskAccumulator(strict=self._strict)
        steps: list[ReasoningStep] = []

        steps.append(ReasoningStep(1, "Applying rule-based obstetric safety checks",
                                   "Checking for critical conditions that require immediate action", 1.0))
        rules_applied, rule_recommendations = self._apply_rules(data, acc)

        steps.append(ReasoningStep(2, "Performing Bayesian probability analysis",
                                   "Calculating condition probabilities based on symptoms and risk factors", 0.85))
        differential, factors = self._score_conditions(data, acc)

        steps.append(ReasoningStep(3, "Analyzing input features and their weights",
                                   "Evaluating symptom severity, vital signs, and risk factors", 0.9))
        features = self._build_features(data)

        steps.append(ReasoningStep(4, "Generating recommendations based on analysis",
                                   "Compiling action items and follow-up suggestions", 0.88))
        recommendations = self._deduplicate(rule_recommendations + self._condition_recommendations(differential))

        confidence = self._calculate_confidence(steps, differential)
        trace = ExplanationTrace(
            input_summary=self._input_summary(data),
            reasoning_steps=steps,
            bayesian_factors=factors[: self._settings.max_differential],
            rules_applied=rules_applied,
            features_considered=features,
            alternative_interpretations=self._alternatives(differential),
        )
        result = DiagnosticResult(
            differential=differential[: self._settings.max_differential],
            risk_level=acc.risk_level,
            urgency=acc.urgency,
            recommendations=recommendations,
            trace=trace,
            confidence=confidence,
            justification=self._justification(data, differential, rules_applied, acc.risk_level),
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )
        if result.requires_clinician_review:
            self._stats["escalations"] += 1
        logger.info(
            "diagnostic_analysis_complete",
            risk_level=result.risk_level.value,
            urgency=result.urgency.value,
            conditions=len(result.differential),
            rules_triggered=len(trace.triggered_rules),
            confidence=round(confidence, 3),
            elapsed_ms=round(result.processing_time_ms, 2),
        )
        return result

    def _apply_rules(
        self, data: DiagnosticInput, acc: RiskAccumulator,
    ) -> tuple[list[RuleApplication], list[Recommendation]]:
        applications: list[RuleApplication] = []
        recommendations: list[Recommendation] = []
        for rule in self._kb.rules:
            triggered = self._evaluate_rule(rule, data)
            applications.append(RuleApplication(
                rule_id=rule.rule_id,
                rule_name=rule.name,
                rule_description=rule.description,
                triggered=triggered,
                inputs=self._rule_inputs(data),
                output=rule.output.recommendation if triggered else "Rule not triggered",
            ))
            if not triggered:
                continue
            self._stats["rules_triggered"] += 1
            acc.fold(rule.output.risk_level, rule.output.urgency, source=rule.rule_id)
            recommendations.append(Recommendation(
                recommendation_type=RecommendationType.ACTION,
                priority=_URGENCY_PRIORITY[rule.output.urgency],
                description=rule.output.recommendation,
                rationale=rule.output.rationale,
                timeframe=_URGENCY_TIMEFRAME[rule.output.urgency],
            ))
        return applications, recommendations

    def _evaluate_rule(self, rule: ObstetricRule, data: DiagnosticInput) -> bool:
        try:
            return rule.evaluate(data)
        except Exception as e:
            self._stats["rule_errors"] += 1
            logger.error("rule_evaluation_failed", rule_id=rule.rule_id, error=str(e))
            return False

    def _score_conditions(
        self, data: DiagnosticInput, acc: RiskAccumulator,
    ) -> tuple[list[DifferentialCondition], list[BayesianFactor]]:
        scored: list[tuple[DifferentialCondition, BayesianFactor]] = []
        for condition in self._kb.conditions:
            try:
                factor = self._score(condition, data)
            except InvariantViolationError:
                raise
            except Exception as e:
                logger.error("condition_scoring_failed", condition=condition.name, error=str(e))
                continue
            if factor.posterior_probability <= self._settings.inclusion_threshold:
                continue
            scored.append((DifferentialCondition(
                condition=condition.name,
                probability=factor.posterior_probability,
                severity=condition.severity,
                description=condition.description,
                icd_code=condition.icd_code,
                matching_symptoms=self._matching_symptoms(condition, data),
                recommended_tests=list(condition.recommended_tests),
            ), factor))
            if factor.posterior_probability > self._settings.escalation_threshold:
                acc.fold(condition.severity.to_risk_level(), condition.urgency,
                         source=f"condition:{condition.icd_code}")
        scored.sort(key=lambda pair: pair[0].probability, reverse=True)
        return [d for d, _ in scored], [f for _, f in scored]

    def _score(self, condition: ConditionDefinition, data: DiagnosticInput) -> BayesianFactor:
        """Prior + symptom weights, times risk and trimester multipliers, + vital weights, capped."""
        trimester = data.pregnancy_stage.trimester
        trimester_multiplier = condition.trimester_multiplier(trimester)
        if trimester_multiplier == 0:
            return BayesianFactor(
                factor=condition.name,
                prior_probability=condition.base_probability,
                likelihood_ratio=0.0,
                posterior_probability=0.0,
                evidence=[f"Not considered in trimester {trimester}"],
            )
        probability = condition.base_probability
        evidence: list[str] = []
        for weighted in condition.symptoms:
            match = next((s for s in data.symptoms if weighted.matches(s.name)), None)
            if match is not None:
                probability += weighted.weight * self._settings.symptom_weight_factor
                evidence.append(f"Symptom match: {match.name}")
        active = set(data.risk_factors)
        for risk in condition.risk_factors:
            if risk.factor in active:
                probability *= risk.multiplier
                evidence.append(f"Risk factor: {risk.factor}")
        if trimester_multiplier is not None:
            probability *= trimester_multiplier
            evidence.append(f"Trimester {trimester} relevance factor: {trimester_multiplier:g}")
        if data.vital_signs is not None:
            for indicator in condition.vital_sign_indicators:
                if indicator.is_satisfied(data.vital_signs.get(indicator.sign)):
                    probability += indicator.weight * self._settings.vital_weight_factor
                    evidence.append(f"Vital sign {indicator.describe()}")
        probability = min(probability, self._settings.probability_cap)
        return BayesianFactor(
            factor=condition.name,
            prior_probability=condition.base_probability,
            likelihood_ratio=probability / condition.base_probability,
            posterior_probability=probability,
            evidence=evidence,
        )

    def _matching_symptoms(self, condition: ConditionDefinition, data: DiagnosticInput) -> list[str]:
        matches: list[str] = []
        for weighted in condition.symptoms:
            match = next((s for s in data.symptoms if weighted.matches(s.name)), None)
            if match is not None:
                matches.append(match.name)
        return matches

    def _build_features(self, data: DiagnosticInput) -> list[FeatureWeight]:
        features: list[FeatureWeight] = []
        for symptom in data.symptoms:
            features.append(FeatureWeight(
                feature=f"Symptom: {symptom.name}",
                value=symptom.severity.value,
                weight=symptom.severity.feature_weight,
                impact=FeatureImpact.NEGATIVE if symptom.severity.is_serious else FeatureImpact.NEUTRAL,
            ))
        if data.vital_signs is not None:
            for sign, value in data.vital_signs.provided().items():
                weight, abnormal = self._vital_weight(sign, value)
                features.append(FeatureWeight(
                    feature=_VITAL_LABELS.get(sign, sign),
                    value=_fmt(value),
                    weight=weight,
                    impact=FeatureImpact.NEGATIVE if abnormal else FeatureImpact.NEUTRAL,
                ))
        stage = data.pregnancy_stage
        features.append(FeatureWeight(
            feature="Pregnancy Stage",
            value=f"Week {stage.week}, Trimester {stage.trimester}",
            weight=0.8 if stage.trimester == 3 else 0.6,
            impact=FeatureImpact.NEUTRAL,
        ))
        return features

    @staticmethod
    def _vital_weight(sign: str, value: float) -> tuple[float, bool]:
        """Return (weight, abnormal) for one vital sign reading."""
        if sign == "systolic_bp":
            return (0.9, True) if value >= 140 else (0.5, False)
        if sign == "diastolic_bp":
            return (0.9, True) if value >= 90 else (0.5, False)
        if sign == "heart_rate":
            if value > 100:
                return 0.7, True
            return (0.7, False) if value < 60 else (0.5, False)
        if sign == "temperature":
            return (0.8, True) if value >= 38 else (0.4, False)
        if sign == "oxygen_saturation":
            return (0.9, True) if value < 95 else (0.4, False)
        return 0.3, False

    def _condition_recommendations(self, differential: list[DifferentialCondition]) -> list[Recommendation]:
        recommendations: list[Recommendation] = []
        for condition in differential[: self._settings.max_test_conditions]:
            if condition.probability <= self._settings.test_threshold:
                continue
            recommendations.append(Recommendation(
                recommendation_type=RecommendationType.TEST,
                priority=(RecommendationPriority.HIGH
                          if condition.probability > self._settings.escalation_threshold
                          else RecommendationPriority.MEDIUM),
                description=f"Consider testing for {condition.condition}",
                rationale=f"Probability: {condition.probability * 100:.1f}% based on presenting symptoms",
                timeframe="Within 24 hours" if condition.severity.is_serious else "Within 1 week",
            ))
            for test in condition.recommended_tests:
                recommendations.append(Recommendation(
                    recommendation_type=RecommendationType.TEST,
                    priority=RecommendationPriority.MEDIUM,
                    description=test,
                    rationale=f"Recommended for {condition.condition} evaluation",
                ))
        return recommendations

    @staticmethod
    def _deduplicate(recommendations: list[Recommendation]) -> list[Recommendation]:
        seen: set[str] = set()
        unique: list[Recommendation] = []
        for recommendation in recommendations:
            key = recommendation.description.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(recommendation)
        return unique

    def _calculate_confidence(
        self, steps: list[ReasoningStep], differential: list[DifferentialCondition],
    ) -> float:
        step_confidence = sum(s.confidence for s in steps) / len(steps)
        clarity = (min(differential[0].probability + self._settings.clarity_bonus, 1.0)
                   if differential else 0.5)
        weight = self._settings.step_confidence_weight
        return step_confidence * weight + clarity * (1.0 - weight)

    @staticmethod
    def _rule_inputs(data: DiagnosticInput) -> list[str]:
        inputs: list[str] = []
        if data.vital("systolic_bp"):
            inputs.append(f"Systolic BP: {_fmt(data.vital('systolic_bp'))}")
        if data.vital("diastolic_bp"):
            inputs.append(f"Diastolic BP: {_fmt(data.vital('diastolic_bp'))}")
        if data.vital("temperature"):
            inputs.append(f"Temperature: {_fmt(data.vital('temperature'))}°C")
        inputs.append(f"Trimester: {data.pregnancy_stage.trimester}")
        inputs.append(f"Week: {data.pregnancy_stage.week}")
        inputs.append(f"Symptoms: {', '.join(s.name for s in data.symptoms) or 'None'}")
        inputs.append(f"Risk factors: {len(data.risk_factors)}")
        return inputs

    @staticmethod
    def _input_summary(data: DiagnosticInput) -> str:
        symptoms = ", ".join(f"{s.name} ({s.severity.value})" for s in data.symptoms) or "None reported"
        if data.vital_signs is not None:
            vitals = (f"BP: {_fmt(data.vital('systolic_bp'))}/{_fmt(data.vital('diastolic_bp'))}, "
                      f"HR: {_fmt(data.vital('heart_rate'))}, Temp: {_fmt(data.vital('temperature'))}°C")
        else:
            vitals = "Not provided"
        stage = data.pregnancy_stage
        return (f"Patient at {stage.week} weeks gestation (Trimester {stage.trimester}). "
                f"Symptoms: {symptoms}. Vitals: {vitals}. Risk factors: {len(data.risk_factors)}.")

    @staticmethod
    def _justification(
        data: DiagnosticInput,
        differential: list[DifferentialCondition],
        rules: list[RuleApplication],
        risk_level: RiskLevel,
    ) -> str:
        parts = [f"Risk assessment: {risk_level.label}"]
        triggered = [r.rule_name for r in rules if r.triggered]
        if triggered:
            parts.append(f"Clinical rules triggered: {', '.join(triggered)}")
        if differential:
            top = differential[0]
            parts.append(f"Top differential: {top.condition} ({top.probability * 100:.0f}% probability)")
        if any(s.severity.is_serious for s in data.symptoms):
            parts.append("Severe symptom(s) present - elevated concern")
        return ". ".join(parts) + "."

    @staticmethod
    def _alternatives(differential: list[DifferentialCondition]) -> list[str]:
        if len(differential) <= 1:
            return ["Limited differential due to symptom specificity"]
        return [
            f"Alternative: {c.condition} - {c.probability * 100:.0f}% probability based on "
            f"{', '.join(c.matching_symptoms) or 'risk factors'}"
            for c in differential[1:4]
        ]

    def get_statistics(self) -> dict[str, Any]:
        return {
            **self._stats,
            "conditions": len(self._kb.conditions),
            "rules": len(self._kb.rules),
        }

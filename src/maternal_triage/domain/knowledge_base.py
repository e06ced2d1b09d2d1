"""
Maternal Triage - Obstetric Condition Knowledge Base.
Static condition definitions and deterministic safety rules.
"""
from __future__ import annotations
import operator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import structlog

from ..enums import RiskLevel, SymptomSeverity, Urgency
from ..schemas import DiagnosticInput

logger = structlog.get_logger(__name__)


class ComparisonOperator(str, Enum):
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="


_OPERATORS: dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.GTE: operator.ge,
    ComparisonOperator.LTE: operator.le,
}


@dataclass(frozen=True)
class WeightedSymptom:
    symptom: str
    weight: float

    def matches(self, name: str) -> bool:
        """An input symptom matches when its name contains this symptom."""
        return self.symptom.lower() in name.lower()


@dataclass(frozen=True)
class RiskFactorMultiplier:
    factor: str
    multiplier: float


@dataclass(frozen=True)
class VitalSignIndicator:
    """Threshold on one vital sign, e.g. ``systolic_bp >= 140``."""
    sign: str
    threshold: float
    operator: ComparisonOperator
    weight: float

    def is_satisfied(self, value: float | None) -> bool:
        if value is None:
            return False
        return _OPERATORS[self.operator](value, self.threshold)

    def describe(self) -> str:
        return f"{self.sign} {self.operator.value} {self.threshold:g}"


@dataclass(frozen=True)
class ConditionDefinition:
    """One candidate obstetric condition and its scoring weights."""
    name: str
    icd_code: str
    base_probability: float
    symptoms: tuple[WeightedSymptom, ...]
    risk_factors: tuple[RiskFactorMultiplier, ...]
    trimester_relevance: dict[int, float]
    severity: SymptomSeverity
    urgency: Urgency
    description: str
    recommended_tests: tuple[str, ...] = ()
    vital_sign_indicators: tuple[VitalSignIndicator, ...] = ()

    def trimester_multiplier(self, trimester: int) -> float | None:
        return self.trimester_relevance.get(trimester)


@dataclass(frozen=True)
class RuleOutput:
    risk_level: RiskLevel
    urgency: Urgency
    recommendation: str
    rationale: str


@dataclass(frozen=True)
class ObstetricRule:
    """Hard threshold that overrides probabilistic scoring when it fires."""
    rule_id: str
    name: str
    description: str
    predicate: Callable[[DiagnosticInput], bool]
    output: RuleOutput

    def evaluate(self, data: DiagnosticInput) -> bool:
        return bool(self.predicate(data))


def _condition(
    name: str,
    icd_code: str,
    base: float,
    symptoms: list[tuple[str, float]],
    risk_factors: list[tuple[str, float]],
    trimesters: tuple[float, float, float],
    severity: SymptomSeverity,
    urgency: Urgency,
    description: str,
    tests: list[str],
    vitals: list[VitalSignIndicator] | None = None,
) -> ConditionDefinition:
    return ConditionDefinition(
        name=name,
        icd_code=icd_code,
        base_probability=base,
        symptoms=tuple(WeightedSymptom(s, w) for s, w in symptoms),
        risk_factors=tuple(RiskFactorMultiplier(f, m) for f, m in risk_factors),
        trimester_relevance={1: trimesters[0], 2: trimesters[1], 3: trimesters[2]},
        severity=severity,
        urgency=urgency,
        description=description,
        recommended_tests=tuple(tests),
        vital_sign_indicators=tuple(vitals or ()),
    )


OBSTETRIC_CONDITIONS: tuple[ConditionDefinition, ...] = (
    _condition(
        "Preeclampsia", "O14.9", 0.05,
        [("headache", 0.6), ("swelling", 0.7), ("visual disturbances", 0.8),
         ("upper abdominal pain", 0.7), ("nausea", 0.4), ("rapid weight gain", 0.5)],
        [("first_pregnancy", 1.5), ("previous_preeclampsia", 3.0), ("chronic_hypertension", 2.5),
         ("diabetes", 1.8), ("obesity", 1.5), ("age_over_35", 1.3), ("multiple_pregnancy", 2.0)],
        (0.2, 0.8, 1.5),
        SymptomSeverity.SEVERE, Urgency.URGENT,
        "A pregnancy complication characterized by high blood pressure and signs of organ damage.",
        ["Blood pressure monitoring", "Urine protein test",
         "Blood tests (liver, kidney function)", "Fetal monitoring"],
        vitals=[
            VitalSignIndicator("systolic_bp", 140, ComparisonOperator.GTE, 0.9),
            VitalSignIndicator("diastolic_bp", 90, ComparisonOperator.GTE, 0.9),
        ],
    ),
    _condition(
        "Gestational Diabetes", "O24.4", 0.08,
        [("increased thirst", 0.6), ("frequent urination", 0.6), ("fatigue", 0.4),
         ("blurred vision", 0.5), ("recurrent infections", 0.4)],
        [("obesity", 2.0), ("family_history_diabetes", 1.8), ("previous_gestational_diabetes", 2.5),
         ("age_over_35", 1.3), ("pcos", 1.5)],
        (0.3, 1.2, 1.0),
        SymptomSeverity.MODERATE, Urgency.SOON,
        "Diabetes that develops during pregnancy and usually resolves after delivery.",
        ["Glucose tolerance test", "Fasting blood glucose", "HbA1c"],
    ),
    _condition(
        "Placenta Previa", "O44.0", 0.01,
        [("painless vaginal bleeding", 0.9), ("bleeding", 0.7), ("spotting", 0.5)],
        [("previous_cesarean", 2.0), ("previous_placenta_previa", 3.0), ("multiple_pregnancy", 1.5),
         ("uterine_surgery", 1.8), ("smoking", 1.5)],
        (0.5, 1.0, 1.5),
        SymptomSeverity.SEVERE, Urgency.URGENT,
        "A condition where the placenta partially or fully covers the cervix.",
        ["Ultrasound", "Transvaginal ultrasound", "MRI if needed"],
    ),
    _condition(
        "Preterm Labor", "O60.0", 0.10,
        [("contractions", 0.9), ("cramping", 0.7), ("back pain", 0.6), ("pelvic pressure", 0.7),
         ("vaginal discharge", 0.5), ("water leaking", 0.9)],
        [("previous_preterm_birth", 2.5), ("multiple_pregnancy", 2.0), ("cervical_incompetence", 2.5),
         ("infection", 1.5), ("smoking", 1.3)],
        (0.1, 1.5, 1.0),
        SymptomSeverity.SEVERE, Urgency.EMERGENCY,
        "Labor that begins before 37 weeks of pregnancy.",
        ["Cervical examination", "Fetal fibronectin test", "Ultrasound for cervical length"],
    ),
    _condition(
        "Ectopic Pregnancy", "O00.9", 0.02,
        [("one-sided abdominal pain", 0.9), ("vaginal bleeding", 0.7), ("shoulder pain", 0.6),
         ("dizziness", 0.6), ("nausea", 0.4)],
        [("previous_ectopic", 3.0), ("pelvic_inflammatory_disease", 2.0), ("tubal_surgery", 2.5),
         ("ivf", 1.5), ("iud", 1.5)],
        (3.0, 0.1, 0.0),
        SymptomSeverity.CRITICAL, Urgency.EMERGENCY,
        "A pregnancy where the fertilized egg implants outside the uterus.",
        ["hCG levels", "Transvaginal ultrasound", "Progesterone levels"],
    ),
    _condition(
        "Hyperemesis Gravidarum", "O21.1", 0.03,
        [("severe nausea", 0.9), ("persistent vomiting", 0.9), ("weight loss", 0.7),
         ("dehydration", 0.8), ("fatigue", 0.5)],
        [("previous_hyperemesis", 2.5), ("multiple_pregnancy", 1.5), ("first_pregnancy", 1.2),
         ("history_motion_sickness", 1.3)],
        (2.0, 0.8, 0.3),
        SymptomSeverity.MODERATE, Urgency.SOON,
        "Severe nausea and vomiting during pregnancy that can lead to dehydration.",
        ["Electrolyte panel", "Ketone levels", "Thyroid function tests"],
    ),
    _condition(
        "Urinary Tract Infection", "O23.1", 0.08,
        [("burning urination", 0.9), ("frequent urination", 0.7), ("pelvic pain", 0.6),
         ("cloudy urine", 0.7), ("fever", 0.6), ("back pain", 0.5)],
        [("previous_uti", 2.0), ("diabetes", 1.5), ("sexual_activity", 1.3)],
        (1.0, 1.2, 1.3),
        SymptomSeverity.MODERATE, Urgency.SOON,
        "Bacterial infection of the urinary tract, common in pregnancy.",
        ["Urinalysis", "Urine culture", "Complete blood count"],
    ),
    _condition(
        "Anemia in Pregnancy", "O99.0", 0.15,
        [("fatigue", 0.8), ("weakness", 0.7), ("shortness of breath", 0.6), ("dizziness", 0.6),
         ("pale skin", 0.7), ("rapid heartbeat", 0.5)],
        [("poor_nutrition", 1.8), ("multiple_pregnancy", 1.5), ("heavy_periods_history", 1.4),
         ("vegetarian", 1.3)],
        (0.8, 1.2, 1.5),
        SymptomSeverity.MILD, Urgency.ROUTINE,
        "Low red blood cell count during pregnancy, often due to iron deficiency.",
        ["Complete blood count", "Iron studies", "Ferritin level"],
    ),
)


def _hypertensive_emergency(data: DiagnosticInput) -> bool:
    return (data.vital("systolic_bp") or 0) >= 160 or (data.vital("diastolic_bp") or 0) >= 110


def _third_trimester_bleeding(data: DiagnosticInput) -> bool:
    return data.has_symptom_containing("bleeding", "spotting") and data.pregnancy_stage.trimester == 3


def _reduced_fetal_movement(data: DiagnosticInput) -> bool:
    return data.has_symptom_containing("movement", "baby not moving") and data.pregnancy_stage.week >= 28


def _preterm_labor_signs(data: DiagnosticInput) -> bool:
    return (data.has_symptom_containing("contractions", "water broke", "leaking fluid")
            and data.pregnancy_stage.week < 37)


def _high_fever(data: DiagnosticInput) -> bool:
    return (data.vital("temperature") or 0) >= 38


def _multiple_risk_factors(data: DiagnosticInput) -> bool:
    return len(data.risk_factors) >= 3


OBSTETRIC_RULES: tuple[ObstetricRule, ...] = (
    ObstetricRule(
        "RULE_001", "Hypertensive Emergency",
        "Blood pressure >= 160/110 mmHg requires immediate attention",
        _hypertensive_emergency,
        RuleOutput(RiskLevel.LEVEL_4, Urgency.EMERGENCY,
                   "Immediate medical evaluation required",
                   "Severely elevated blood pressure in pregnancy can lead to stroke, organ damage, or eclampsia"),
    ),
    ObstetricRule(
        "RULE_002", "Third Trimester Bleeding",
        "Any vaginal bleeding in third trimester requires urgent evaluation",
        _third_trimester_bleeding,
        RuleOutput(RiskLevel.LEVEL_3, Urgency.URGENT,
                   "Urgent obstetric evaluation required",
                   "Third trimester bleeding may indicate placenta previa, placental abruption, or labor"),
    ),
    ObstetricRule(
        "RULE_003", "Reduced Fetal Movement",
        "Decreased fetal movement in late pregnancy requires monitoring",
        _reduced_fetal_movement,
        RuleOutput(RiskLevel.LEVEL_3, Urgency.URGENT,
                   "Fetal monitoring and evaluation recommended within 24 hours",
                   "Reduced fetal movement can indicate fetal distress and requires assessment"),
    ),
    ObstetricRule(
        "RULE_004", "Preterm Labor Signs",
        "Signs of labor before 37 weeks require immediate evaluation",
        _preterm_labor_signs,
        RuleOutput(RiskLevel.LEVEL_4, Urgency.EMERGENCY,
                   "Emergency evaluation for preterm labor",
                   "Preterm labor may lead to premature birth and requires immediate intervention"),
    ),
    ObstetricRule(
        "RULE_005", "High Fever in Pregnancy",
        "Temperature >= 38°C (100.4°F) requires evaluation",
        _high_fever,
        RuleOutput(RiskLevel.LEVEL_2, Urgency.SOON,
                   "Medical evaluation within 24 hours",
                   "High fever in pregnancy can harm the developing baby and may indicate infection"),
    ),
    ObstetricRule(
        "RULE_006", "Multiple High-Risk Factors",
        "Multiple risk factors compound pregnancy risk",
        _multiple_risk_factors,
        RuleOutput(RiskLevel.LEVEL_2, Urgency.SOON,
                   "Schedule high-risk pregnancy consultation",
                   "Multiple risk factors increase the likelihood of pregnancy complications"),
    ),
)


@dataclass
class KnowledgeBase:
    """Read-only bundle of conditions and rules handed to the reasoner."""
    conditions: tuple[ConditionDefinition, ...] = OBSTETRIC_CONDITIONS
    rules: tuple[ObstetricRule, ...] = OBSTETRIC_RULES
    issues: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.issues = self.validate()
        if self.issues:
            logger.warning("knowledge_base_issues", issues=self.issues)

    def validate(self) -> list[str]:
        """Report misconfiguration without raising."""
        issues: list[str] = []
        if not self.conditions:
            issues.append("no conditions defined")
        if not self.rules:
            issues.append("no rules defined")
        seen_codes: set[str] = set()
        for condition in self.conditions:
            if condition.icd_code in seen_codes:
                issues.append(f"duplicate condition code {condition.icd_code}")
            seen_codes.add(condition.icd_code)
            if not 0.0 < condition.base_probability < 1.0:
                issues.append(f"{condition.name}: base probability out of range")
            if any(m < 0 for m in condition.trimester_relevance.values()):
                issues.append(f"{condition.name}: negative trimester multiplier")
            if any(rf.multiplier < 0 for rf in condition.risk_factors):
                issues.append(f"{condition.name}: negative risk factor multiplier")
        seen_rules: set[str] = set()
        for rule in self.rules:
            if rule.rule_id in seen_rules:
                issues.append(f"duplicate rule id {rule.rule_id}")
            seen_rules.add(rule.rule_id)
        return issues

    def find_condition(self, name: str) -> ConditionDefinition | None:
        lowered = name.lower()
        for condition in self.conditions:
            if condition.name.lower() == lowered or condition.icd_code.lower() == lowered:
                return condition
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "conditions": [c.name for c in self.conditions],
            "rules": [r.rule_id for r in self.rules],
            "issues": list(self.issues),
        }

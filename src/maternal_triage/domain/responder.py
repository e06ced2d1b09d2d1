"""
Maternal Triage - Conversational Responder.
Intent-specific and risk-specific response templates for patient and clinical audiences.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import structlog

from ..enums import EmotionalTone, Intent, RiskLevel, SymptomSeverity, UserRole
from ..schemas import ConversationContext, ExtractedSymptom, MedicalEntity

logger = structlog.get_logger(__name__)

GENERAL_DISCLAIMER = (
    "This AI assistant provides general information only and is not a substitute for "
    "professional medical advice. Always consult your healthcare provider for medical decisions."
)
EMERGENCY_DISCLAIMER = (
    "This is an AI-assisted assessment. In case of emergency, always contact emergency "
    "services immediately."
)

GENERAL_GREETING = (
    "Hello! I'm your maternal health assistant. I'm here to help you throughout your pregnancy "
    "journey. I can:\n\n• Help you track and report symptoms\n• Answer questions about pregnancy\n"
    "• Provide nutrition and wellness guidance\n• Help with appointment scheduling\n"
    "• Offer emotional support\n\nHow can I assist you today?"
)
GENERAL_CLINICAL = "Patient initiated general conversation. Awaiting specific inquiry."

EMERGENCY_RECOMMENDATIONS: tuple[str, ...] = (
    "Seek immediate medical attention",
    "Call emergency services if symptoms are severe",
    "Do not drive yourself to the hospital",
    "Have someone stay with you",
)

# intent -> (patient text, clinical text, recommendations)
INTENT_TEMPLATES: dict[Intent, tuple[str, str, tuple[str, ...]]] = {
    Intent.MEDICATION: (
        "I understand you have questions about medication. It's important to always consult your "
        "healthcare provider before taking any medication during pregnancy. Some medications that "
        "are safe normally may not be safe during pregnancy. Would you like me to help you prepare "
        "questions for your doctor?",
        "Patient inquiring about medication. Review current prescription history and pregnancy "
        "stage before providing guidance.",
        ("Consult your doctor before taking any medication",
         "Always mention your pregnancy when getting prescriptions",
         "Keep a list of all medications you take"),
    ),
    Intent.NUTRITION: (
        "Nutrition is so important during pregnancy! Here are some key points:\n\n"
        "• Eat plenty of fruits, vegetables, and whole grains\n"
        "• Get enough protein from lean meats, beans, or legumes\n"
        "• Take your prenatal vitamins as prescribed\n"
        "• Stay well hydrated with water\n"
        "• Avoid raw fish, unpasteurized dairy, and deli meats\n\n"
        "Would you like more specific guidance based on your pregnancy stage?",
        "Patient seeking nutritional guidance. Consider gestational age and any nutritional "
        "deficiencies noted in records.",
        ("Take prenatal vitamins daily", "Eat small, frequent meals", "Stay hydrated",
         "Avoid alcohol and limit caffeine"),
    ),
    Intent.APPOINTMENT: (
        "I can help you with appointment scheduling! Would you like to:\n\n"
        "1. Book a new appointment\n2. View upcoming appointments\n"
        "3. Reschedule an existing appointment\n\nPlease let me know what you'd like to do.",
        "Patient requesting appointment management assistance.",
        ("Prepare questions before your appointment", "Bring a list of current symptoms",
         "Note any changes since last visit"),
    ),
    Intent.QUESTION: (
        "I'm here to help answer your questions! Please note that while I can provide general "
        "information, I'm not a replacement for your healthcare provider. What would you like to know?",
        "Patient has a general health inquiry. Review context before responding.",
        ("Keep a list of questions for your doctor",
         "Don't hesitate to ask about anything concerning you"),
    ),
}

EMOTIONAL_SUPPORT_RECOMMENDATIONS: tuple[str, ...] = (
    "Practice deep breathing exercises",
    "Speak with a trusted friend or family member",
    "Consider talking to a counselor",
    "Maintain regular sleep schedule",
)

EDUCATION_RECOMMENDATIONS: tuple[str, ...] = (
    "Attend prenatal classes",
    "Read reputable pregnancy resources",
    "Join a support group for expectant mothers",
)

EMOTIONAL_SUPPORT_TEXTS: dict[EmotionalTone, str] = {
    EmotionalTone.ANXIOUS: (
        "I hear that you're feeling worried, and that's completely understandable. Pregnancy can "
        "bring many concerns. Remember:\n\n• Your feelings are valid\n"
        "• Many expectant mothers share similar worries\n• It's okay to ask for help and support\n\n"
        "Would you like to talk about what's specifically worrying you? Or would you like some "
        "relaxation techniques that might help?"
    ),
    EmotionalTone.DISTRESSED: (
        "I can sense you're going through a difficult time, and I want you to know that you're not "
        "alone. It's important that you:\n\n• Reach out to someone you trust\n"
        "• Consider speaking with a professional counselor\n"
        "• Don't hesitate to contact your healthcare provider\n\n"
        "Your mental health matters just as much as your physical health. Would you like resources "
        "for emotional support?"
    ),
    EmotionalTone.URGENT: (
        "I understand this feels urgent. Let me help you:\n\n"
        "• If this is a medical emergency, please call emergency services\n"
        "• If you need to speak with your doctor, I can help you prepare\n"
        "• If you're feeling overwhelmed, that's okay - we'll take this one step at a time\n\n"
        "What do you need help with right now?"
    ),
}
EMOTIONAL_SUPPORT_DEFAULT = (
    "Thank you for sharing how you're feeling. It's important to take care of your emotional "
    "wellbeing during pregnancy. I'm here to listen and support you. What's on your mind?"
)

# risk -> (patient template, clinical template, recommendations); "{symptoms}" is filled in.
SYMPTOM_TEMPLATES: dict[RiskLevel, tuple[str, str, tuple[str, ...]]] = {
    RiskLevel.LEVEL_1: (
        "Thank you for sharing about {symptoms}. Based on what you've described, these symptoms "
        "appear to be within normal range for pregnancy. However, I recommend:\n\n"
        "• Continue monitoring how you feel\n• Stay hydrated and get adequate rest\n"
        "• Note any changes or worsening symptoms\n\nWould you like tips on managing these symptoms?",
        "Patient reported {symptoms}. Low risk assessment. Continue routine monitoring.",
        ("Monitor symptoms", "Stay hydrated", "Get adequate rest", "Continue normal activities"),
    ),
    RiskLevel.LEVEL_2: (
        "I understand you're experiencing {symptoms}. These symptoms warrant attention. I recommend:\n\n"
        "• Monitor your symptoms closely over the next 24-48 hours\n"
        "• Keep track of frequency and intensity\n"
        "• Contact your healthcare provider if symptoms worsen or persist\n\n"
        "Would you like to schedule a routine check-up?",
        "Patient reported {symptoms}. Moderate concern. Recommend follow-up within 48-72 hours.",
        ("Monitor symptoms closely", "Schedule routine check-up", "Avoid strenuous activities",
         "Contact doctor if worsening"),
    ),
    RiskLevel.LEVEL_3: (
        "⚠️ I'm concerned about {symptoms}. These symptoms require prompt medical attention. Please:\n\n"
        "• Contact your healthcare provider within the next 24 hours\n"
        "• Do not wait to see if symptoms improve on their own\n"
        "• Avoid strenuous activity until evaluated\n\nWould you like help contacting your doctor now?",
        "ALERT: Patient reported {symptoms}. Elevated risk. Urgent follow-up required within 24 hours.",
        ("Contact doctor within 24 hours", "Avoid strenuous activity",
         "Have someone available to assist", "Prepare to seek emergency care if worsening"),
    ),
    RiskLevel.LEVEL_4: (
        "🚨 The symptoms you've described ({symptoms}) are serious and require immediate medical "
        "attention. Please:\n\n• Go to the emergency room or call emergency services NOW\n"
        "• Do not drive yourself - have someone take you or call an ambulance\n"
        "• Bring someone with you if possible\n\nYour health and your baby's health are the priority.",
        "CRITICAL: Patient reported {symptoms}. Immediate medical intervention required. "
        "Activate emergency protocol.",
        ("Seek immediate emergency care", "Call emergency services", "Do not drive yourself",
         "Have someone stay with you"),
    ),
}

FEATURES_CONSIDERED: tuple[str, ...] = (
    "message_content", "conversation_history", "pregnancy_stage", "risk_factors", "emotional_state",
)


@dataclass
class ConfidenceFactor:
    factor: str
    weight: float

    def to_dict(self) -> dict[str, Any]:
        return {"factor": self.factor, "weight": self.weight}


@dataclass
class ResponderReasoning:
    steps: list[str] = field(default_factory=list)
    features_considered: list[str] = field(default_factory=list)
    confidence_factors: list[ConfidenceFactor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": list(self.steps),
            "features_considered": list(self.features_considered),
            "confidence_factors": [f.to_dict() for f in self.confidence_factors],
        }


@dataclass
class ResponderReply:
    """Template response for one turn."""
    message: str
    intent: Intent
    risk_level: RiskLevel
    confidence: float
    disclaimer: str
    recommendations: list[str] = field(default_factory=list)
    symptoms: list[ExtractedSymptom] = field(default_factory=list)
    entities: list[MedicalEntity] = field(default_factory=list)
    clinical_message: str | None = None
    requires_escalation: bool = False
    escalation_reason: str | None = None
    reasoning: ResponderReasoning = field(default_factory=ResponderReasoning)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "clinical_message": self.clinical_message,
            "intent": self.intent.value,
            "risk_level": self.risk_level.value,
            "recommendations": list(self.recommendations),
            "requires_escalation": self.requires_escalation,
            "escalation_reason": self.escalation_reason,
            "confidence": round(self.confidence, 4),
            "disclaimer": self.disclaimer,
            "reasoning": self.reasoning.to_dict(),
        }


def calculate_risk_level(symptoms: list[ExtractedSymptom], risk_factors: list[str]) -> RiskLevel:
    """Symptom-severity risk used by the conversational layer."""
    if not symptoms:
        return RiskLevel.LEVEL_1
    severities = [s.severity for s in symptoms]
    if SymptomSeverity.CRITICAL in severities:
        return RiskLevel.LEVEL_4
    if SymptomSeverity.SEVERE in severities:
        return RiskLevel.LEVEL_3
    moderate = severities.count(SymptomSeverity.MODERATE)
    if moderate >= 2:
        return RiskLevel.LEVEL_3
    if moderate == 1:
        return RiskLevel.LEVEL_2
    if risk_factors:
        return RiskLevel.LEVEL_2
    return RiskLevel.LEVEL_1


class ConversationalResponder:
    """Builds role-appropriate template responses."""

    def general_greeting(self, role: UserRole = UserRole.PATIENT) -> str:
        return GENERAL_GREETING if role is UserRole.PATIENT else GENERAL_CLINICAL

    def emergency_response(
        self, keywords: tuple[str, ...] | list[str], role: UserRole, context: ConversationContext,
    ) -> ResponderReply:
        found = ", ".join(keywords)
        message = (
            f"🚨 I've detected potential emergency symptoms: {found}.\n\n"
            "Please take these immediate steps:\n"
            "1. Stay calm and sit or lie down in a safe position\n"
            "2. If you're alone, call someone to be with you\n"
            "3. Contact your healthcare provider immediately\n"
            "4. If symptoms are severe, call emergency services (911)\n\n"
            "Do NOT wait to see if symptoms improve. Your safety and your baby's safety are the priority.\n\n"
            "Is someone with you right now?"
        )
        clinical = (
            f"EMERGENCY ALERT: Patient reported {found}.\n"
            f"Pregnancy week: {context.gestational_week or 'Unknown'}\n"
            f"Risk factors: {', '.join(context.risk_factors) or 'None recorded'}\n"
            "Immediate clinical assessment required."
        )
        logger.warning("emergency_response_generated", keyword_count=len(keywords), role=role.value)
        return ResponderReply(
            message=message,
            clinical_message=clinical if role is UserRole.CLINICIAN else None,
            intent=Intent.EMERGENCY,
            risk_level=RiskLevel.LEVEL_4,
            symptoms=[ExtractedSymptom(name=k, severity=SymptomSeverity.CRITICAL) for k in keywords],
            recommendations=list(EMERGENCY_RECOMMENDATIONS),
            requires_escalation=True,
            escalation_reason=f"Emergency symptoms detected: {found}",
            confidence=0.95,
            disclaimer=EMERGENCY_DISCLAIMER,
            reasoning=ResponderReasoning(
                steps=[
                    "Detected high-priority emergency keywords in message",
                    "Matched against known emergency symptom patterns",
                    "Triggered immediate escalation protocol",
                ],
                features_considered=["keyword_matching", "severity_indicators", "pregnancy_context"],
                confidence_factors=[ConfidenceFactor("keyword_match", 0.9),
                                    ConfidenceFactor("context_severity", 0.85)],
            ),
        )

    def respond(
        self,
        context: ConversationContext,
        intent: Intent,
        symptoms: list[ExtractedSymptom],
        entities: list[MedicalEntity],
        role: UserRole,
    ) -> ResponderReply:
        risk_level = calculate_risk_level(symptoms, context.risk_factors)
        is_patient = role is UserRole.PATIENT
        clinical: str | None = None
        escalate, reason = False, None

        if intent is Intent.SYMPTOM_REPORT:
            message, clinical, recommendations = self._symptom_response(symptoms, risk_level, context, is_patient)
            escalate = risk_level in (RiskLevel.LEVEL_3, RiskLevel.LEVEL_4)
            if escalate:
                reason = (f"Risk level {risk_level.value} detected with symptoms: "
                          f"{', '.join(s.name for s in symptoms)}")
        elif intent is Intent.EMOTIONAL_SUPPORT:
            message = self._emotional_support(context.emotional_tone, is_patient)
            recommendations = list(EMOTIONAL_SUPPORT_RECOMMENDATIONS)
        elif intent is Intent.EDUCATION:
            stage = (f"your {context.gestational_week}th week of pregnancy"
                     if context.gestational_week else "your pregnancy")
            message = (
                f"I'd love to help you learn more! Based on {stage}, here are some topics you might "
                "find helpful:\n\n• What to expect this trimester\n• Baby's development\n"
                "• Preparing for labor and delivery\n• Postpartum care\n\nWhat topic interests you most?"
                if is_patient else
                "Patient seeking educational content. Consider providing stage-appropriate resources."
            )
            recommendations = list(EDUCATION_RECOMMENDATIONS)
        elif intent in INTENT_TEMPLATES:
            patient_text, clinical_text, recs = INTENT_TEMPLATES[intent]
            message = patient_text if is_patient else clinical_text
            recommendations = list(recs)
        else:
            message, recommendations = self.general_greeting(role), []

        factors = [
            ConfidenceFactor("intent_clarity", 0.85),
            ConfidenceFactor("symptom_specificity", 0.9 if symptoms else 0.7),
            ConfidenceFactor("context_completeness", 0.9 if context.gestational_week else 0.75),
        ]
        reasoning = ResponderReasoning(
            steps=[
                f"Analyzed message intent: {intent.value}",
                f"Detected emotional tone: {context.emotional_tone.value}",
                f"Extracted {len(symptoms)} symptom(s)",
                f"Identified {len(entities)} medical entity(ies)",
                f"Calculated risk level: {risk_level.value}",
                f"Generated {'patient-friendly' if is_patient else 'clinical'} response",
            ],
            features_considered=list(FEATURES_CONSIDERED),
            confidence_factors=factors,
        )
        return ResponderReply(
            message=message,
            clinical_message=None if is_patient else clinical,
            intent=intent,
            risk_level=risk_level,
            symptoms=list(symptoms),
            entities=list(entities),
            recommendations=recommendations,
            requires_escalation=escalate,
            escalation_reason=reason,
            confidence=sum(f.weight for f in factors) / len(factors),
            disclaimer=GENERAL_DISCLAIMER,
            reasoning=reasoning,
        )

    @staticmethod
    def _symptom_response(
        symptoms: list[ExtractedSymptom],
        risk_level: RiskLevel,
        context: ConversationContext,
        is_patient: bool,
    ) -> tuple[str, str, list[str]]:
        symptom_list = ", ".join(s.name for s in symptoms) or "your symptoms"
        patient_text, clinical_text, recommendations = SYMPTOM_TEMPLATES[risk_level]
        template = patient_text if is_patient else clinical_text
        clinical = (
            "Clinical Assessment:\n"
            f"Symptoms: {symptom_list}\n"
            f"Severities: {', '.join(f'{s.name}({s.severity.value})' for s in symptoms)}\n"
            f"Pregnancy week: {context.gestational_week or 'Unknown'}\n"
            f"Risk factors: {', '.join(context.risk_factors) or 'None'}\n"
            f"Risk Level: {risk_level.value}"
        )
        return template.format(symptoms=symptom_list), clinical, list(recommendations)

    @staticmethod
    def _emotional_support(tone: EmotionalTone, is_patient: bool) -> str:
        if not is_patient:
            return (f"Patient displaying {tone.value} emotional state. Consider mental health "
                    "screening if appropriate.")
        return EMOTIONAL_SUPPORT_TEXTS.get(tone, EMOTIONAL_SUPPORT_DEFAULT)

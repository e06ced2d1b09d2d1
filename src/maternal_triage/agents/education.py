"""
Maternal Triage - Education Agent.
Topic lookup with separate patient and clinical phrasing.
"""
from __future__ import annotations

from ..enums import UserRole
from .base import AgentInput, AgentKind, AgentOutput

PRIORITY = 60

EDUCATION_TRIGGERS: tuple[str, ...] = (
    "what is", "what are", "explain", "tell me about", "how does",
    "why do", "should i", "can i", "is it normal", "learn",
)

# Ordered; the first topic with a matching keyword wins.
TOPIC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("morning_sickness", ("nausea", "vomiting", "morning sickness", "sick")),
    ("fetal_movement", ("baby moving", "kick", "movement", "baby kick")),
    ("blood_pressure", ("blood pressure", "bp", "hypertension")),
    ("nutrition", ("eat", "food", "diet", "nutrition", "vitamin")),
    ("exercise", ("exercise", "workout", "active", "walk")),
    ("labor", ("labor", "delivery", "contractions", "birth")),
    ("medications", ("medication", "medicine", "drug", "safe to take")),
)

PATIENT_EXPLANATIONS: dict[str, str] = {
    "morning_sickness": """Morning sickness is very common in pregnancy, especially in the first trimester. It happens because of hormone changes in your body.

Tips that may help:
• Eat small, frequent meals
• Keep crackers by your bed for the morning
• Stay hydrated with small sips
• Avoid strong smells that bother you

If you can't keep any food or water down, contact your doctor as this might need treatment.""",

    "fetal_movement": """Feeling your baby move is one of the exciting parts of pregnancy! Most moms first feel movement between 18-25 weeks.

What to know:
• Early movements feel like bubbles or flutters
• Movements become stronger as baby grows
• Baby has sleep cycles, so quiet periods are normal
• After 28 weeks, track daily movement patterns

If you notice a significant decrease in movement, contact your healthcare provider.""",

    "blood_pressure": """Blood pressure is carefully monitored during pregnancy because changes can affect you and your baby.

Normal BP in pregnancy is usually below 120/80. High blood pressure (above 140/90) needs medical attention.

Warning signs to watch for:
• Severe headaches
• Vision changes
• Upper belly pain
• Sudden swelling

Regular prenatal visits help catch any changes early.""",

    "nutrition": """Good nutrition supports your baby's growth and your health. Here's what to focus on:

• Eat plenty of fruits, vegetables, whole grains
• Include protein at each meal (lean meats, beans, eggs)
• Take your prenatal vitamin daily
• Drink lots of water (8-10 glasses)

Foods to avoid:
• Raw fish and undercooked meats
• Unpasteurized dairy
• High-mercury fish
• Alcohol""",

    "exercise": """Staying active during pregnancy is great for you and baby! Safe exercises include:

• Walking
• Swimming
• Prenatal yoga
• Light strength training

Listen to your body and stop if you feel:
• Dizziness
• Shortness of breath
• Pain
• Contractions

Always check with your doctor before starting a new exercise routine.""",

    "labor": """Labor is how your body prepares to deliver your baby. Here are the signs that labor may be starting:

Early signs:
• Regular contractions that get stronger
• Contractions that don't stop when you move
• Lower back pain
• "Water breaking" (amniotic fluid leaking)

When to go to the hospital:
• Contractions 5 minutes apart for 1 hour
• Your water breaks
• Heavy bleeding
• Decreased baby movement""",

    "medications": """During pregnancy, always check before taking any medication, including over-the-counter medicines.

Generally considered safe (ask your doctor):
• Acetaminophen (Tylenol) for pain
• Some antacids for heartburn
• Certain prenatal vitamins

Usually to avoid:
• Ibuprofen (Advil, Motrin)
• Aspirin (unless prescribed)
• Some herbal supplements

Always tell your pharmacist and doctor that you're pregnant.""",

    "general": """I'm happy to help answer your pregnancy questions! I can provide information about:

• Pregnancy symptoms and what's normal
• Baby's development week by week
• Nutrition and exercise during pregnancy
• What to expect during labor and delivery
• When to contact your healthcare provider

What would you like to know more about?""",
}


def detect_topic(message: str) -> str:
    text = message.lower()
    for topic, keywords in TOPIC_KEYWORDS:
        if any(k in text for k in keywords):
            return topic
    return "general"


def clinical_explanation(topic: str) -> str:
    return (
        f"Clinical Reference for {topic.replace('_', ' ', 1)}:\n\n"
        "Refer to ACOG guidelines for evidence-based management protocols. Key clinical "
        "considerations include risk stratification, monitoring parameters, and intervention "
        "thresholds appropriate for the patient's gestational age and risk factors."
    )


def should_activate(agent_input: AgentInput) -> bool:
    text = agent_input.message_lower
    return any(t in text for t in EDUCATION_TRIGGERS)


def process(agent_input: AgentInput) -> AgentOutput:
    is_patient = agent_input.role is UserRole.PATIENT
    topic = detect_topic(agent_input.message)
    if is_patient:
        response = PATIENT_EXPLANATIONS.get(topic, PATIENT_EXPLANATIONS["general"])
    else:
        response = clinical_explanation(topic)
    return AgentOutput(
        kind=AgentKind.EDUCATION,
        response=response,
        confidence=0.75,
        priority=PRIORITY,
        metadata={
            "topic": topic,
            "language_level": "patient" if is_patient else "clinical",
            "education_type": "general_information",
        },
    )

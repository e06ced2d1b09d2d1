"""
Maternal Triage - Obstetric Agent.
Week-range developmental guidance.
"""
from __future__ import annotations
from typing import NamedTuple

from .base import AgentInput, AgentKind, AgentOutput

PRIORITY = 90

PREGNANCY_TOPICS: tuple[str, ...] = (
    "pregnancy", "pregnant", "baby", "fetus", "trimester",
    "weeks", "due date", "delivery", "labor", "contraction",
    "prenatal", "ultrasound", "kick", "movement", "growth",
)

ASK_FOR_WEEK = "I can provide pregnancy-specific guidance. Could you share how many weeks along you are?"


class WeeklyInfo(NamedTuple):
    baby_development: str
    common_experiences: str
    important_notes: str


# (last week of range, info); the final entry covers everything after week 36.
WEEKLY_INFO: tuple[tuple[int | None, WeeklyInfo], ...] = (
    (12, WeeklyInfo(
        "Major organs are forming. Heart is beating. Neural tube developing.",
        "Morning sickness, fatigue, breast tenderness are common.",
        "Take prenatal vitamins with folic acid. Avoid alcohol and raw foods.",
    )),
    (20, WeeklyInfo(
        "Baby is growing rapidly. You may start feeling movement.",
        "Energy often improves. Belly becoming visible.",
        "Anatomy scan typically done around 18-20 weeks.",
    )),
    (27, WeeklyInfo(
        "Baby can hear sounds. Eyes are opening. Lungs developing.",
        "Regular fetal movement. Some back pain may occur.",
        "Glucose screening typically done at 24-28 weeks.",
    )),
    (36, WeeklyInfo(
        "Baby is gaining weight rapidly. Preparing for birth.",
        "Braxton Hicks contractions. Increased fatigue.",
        "Monitor fetal movement daily. Know signs of preterm labor.",
    )),
    (None, WeeklyInfo(
        "Baby is full-term and ready for birth.",
        "Increased pressure, possible nesting instinct.",
        "Know labor signs. Have hospital bag ready. Monitor for decreased movement.",
    )),
)


def trimester_name(week: int) -> str:
    if week <= 12:
        return "first"
    if week <= 27:
        return "second"
    return "third"


def weekly_info(week: int) -> WeeklyInfo:
    for last_week, info in WEEKLY_INFO:
        if last_week is None or week <= last_week:
            return info
    return WEEKLY_INFO[-1][1]


def should_activate(agent_input: AgentInput) -> bool:
    text = agent_input.message_lower
    return agent_input.context.pregnancy_week is not None or any(t in text for t in PREGNANCY_TOPICS)


def process(agent_input: AgentInput) -> AgentOutput:
    week = agent_input.context.pregnancy_week
    trimester = trimester_name(week) if week else None
    if week:
        info = weekly_info(week)
        response = (
            f"At week {week} of pregnancy ({trimester} trimester):\n\n"
            f"Baby Development: {info.baby_development}\n\n"
            f"Common Experiences: {info.common_experiences}\n\n"
            f"Important Notes: {info.important_notes}"
        )
        confidence = 0.85
    else:
        response, confidence = ASK_FOR_WEEK, 0.7
    return AgentOutput(
        kind=AgentKind.OBSTETRIC,
        response=response,
        confidence=confidence,
        priority=PRIORITY,
        metadata={"pregnancy_week": week, "trimester": trimester, "is_pregnancy_related": True},
    )

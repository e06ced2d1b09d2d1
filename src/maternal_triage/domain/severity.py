"""
Maternal Triage - Risk and Urgency Folding.
Monotonic maxima over the ordinal risk and urgency bands.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import structlog

from ..enums import RiskLevel, Urgency
from ..exceptions import InvariantViolationError

logger = structlog.get_logger(__name__)


def coerce_risk_level(value: Any, *, strict: bool = True) -> RiskLevel:
    """Return ``value`` as a RiskLevel.

    Out-of-set values raise InvariantViolationError when ``strict``; otherwise
    they clamp to the highest-risk band.
    """
    if isinstance(value, RiskLevel):
        return value
    try:
        return RiskLevel(value)
    except ValueError:
        pass
    if strict:
        raise InvariantViolationError(
            f"Risk level outside the ordinal set: {value!r}", field="risk_level", value=value,
        )
    logger.error("risk_level_clamped", value=repr(value), clamped_to=RiskLevel.LEVEL_4.value)
    return RiskLevel.LEVEL_4


def coerce_urgency(value: Any, *, strict: bool = True) -> Urgency:
    """Urgency counterpart of :func:`coerce_risk_level`."""
    if isinstance(value, Urgency):
        return value
    try:
        return Urgency(value)
    except ValueError:
        pass
    if strict:
        raise InvariantViolationError(
            f"Urgency outside the ordinal set: {value!r}", field="urgency", value=value,
        )
    logger.error("urgency_clamped", value=repr(value), clamped_to=Urgency.EMERGENCY.value)
    return Urgency.EMERGENCY


def higher_risk(current: RiskLevel, candidate: Any, *, strict: bool = True) -> RiskLevel:
    candidate_level = coerce_risk_level(candidate, strict=strict)
    return candidate_level if candidate_level.rank > current.rank else current


def higher_urgency(current: Urgency, candidate: Any, *, strict: bool = True) -> Urgency:
    candidate_urgency = coerce_urgency(candidate, strict=strict)
    return candidate_urgency if candidate_urgency.rank > current.rank else current


@dataclass
class RiskAccumulator:
    """Running risk/urgency maxima for a single turn.

    ``fold`` only ever raises the held values; every raise is recorded so the
    trace can say which stage set the final band.
    """
    risk_level: RiskLevel = RiskLevel.LEVEL_1
    urgency: Urgency = Urgency.ROUTINE
    strict: bool = True
    raised_by: list[dict[str, str]] = field(default_factory=list)

    def fold(self, risk_level: Any = None, urgency: Any = None, *, source: str) -> None:
        if risk_level is not None:
            new_risk = higher_risk(self.risk_level, risk_level, strict=self.strict)
            if new_risk is not self.risk_level:
                self.raised_by.append({"axis": "risk_level", "value": new_risk.value, "source": source})
                self.risk_level = new_risk
        if urgency is not None:
            new_urgency = higher_urgency(self.urgency, urgency, strict=self.strict)
            if new_urgency is not self.urgency:
                self.raised_by.append({"axis": "urgency", "value": new_urgency.value, "source": source})
                self.urgency = new_urgency

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_level": self.risk_level.value,
            "urgency": self.urgency.value,
            "raised_by": list(self.raised_by),
        }

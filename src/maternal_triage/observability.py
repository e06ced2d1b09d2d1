"""
Maternal Triage - Logging Setup.
Structured logging configuration shared by every pipeline component.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Any
import structlog

from .domain.privacy import PIIAnonymizer, PIISanitizerProcessor

if TYPE_CHECKING:
    from .config import TriageConfig


def configure_logging(config: TriageConfig) -> None:
    """Configure structured logging for the triage pipeline."""
    obs = config.observability
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if obs.sanitize_logs:
        processors.append(PIISanitizerProcessor(PIIAnonymizer(config.privacy)))
    if obs.log_format == "json" or config.is_production:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, obs.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_turn_context(session_id: str, turn: int) -> None:
    """Attach session identifiers to every log line emitted during a turn."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(session_id=session_id, turn=turn)


def clear_turn_context() -> None:
    structlog.contextvars.clear_contextvars()

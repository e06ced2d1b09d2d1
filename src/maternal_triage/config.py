"""
Maternal Triage - Centralized Configuration.
Pipeline configuration with environment-based settings.
"""
from __future__ import annotations
from functools import lru_cache
from typing import Any
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from .enums import Environment
from .domain.extraction import ExtractorSettings
from .domain.reasoner import ReasonerSettings
from .domain.orchestrator import OrchestratorSettings
from .domain.explainability import ExplainabilitySettings
from .domain.learning import LearningSettings
from .domain.privacy import PrivacySettings

logger = structlog.get_logger(__name__)


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    sanitize_logs: bool = Field(default=True)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_OBS_", env_file=".env", extra="ignore")


class TriageConfig(BaseSettings):
    """Main triage pipeline configuration."""
    service_name: str = Field(default="maternal-triage")
    service_version: str = Field(default="1.0.0")
    environment: Environment = Field(default=Environment.DEVELOPMENT)
    history_window: int = Field(default=10, ge=1)
    extractor: ExtractorSettings = Field(default_factory=ExtractorSettings)
    reasoner: ReasonerSettings = Field(default_factory=ReasonerSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    explainability: ExplainabilitySettings = Field(default_factory=ExplainabilitySettings)
    learning: LearningSettings = Field(default_factory=LearningSettings)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    model_config = SettingsConfigDict(env_prefix="TRIAGE_", env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def strict_invariants(self) -> bool:
        """Invariant violations raise everywhere except production, where they clamp."""
        return not self.is_production

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "service_name": self.service_name,
            "service_version": self.service_version,
            "environment": self.environment.value,
            "strict_invariants": self.strict_invariants,
            "history_window": self.history_window,
            "reasoner": {"probability_cap": self.reasoner.probability_cap,
                         "inclusion_threshold": self.reasoner.inclusion_threshold,
                         "max_differential": self.reasoner.max_differential},
            "orchestrator": {"emergency_confidence": self.orchestrator.emergency_confidence,
                             "priority_weight": self.orchestrator.priority_weight,
                             "confidence_weight": self.orchestrator.confidence_weight},
            "learning": {"enabled": self.learning.enabled,
                         "anonymize": self.privacy.enable_anonymization},
            "log_level": self.observability.log_level,
        }


@lru_cache
def get_config() -> TriageConfig:
    """Get cached configuration instance."""
    config = TriageConfig()
    logger.info("config_loaded", environment=config.environment.value, service=config.service_name)
    return config


def reload_config() -> TriageConfig:
    """Reload configuration (clears cache)."""
    get_config.cache_clear()
    return get_config()

"""Configuration module."""

from redyce.config.configuration import (
    AppConfig,
    BackfillConfig,
    ConfigurationError,
    DatabaseConfig,
    DocumentIntelligenceConfig,
    ExtractionConfig,
    JobsConfig,
    LoggingConfig,
    OpenAIConfig,
    configure_logging,
    get_config,
    load_config,
    reset_config,
)

__all__ = [
    "AppConfig",
    "BackfillConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "DocumentIntelligenceConfig",
    "ExtractionConfig",
    "JobsConfig",
    "LoggingConfig",
    "OpenAIConfig",
    "configure_logging",
    "get_config",
    "load_config",
    "reset_config",
]

"""Settings of the requirement extraction service.

Non-secret settings come from a YAML file at the repository root, chosen by
APP_ENV (dev: config_dev.yaml, test: config_test.yaml, otherwise
config.yaml). Secrets come from the environment, which python-dotenv fills
from .env. Missing or invalid settings raise ConfigurationError at load time.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

CONFIG_FILES = {
    "dev": "config_dev.yaml",
    "test": "config_test.yaml",
}
DEFAULT_CONFIG_FILE = "config.yaml"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class ConfigurationError(Exception):
    """Raised when a setting is missing or has an unusable value."""
    pass


def _project_root() -> Path:
    # redyce/config/configuration.py -> repository root
    return Path(__file__).resolve().parents[2]


def _config_path() -> Path:
    app_env = os.environ.get("APP_ENV", "").strip().lower()
    return _project_root() / CONFIG_FILES.get(app_env, DEFAULT_CONFIG_FILE)


def _read_settings() -> Dict[str, Any]:
    path = _config_path()
    if not path.is_file():
        raise ConfigurationError(
            f"Configuration file not found: {path}. "
            f"Create it or set APP_ENV to one of: {', '.join(CONFIG_FILES)}."
        )

    with path.open("r", encoding="utf-8") as f:
        settings = yaml.safe_load(f) or {}
    if not isinstance(settings, dict):
        raise ConfigurationError(f"{path.name} must contain a mapping of sections")
    return settings


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise ConfigurationError(f"Environment variable '{name}' is required (set it in .env)")
    return value


def _positive_int(section: Dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigurationError(f"Setting '{key}' must be a positive integer, got {value!r}")
    return value


@dataclass(frozen=True)
class OpenAIConfig:
    """Chat completion settings."""
    api_key: str
    model: str
    temperature: float
    max_tokens: int

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> "OpenAIConfig":
        return cls(
            api_key=_require_env("OPENAI_API_KEY"),
            model=section.get("model", "gpt-4o-mini"),
            temperature=float(section.get("temperature", 0.2)),
            max_tokens=_positive_int(section, "max_tokens", 4000),
        )


@dataclass(frozen=True)
class DocumentIntelligenceConfig:
    """Azure AI Document Intelligence settings."""
    api_key: str
    endpoint: str
    model_id: str

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> "DocumentIntelligenceConfig":
        endpoint = section.get("endpoint") or os.environ.get("DOCUMENT_INTELLIGENCE_ENDPOINT", "")
        return cls(
            api_key=_require_env("DOCUMENT_INTELLIGENCE_KEY"),
            endpoint=endpoint,
            model_id=section.get("model_id", "prebuilt-layout"),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    path: str


@dataclass(frozen=True)
class ExtractionConfig:
    """Requirement extraction thresholds (in characters)."""
    min_text_length: int
    max_text_length: int
    edge_length: int

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> "ExtractionConfig":
        config = cls(
            min_text_length=_positive_int(section, "min_text_length", 50),
            max_text_length=_positive_int(section, "max_text_length", 30000),
            edge_length=_positive_int(section, "edge_length", 15000),
        )
        if config.edge_length * 2 > config.max_text_length:
            raise ConfigurationError(
                "extraction.edge_length must be at most half of extraction.max_text_length"
            )
        return config


@dataclass(frozen=True)
class BackfillConfig:
    concurrency: int


@dataclass(frozen=True)
class JobsConfig:
    """Priority manager settings."""
    retention_seconds: int
    persist: bool  # Keep jobs and project locks in SQLite
    lease_seconds: int  # Renewed on every cleanup pass of the API
    instance_id: Optional[str]  # Random per process when unset


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class AppConfig:
    """Every setting of one running instance."""
    openai: OpenAIConfig
    document_intelligence: DocumentIntelligenceConfig
    database: DatabaseConfig
    extraction: ExtractionConfig
    backfill: BackfillConfig
    jobs: JobsConfig
    logging: LoggingConfig


def load_config() -> AppConfig:
    """
    Read the YAML settings and the secrets from the environment.

    Returns:
        AppConfig: Validated configuration.

    Raises:
        ConfigurationError: If the file, a secret or a setting is missing or invalid.
    """
    load_dotenv()
    settings = _read_settings()

    def section(name: str) -> Dict[str, Any]:
        value = settings.get(name) or {}
        if not isinstance(value, dict):
            raise ConfigurationError(f"Section '{name}' must be a mapping")
        return value

    jobs = section("jobs")

    return AppConfig(
        openai=OpenAIConfig.from_section(section("openai")),
        document_intelligence=DocumentIntelligenceConfig.from_section(section("document_intelligence")),
        database=DatabaseConfig(path=section("database").get("path", "redyce.db")),
        extraction=ExtractionConfig.from_section(section("extraction")),
        backfill=BackfillConfig(concurrency=_positive_int(section("backfill"), "concurrency", 3)),
        jobs=JobsConfig(
            retention_seconds=_positive_int(jobs, "retention_seconds", 3600),
            lease_seconds=_positive_int(jobs, "lease_seconds", 900),
            instance_id=str(jobs["instance_id"]) if jobs.get("instance_id") else None,
            persist=bool(jobs.get("persist", True)),
        ),
        logging=LoggingConfig(level=str(section("logging").get("level", "INFO"))),
    )


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the loaded configuration (tests, reloads)."""
    global _config
    _config = None


def configure_logging(config: AppConfig) -> None:
    """Configure root logging from the loaded configuration."""
    level = logging.getLevelName(config.logging.level.upper())
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown logging level: {config.logging.level}")
    logging.basicConfig(level=level, format=LOG_FORMAT)

"""Settings and configuration management."""

import logging
import re
import warnings
from functools import lru_cache
from pathlib import Path
from typing import ClassVar

from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger = logging.getLogger(__name__)

_DEFAULT_DATABASE_URL = "sqlite:///hireflow-state.db"
_DEFAULT_ENGINE_URL = "http://localhost:5678/api/v1"

# Regex for ${ENV_VAR} placeholders in YAML values
_ENV_VAR_PLACEHOLDER_RE = re.compile(r"^\$\{[A-Z_][A-Z0-9_]*\}$")

# YAML config search paths (checked in order, first found wins)
_YAML_SEARCH_PATHS = [
    Path("hireflow.yaml"),
    Path("config/hireflow.yaml"),
    Path.home() / ".config" / "hireflow" / "hireflow.yaml",
]


def _find_yaml_config() -> Path | None:
    """Find the first hireflow.yaml in search paths."""
    for path in _YAML_SEARCH_PATHS:
        if path.is_file():
            return path
    return None


class Settings(BaseSettings):
    """Application settings.

    Priority chain: init kwargs > env vars > .env file > hireflow.yaml > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Priority: init kwargs > env vars > .env file > hireflow.yaml > file secrets > defaults
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
        ]

        yaml_path = _find_yaml_config()
        cls._yaml_path = yaml_path
        if yaml_path:
            sources.append(
                YamlConfigSettingsSource(
                    settings_cls,
                    yaml_file=yaml_path,
                    yaml_file_encoding="utf-8",
                )
            )

        sources.append(file_secret_settings)
        return tuple(sources)

    @model_validator(mode="before")
    @classmethod
    def _resolve_env_var_placeholders(cls, data: dict) -> dict:
        """Strip unresolved ${VAR} placeholders so the field default applies."""
        if not isinstance(data, dict):
            return data
        return {
            key: value
            for key, value in data.items()
            if not (isinstance(value, str) and _ENV_VAR_PLACEHOLDER_RE.match(value))
        }

    # Application Settings
    app_name: str = Field("Hireflow", description="Application name")
    production: bool = Field(
        False,
        description="Production mode - missing credentials become fatal",
    )
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("text", description="Log format: 'text' or 'json'")
    sanitize_logs: bool = Field(True, description="Sanitize sensitive data from logs")

    # Automation engine
    engine_base_url: str = Field(
        _DEFAULT_ENGINE_URL, description="Automation engine REST API base URL"
    )
    engine_api_key: str = Field("", description="Automation engine API key")
    engine_api_key_header: str = Field(
        "X-Engine-API-Key", description="Header carrying the engine API key"
    )
    engine_timeout: float = Field(10.0, description="Engine request timeout in seconds")
    engine_batch_interval: float = Field(
        1.0, description="Minimum spacing in seconds between batched engine calls"
    )
    engine_max_retries: int = Field(
        2, description="Transport-level connection retries for engine calls"
    )

    # Webhooks
    meeting_bot_webhook_url: str | None = Field(
        None, description="Webhook receiving interview session starts"
    )
    busy_slot_webhook_url: str | None = Field(
        None, description="Webhook receiving busy-slot creations"
    )
    extend_meeting_webhook_url: str | None = Field(
        None, description="Webhook receiving meeting extensions"
    )
    cv_processing_webhook_url: str | None = Field(
        None, description="Webhook triggering CV processing"
    )
    webhook_platform: str = Field("ideofuzion", description="Platform tag stamped on events")
    webhook_timeout: float = Field(10.0, description="Webhook request timeout in seconds")
    webhook_user_agent: str = Field("HiringPlatform/1.0", description="User-Agent for webhooks")

    # Templates
    templates_dir: Path | None = Field(
        None,
        description="Directory of workflow template YAML files (defaults to packaged templates)",
    )

    # Database
    database_url: str = Field(
        default=_DEFAULT_DATABASE_URL,
        description="Database URL (sqlite:///path.db)",
    )
    database_busy_timeout: float = Field(
        1.0, description="Seconds to wait on another process's database write lock"
    )

    @property
    def has_engine_credentials(self) -> bool:
        """Check if an engine API key has been configured."""
        return bool(self.engine_api_key)

    def webhook_urls(self) -> dict[str, str]:
        """Map event kind values to configured webhook URLs."""
        urls = {
            "meeting-bot": self.meeting_bot_webhook_url,
            "busy-slot": self.busy_slot_webhook_url,
            "extend-meeting": self.extend_meeting_webhook_url,
            "cv-processing": self.cv_processing_webhook_url,
        }
        return {kind: url for kind, url in urls.items() if url}

    def model_post_init(self, __context) -> None:
        """Validate engine configuration."""
        self._validate_engine_config()

    def _validate_engine_config(self) -> None:
        issues = []

        if not self.has_engine_credentials:
            issues.append(
                "ENGINE_API_KEY is not set. Every engine call will be rejected "
                "with an authentication error."
            )

        if self.engine_timeout <= 0:
            issues.append(f"ENGINE_TIMEOUT must be positive, got {self.engine_timeout}")

        if not issues:
            return

        if self.production:
            raise ValueError(
                "Invalid configuration (production mode enabled):\n"
                + "\n".join(f"  - {issue}" for issue in issues)
            )
        for issue in issues:
            warnings.warn(f"Config: {issue}", stacklevel=3)
            logger.warning("CONFIG WARNING: %s", issue)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

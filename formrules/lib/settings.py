"""Environment-based engine settings."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["EngineSettings", "get_settings"]


class EngineSettings(BaseSettings):
    """Engine settings using pydantic-settings.

    Automatically loads from environment variables with FORMRULES_ prefix.

    Example:
        >>> # Set environment variables:
        >>> # FORMRULES_LOG_LEVEL=DEBUG
        >>> # FORMRULES_DEFAULT_JOINER=OR
        >>> settings = EngineSettings()
        >>> print(settings.default_joiner)
        OR
    """

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: 'json' or 'console'")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    default_joiner: str = Field(default="AND", description="Joiner for rules without a logic expression")
    strict_validation: bool = Field(default=False, description="Treat validation warnings as errors")

    model_config = SettingsConfigDict(
        env_prefix="FORMRULES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate format is a known value."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("default_joiner")
    @classmethod
    def validate_joiner(cls, v: str) -> str:
        """Validate the joiner is AND or OR."""
        if v.upper() not in ("AND", "OR"):
            raise ValueError("default_joiner must be one of: ['AND', 'OR']")
        return v.upper()

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


def get_settings(**overrides: object) -> EngineSettings:
    """Load settings from the environment, with explicit overrides applied on top."""
    return EngineSettings(**{k: v for k, v in overrides.items() if v is not None})

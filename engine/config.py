"""Configuration management for the groove selection engine.

Loads and validates environment variables using Pydantic settings.
"""

from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from engine.exceptions import ConfigurationError


class GrooveConfig(BaseSettings):
    """Engine configuration loaded from environment variables."""

    env: Literal["development", "production", "test"] = Field(
        default="development", alias="GROOVE_ENV"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", alias="GROOVE_LOG_LEVEL"
    )

    # Selection settings
    master_seed: int = Field(default=42, alias="GROOVE_MASTER_SEED", ge=0)
    strict_operators: bool = Field(default=False, alias="GROOVE_STRICT_OPERATORS")
    diagnostics_enabled: bool = Field(
        default=False, alias="GROOVE_DIAGNOSTICS_ENABLED"
    )

    # Beat grid
    max_beat_denominator: int = Field(
        default=960, alias="GROOVE_MAX_BEAT_DENOMINATOR", ge=1, le=65536
    )
    default_ticks_per_beat: int = Field(
        default=480, alias="GROOVE_TICKS_PER_BEAT", ge=1, le=15360
    )

    @field_validator("max_beat_denominator")
    @classmethod
    def validate_denominator(cls, v: int) -> int:
        """Require a grid fine enough for sixteenth triplets."""
        if v % 12 != 0:
            raise ValueError(
                f"max_beat_denominator must be a multiple of 12, got {v}"
            )
        return v

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"


# Singleton configuration instance
_config: GrooveConfig | None = None


def get_config() -> GrooveConfig:
    """Get the global configuration instance.

    Returns:
        GrooveConfig: Configuration singleton

    Raises:
        ConfigurationError: If environment values fail validation
    """
    global _config
    if _config is None:
        try:
            _config = GrooveConfig()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid groove configuration: {e}") from e
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next call reloads it."""
    global _config
    _config = None

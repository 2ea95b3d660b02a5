"""Engine configuration using Pydantic Settings.

Configuration is loaded from ``RULELANG_``-prefixed environment variables.

Optionally, point ``ENV_FILE`` at a local env file (for development). The
file is only read when explicitly requested.
"""

import os
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rulelang.domain.enums import MODE_ALIASES, EvaluationMode


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Engine settings with type validation.

    Execution options that a caller leaves unset fall back to these values.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="RULELANG_", extra="ignore"
    )

    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "rulelang"

    # Logging
    log_level: str = "INFO"
    structured_logs: bool = True

    # Metrics (prometheus-client, private registry)
    metrics_enabled: bool = True

    # Execution defaults
    max_rule_firings: int = Field(default=1000, gt=0)
    default_mode: EvaluationMode = EvaluationMode.ALL_MATCHES

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("default_mode", mode="before")
    @classmethod
    def validate_default_mode(cls, v: str | EvaluationMode) -> str | EvaluationMode:
        """Accept the short spellings ``first``/``all``."""
        if isinstance(v, str) and v in MODE_ALIASES:
            return MODE_ALIASES[v]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"log_level must be a standard logging level, got '{v}'")
        return level

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Production runs must keep the firing cap at its default or lower."""
        if self.app_env == AppEnvironment.PROD and self.max_rule_firings > 1000:
            raise ValueError(
                "RULELANG_MAX_RULE_FIRINGS cannot exceed 1000 in production. "
                f"Got: {self.max_rule_firings}"
            )
        return self


settings = Settings()

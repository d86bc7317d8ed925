"""Configuration and settings management using pydantic-settings."""
import json
import logging
from typing import Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from flowgraph import __version__

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_TYPES = [
    "manual",
    "manualTrigger",
    "webhook",
    "schedule",
    "scheduleTrigger",
    "emailTrigger",
    "formTrigger",
    "chatTrigger",
    "fileTrigger",
    "intervalTrigger",
    "cronTrigger",
]


class Settings(BaseSettings):
    """Engine settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="FLOWGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core service settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")

    # Graph walker
    entry_point_mode: str = Field(
        default="trigger",
        description="'trigger' = typed triggers only, 'roots' = triggers or nodes without incoming edges",
    )
    trigger_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRIGGER_TYPES),
        description="Node types treated as entry points",
    )
    unknown_node_passthrough: bool = Field(
        default=False,
        description="Pass items through unknown node types instead of failing the run",
    )

    # Built-in handler limits
    wait_max_seconds: float = Field(
        default=5.0,
        description="Safety ceiling for the Wait node",
    )
    http_timeout_s: float = Field(
        default=30.0,
        description="Default timeout for HTTP Request nodes",
    )
    http_user_agent: str = Field(
        default=f"flowgraph-engine/{__version__}",
        description="User-Agent sent by HTTP Request nodes",
    )

    # Execution history
    history_backend: str = Field(
        default="memory",
        description="History store backend: memory, json or redis",
    )
    history_limit: int = Field(
        default=100,
        description="Number of runs kept in history (most recent first)",
    )
    history_path: str = Field(
        default=".flowgraph/executions.json",
        description="History file used by the json backend",
    )
    history_ttl_s: int = Field(
        default=7 * 24 * 3600,
        description="Expiry of stored runs in the redis backend",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the redis backend",
    )

    # Run variables
    variables_json: str | None = Field(
        default=None,
        description="JSON object merged into every run's $vars",
    )

    @field_validator("history_limit", "history_ttl_s")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        """Validate that the history cap and expiry are positive."""
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("wait_max_seconds")
    @classmethod
    def validate_wait_max(cls, v: float) -> float:
        """Validate that the wait ceiling is not negative."""
        if v < 0:
            raise ValueError("wait_max_seconds must not be negative")
        return v

    @field_validator("entry_point_mode")
    @classmethod
    def validate_entry_point_mode(cls, v: str) -> str:
        """Validate the entry point discovery mode."""
        if v not in ("trigger", "roots"):
            raise ValueError("entry_point_mode must be 'trigger' or 'roots'")
        return v

    def get_global_variables(self) -> dict[str, Any]:
        """
        Get the variables merged into every run's $vars table.

        Returns:
            Dict parsed from variables_json, empty if unset or invalid.
        """
        if not self.variables_json:
            return {}

        try:
            variables = json.loads(self.variables_json)
        except json.JSONDecodeError:
            logger.warning("FLOWGRAPH_VARIABLES_JSON is not valid JSON, ignoring it")
            return {}

        if not isinstance(variables, dict):
            logger.warning("FLOWGRAPH_VARIABLES_JSON must be a JSON object, ignoring it")
            return {}

        return variables


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None

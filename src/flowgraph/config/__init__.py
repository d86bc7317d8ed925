"""Configuration package."""
from flowgraph.config.settings import DEFAULT_TRIGGER_TYPES, Settings, get_settings, reset_settings

__all__ = ["DEFAULT_TRIGGER_TYPES", "get_settings", "reset_settings", "Settings"]

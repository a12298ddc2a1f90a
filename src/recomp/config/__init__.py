"""Configuration management."""

from recomp.config.settings import (
    EngineConfig,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = ["EngineConfig", "Settings", "get_settings", "reload_settings"]

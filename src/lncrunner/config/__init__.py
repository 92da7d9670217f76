"""Configuration package."""

from .settings import (
    PipelineSettings,
    SecuritySettings,
    Settings,
    StorageSettings,
    get_settings,
    settings,
)

__all__ = [
    "PipelineSettings",
    "SecuritySettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "settings",
]

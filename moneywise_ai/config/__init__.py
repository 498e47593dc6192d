"""Configuration package."""

from moneywise_ai.config.settings import (
    DEFAULT_BASE_URL,
    AppSettings,
    GeminiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_BASE_URL",
    "AppSettings",
    "GeminiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]

"""
Configuration Management for Moneywise AI

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

The Gemini API key is deliberately optional: a missing key is a
runtime condition (MissingCredentialError), not a startup failure.
"""

from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


class GeminiSettings(BaseSettings):
    """Gemini endpoint and transport configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key (sent as x-goog-api-key)"
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Endpoint host; override to route through a gateway"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        le=600,
        description="HTTP timeout in seconds for a single attempt"
    )

    # Optional HTTP(S) proxy
    proxy_enabled: bool = Field(default=False)
    proxy_host: str = Field(default="127.0.0.1")
    proxy_port: int = Field(default=50960, ge=1, le=65535)

    @field_validator("base_url")
    @classmethod
    def blank_means_default(cls, v: str) -> str:
        """An empty override falls back to the public host."""
        return v.strip() or DEFAULT_BASE_URL

    @property
    def proxies(self) -> Optional[dict[str, str]]:
        """Proxy mapping in the shape requests expects, or None."""
        if not self.proxy_enabled:
            return None
        proxy_url = f"http://{self.proxy_host}:{self.proxy_port}"
        return {"http": proxy_url, "https": proxy_url}


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(default="INFO")

    # Conversation bookkeeping
    history_window: int = Field(
        default=10,
        ge=0,
        le=100,
        description="How many persisted messages are replayed to the model"
    )
    title_max_length: int = Field(
        default=30,
        ge=1,
        description="Conversation titles longer than this are truncated"
    )

    # Analytics
    analysis_lookback_days: int = Field(
        default=365,
        ge=1,
        description="How far back free-form analysis reads transactions"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v_upper

    @property
    def effective_log_level(self) -> str:
        """Debug mode forces DEBUG regardless of log_level."""
        return "DEBUG" if self.debug_mode else self.log_level


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    "<name>_error" entries describing what is wrong.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        gemini = settings.gemini
        results["gemini"] = True
        if not gemini.api_key:
            results["gemini_api_key"] = False
        parsed = urlparse(gemini.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            results["gemini"] = False
            results["gemini_error"] = f"Invalid base URL: {gemini.base_url}"
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results

"""
Centralized settings for spine-delayed.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    ``DelayedSettings`` is the one place the worker and the CLI read their
    Redis URL, namespace and poll interval from.

All fields can be set via ``SPINE_DELAYED_*`` environment variables (e.g.
``SPINE_DELAYED_INTERVAL=2``) or a ``.env`` file. The legacy resque-scheduler
variables ``REDIS_BACKEND`` and ``INTERVAL`` are accepted as well;
``REDIS_BACKEND`` may be a bare ``host:port``.

Tags:
    spine-delayed, configuration, settings, pydantic

Doc-Types:
    api-reference
"""

from __future__ import annotations

from functools import lru_cache

import pydantic
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class DelayedSettings(BaseSettings):
    """spine-delayed configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPINE_DELAYED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Redis ────────────────────────────────────────────────────
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("SPINE_DELAYED_REDIS_URL", "REDIS_BACKEND"),
    )
    namespace: str = Field(default="resque:", description="Key prefix shared with the Resque queue")

    # ── Worker ───────────────────────────────────────────────────
    interval: float = Field(
        default=5.0,
        ge=0,
        validation_alias=AliasChoices("SPINE_DELAYED_INTERVAL", "INTERVAL"),
        description="Seconds to sleep between schedule checks",
    )
    worker_id: str | None = Field(default=None)
    prune_on_start: bool = Field(default=True)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("redis_url")
    @classmethod
    def _normalize_redis_url(cls, value: str) -> str:
        value = value.strip()
        if "://" not in value:
            value = f"redis://{value}"
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value!r}")
        return value


def load_settings(**overrides) -> DelayedSettings:
    """Build settings from the environment plus explicit overrides.

    Raises:
        ConfigError: If any value fails validation.
    """
    try:
        return DelayedSettings(**overrides)
    except pydantic.ValidationError as exc:
        raise ConfigError(f"Invalid spine-delayed settings: {exc}", cause=exc) from exc


@lru_cache(maxsize=1)
def get_settings() -> DelayedSettings:
    """Return the cached process-wide settings."""
    return load_settings()


__all__ = ["DelayedSettings", "get_settings", "load_settings"]

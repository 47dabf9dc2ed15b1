"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from outbox_service.core.settings.loader import get_outbox_settings

    settings = get_outbox_settings()

Testing:
    In tests, clear the cache to force reload:
    get_outbox_settings.cache_clear()
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field

from .app import AppSettings
from .logs import LoggingSettings
from .outbox import OutboxSettings
from .postgres import PostgresSettings
from .rabbit import RabbitSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings.

    Returns:
        Validated and frozen AppSettings instance.
    """
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> PostgresSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen PostgresSettings instance.
    """
    return PostgresSettings()


@lru_cache(maxsize=1)
def get_rabbit_settings() -> RabbitSettings:
    """Get cached RabbitMQ settings.

    Returns:
        Validated and frozen RabbitSettings instance.
    """
    return RabbitSettings()


@lru_cache(maxsize=1)
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox publisher settings.

    Returns:
        Validated and frozen OutboxSettings instance.
    """
    return OutboxSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


class Settings(BaseModel):
    """All domain settings in one object.

    Each nested settings class still loads from its own environment prefix
    (APP_, DB_, RABBIT_, OUTBOX_, LOG_).
    """

    model_config = ConfigDict(frozen=True)

    app: AppSettings = Field(default_factory=get_app_settings)
    db: PostgresSettings = Field(default_factory=get_db_settings)
    rabbit: RabbitSettings = Field(default_factory=get_rabbit_settings)
    outbox: OutboxSettings = Field(default_factory=get_outbox_settings)
    logging: LoggingSettings = Field(default_factory=get_logging_settings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the combined settings view (cached)."""
    return Settings()


def clear_settings_cache() -> None:
    """Drop every cached settings instance so the next call re-reads the environment."""
    for loader in (
        get_app_settings,
        get_db_settings,
        get_rabbit_settings,
        get_outbox_settings,
        get_logging_settings,
        get_settings,
    ):
        loader.cache_clear()

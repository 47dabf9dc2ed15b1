"""Outbox publisher settings."""

from __future__ import annotations

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OutboxSettings(BaseSettings):
    """Publisher worker and retention sweep settings.

    Environment variables use OUTBOX_ prefix.
    Example: OUTBOX_POLL_INTERVAL=5, OUTBOX_BATCH_SIZE=50, OUTBOX_MAX_RETRIES=3
    """

    # ─────────────────────────────────────────────────────
    # Event envelope
    # ─────────────────────────────────────────────────────
    source: str = Field(
        default="workspace-channel-service",
        min_length=1,
        max_length=100,
        description="Value of metadata.source on every event envelope.",
    )

    # ─────────────────────────────────────────────────────
    # Publisher worker
    # ─────────────────────────────────────────────────────
    poll_interval: float = Field(
        default=5.0,
        gt=0,
        le=3600.0,
        description="Seconds to wait between polls when the previous batch was not full.",
    )
    batch_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum number of records locked and published per batch.",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Failed records are retried while failed_attempts is below this value.",
    )
    retry_interval: float = Field(
        default=5.0,
        gt=0,
        le=86400.0,
        description="Minimum seconds between retry sweeps over failed records.",
    )
    shutdown_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600.0,
        description="Seconds stop() waits for an in-flight batch before forcing shutdown.",
    )

    # ─────────────────────────────────────────────────────
    # Retention sweep
    # ─────────────────────────────────────────────────────
    cleanup_enabled: bool = Field(
        default=True,
        description="Run the retention sweep alongside the worker.",
    )
    cleanup_interval: float = Field(
        default=3600.0,
        gt=0,
        le=7 * 86400.0,
        description="Seconds between retention sweeps.",
    )
    retention_days: int = Field(
        default=7,
        ge=1,
        le=3650,
        description="Published records older than this many days are deleted.",
    )

    model_config = SettingsConfigDict(
        env_prefix="OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @property
    def retention(self) -> timedelta:
        """Retention window as a timedelta."""
        return timedelta(days=self.retention_days)

"""Database foundation: declarative base, mixins, repository base."""

from __future__ import annotations

from outbox_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    CreatedAtMixin,
    UUIDv7PKMixin,
    generate_uuid7,
    utcnow,
)
from outbox_service.core.database.repository import BaseRepository

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "CreatedAtMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
    "utcnow",
]

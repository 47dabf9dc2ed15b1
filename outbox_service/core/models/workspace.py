"""Workspace and channel reference tables.

The domain service owns these tables; they are mapped here with the minimum
columns needed so event records can reference them with enforced foreign
keys.
"""

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from outbox_service.core.database import Base, CreatedAtMixin, UUIDv7PKMixin


class Workspace(Base, UUIDv7PKMixin, CreatedAtMixin):
    """A workspace; event partition key for workspace-level events."""

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Workspace slug",
    )

    def __repr__(self) -> str:
        return f"Workspace(id={self.id}, name={self.name!r})"


class Channel(Base, UUIDv7PKMixin, CreatedAtMixin):
    """A channel inside a workspace; partition key for channel-level events."""

    __tablename__ = "channels"

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning workspace",
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Channel name",
    )

    def __repr__(self) -> str:
        return f"Channel(id={self.id}, workspace_id={self.workspace_id}, name={self.name!r})"


__all__ = ["Channel", "Workspace"]

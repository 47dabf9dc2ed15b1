"""Domain data carried in the ``data`` field of each event kind.

Each model validates the caller's input before anything is written. Field
names are snake_case in Python and camelCase in the envelope.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, ClassVar, Literal

from pydantic import ConfigDict, Field

from outbox_service.core.events.envelope import CamelModel

WorkspaceRole = Literal["owner", "admin", "member", "guest"]
ChannelRole = Literal["owner", "admin", "member", "viewer"]
ChannelType = Literal["public", "private", "direct", "group_dm"]


class EventData(CamelModel):
    """Base for event data models."""

    # Optional fields dropped from the payload when None instead of sent as null
    omit_when_none: ClassVar[frozenset[str]] = frozenset()

    def to_payload(self) -> dict[str, Any]:
        omit = {name for name in self.omit_when_none if getattr(self, name) is None}
        return self.model_dump(mode="json", by_alias=True, exclude=omit)


class UserSummary(CamelModel):
    """Public profile of the user an event is about.

    Extra profile fields supplied by the caller are passed through.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    email: str | None = None
    username: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None


# ──────────────────────────────────────────────────────────────
# Workspace events
# ──────────────────────────────────────────────────────────────


class InviteCreatedData(EventData):
    """``workspace.invite.created``"""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"custom_message"})

    invite_id: str = Field(min_length=1)
    workspace_id: uuid.UUID
    workspace_name: str = Field(min_length=1)
    workspace_display_name: str | None = None
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    role: WorkspaceRole = "member"
    inviter_user_id: str = Field(min_length=1)
    invite_token: str = Field(min_length=1)
    invite_url: str = Field(min_length=1)
    expires_at: datetime | None = None
    custom_message: str | None = Field(default=None, max_length=2000)


class WorkspaceMemberJoinedData(EventData):
    """``workspace.member.joined``"""

    omit_when_none: ClassVar[frozenset[str]] = frozenset({"invite_id"})

    workspace_id: uuid.UUID
    workspace_name: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    role: WorkspaceRole
    user: UserSummary
    invite_id: str | None = None


# ──────────────────────────────────────────────────────────────
# Channel events
# ──────────────────────────────────────────────────────────────


class ChannelMemberJoinedData(EventData):
    """``channel.member.joined``"""

    channel_id: uuid.UUID
    channel_name: str = Field(min_length=1)
    workspace_id: uuid.UUID
    user_id: str = Field(min_length=1)
    role: ChannelRole
    user: UserSummary


class ChannelMemberData(CamelModel):
    """One member listed in ``channel.created``."""

    user_id: str = Field(min_length=1)
    channel_id: uuid.UUID
    role: ChannelRole
    joined_at: datetime
    is_active: bool = True
    user: UserSummary | None = None


class ChannelCreatedData(EventData):
    """``channel.created``"""

    channel_id: uuid.UUID
    workspace_id: uuid.UUID
    channel_name: str = Field(min_length=1)
    channel_display_name: str | None = None
    channel_description: str | None = None
    channel_type: ChannelType
    created_by: str | None = None
    member_count: int = Field(ge=0)
    is_private: bool
    members: list[ChannelMemberData] = Field(default_factory=list)
    created_at: datetime


class ChannelDeletedData(EventData):
    """``channel.deleted``"""

    channel_id: uuid.UUID
    workspace_id: uuid.UUID
    channel_name: str = Field(min_length=1)
    deleted_by: str = Field(min_length=1)


__all__ = [
    "ChannelCreatedData",
    "ChannelDeletedData",
    "ChannelMemberData",
    "ChannelMemberJoinedData",
    "ChannelRole",
    "ChannelType",
    "EventData",
    "InviteCreatedData",
    "UserSummary",
    "WorkspaceMemberJoinedData",
    "WorkspaceRole",
]

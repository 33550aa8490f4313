"""Presence, typing and participant directory schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from lumi.schemas.message import MessageOut

PresenceStatus = Literal["online", "recently_active", "offline"]


class PresenceRequest(BaseModel):
    """Body for POST/DELETE /presence."""

    username: str | None = None
    is_typing: bool | None = Field(default=None, alias="isTyping")

    model_config = ConfigDict(populate_by_name=True)


class PresenceOut(BaseModel):
    """An online user."""

    username: str
    last_seen: datetime
    is_typing: bool = False
    typing_started_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ParticipantOut(BaseModel):
    """Directory entry enriched with live presence status."""

    username: str
    first_seen: datetime
    last_message_at: datetime | None = None
    message_count: int
    last_seen: datetime | None = None
    status: PresenceStatus


class ParticipantListOut(BaseModel):
    """Response for GET /participants."""

    participants: list[ParticipantOut]
    total: int
    query: str
    limit: int


class ChatStateOut(BaseModel):
    """Combined poll snapshot for GET /chat-state."""

    messages: list[MessageOut]
    presence: list[PresenceOut]
    typing: list[str]
    timestamp: datetime

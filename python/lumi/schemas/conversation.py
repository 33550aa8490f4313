"""Direct message and conversation schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lumi.schemas.message import SendMessageRequest

# =============================================================================
# Request Schemas
# =============================================================================


class SendDirectMessageRequest(SendMessageRequest):
    """Body for POST /direct-messages.

    Exactly one of conversation_id / recipient_username is expected; when only
    the recipient is given the conversation is looked up or created.
    """

    recipient_username: str | None = Field(default=None, alias="recipientUsername")
    conversation_id: int | None = Field(default=None, alias="conversationId")


class CreateConversationRequest(BaseModel):
    """Body for POST /create-conversation."""

    username: str | None = None
    recipient_username: str | None = Field(default=None, alias="recipientUsername")

    model_config = ConfigDict(populate_by_name=True)


class ReadStatusRequest(BaseModel):
    """Body for POST /dm-read-status."""

    username: str | None = None
    conversation_id: int | None = Field(default=None, alias="conversationId")
    last_read_message_id: int | None = Field(default=None, alias="lastReadMessageId")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Response Schemas
# =============================================================================


class DirectMessageOut(BaseModel):
    """A message inside a conversation."""

    id: int
    conversation_id: int
    sender_username: str
    message: str
    created_at: datetime
    reply_to_id: int | None = None
    reply_to_username: str | None = None
    reply_preview: str | None = None
    image_url: str | None = None
    image_filename: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ConversationSummaryOut(BaseModel):
    """Conversation list entry with last-message preview and unread count."""

    id: int
    created_at: datetime
    updated_at: datetime
    other_username: str | None = None
    last_message: str | None = None
    last_sender: str | None = None
    last_message_at: datetime | None = None
    unread_count: int = 0


class ConversationCreatedOut(BaseModel):
    """Response for POST /create-conversation."""

    conversation_id: int
    participants: list[str]


class ReadStatusOut(BaseModel):
    """Response for POST /dm-read-status."""

    success: bool = True
    conversation_id: int
    last_read_message_id: int | None

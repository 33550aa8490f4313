"""Global room message schemas.

Request bodies use the camelCase keys the browser client sends. Every field is
optional at the schema level; presence and length rules are enforced by the
service layer so clients get the exact human-readable error for each case.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Request Schemas
# =============================================================================


class SendMessageRequest(BaseModel):
    """Body for POST /messages and POST /direct-messages."""

    username: str | None = None
    message: str | None = None
    reply_to_id: int | str | None = Field(default=None, alias="replyToId")
    reply_to_username: str | None = Field(default=None, alias="replyToUsername")
    reply_preview: str | None = Field(default=None, alias="replyPreview")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Response Schemas
# =============================================================================


class MessageOut(BaseModel):
    """A global room message as returned to pollers."""

    id: int
    username: str
    message: str
    created_at: datetime
    reply_to_id: int | None = None
    reply_to_username: str | None = None
    reply_preview: str | None = None
    image_url: str | None = None
    image_filename: str | None = None

    model_config = ConfigDict(from_attributes=True)

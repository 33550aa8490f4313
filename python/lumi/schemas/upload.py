"""Image and avatar upload schemas.

Uploads arrive as JSON with base64 file data, matching the browser client.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from lumi.schemas.message import SendMessageRequest


class UploadImageRequest(SendMessageRequest):
    """Body for POST /upload-image. ``message`` is an optional caption."""

    filename: str | None = None
    file_data: str | None = Field(default=None, alias="fileData")


class UploadAvatarRequest(BaseModel):
    """Body for POST /upload-avatar."""

    username: str | None = None
    filename: str | None = None
    file_data: str | None = Field(default=None, alias="fileData")

    model_config = ConfigDict(populate_by_name=True)


class UserAvatarOut(BaseModel):
    """Stored avatar reference, serialized with the client's camelCase keys."""

    username: str
    avatar_url: str = Field(serialization_alias="avatarUrl")
    original_filename: str | None = Field(default=None, serialization_alias="originalFilename")
    file_size: int | None = Field(default=None, serialization_alias="fileSize")
    uploaded_at: datetime = Field(serialization_alias="uploadedAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)

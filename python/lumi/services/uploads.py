"""Chat image and avatar uploads.

Uploads arrive base64-encoded in JSON. Validation order: required fields,
username, decoded size, then extension. The blob is written first and the
database row second; if the row insert fails the blob is removed again.

Key invariants:
- Image blobs are immutable; a message references its blob by ``/images/{key}``.
- Each username has at most one avatar row; replacing it removes the old blob.
"""

import base64
import binascii
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from lumi.config import get_settings
from lumi.db.models import UserAvatar
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from lumi.logging import get_logger, set_username
from lumi.schemas.message import MessageOut
from lumi.schemas.upload import UserAvatarOut
from lumi.services.messages import send_message
from lumi.services.validation import clean, require_username
from lumi.storage import (
    StorageClientBase,
    StorageError,
    StoredObject,
    build_avatar_key,
    build_image_key,
    content_type_for,
)
from lumi.storage.paths import AVATAR_EXTENSIONS, IMAGE_EXTENSIONS, get_file_extension

logger = get_logger(__name__)

IMAGE_URL_PREFIX = "/images/"
AVATAR_URL_PREFIX = "/avatars/"


def decode_file_data(file_data: str) -> bytes:
    """Decode base64 file data, accepting an optional ``data:...;base64,`` prefix."""
    if file_data.startswith("data:") and "," in file_data:
        file_data = file_data.split(",", 1)[1]
    try:
        return base64.b64decode(file_data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Invalid file data") from None


def _megabytes(limit: int) -> int:
    return limit // (1024 * 1024)


def _discard(storage: StorageClientBase, key: str) -> None:
    """Delete a blob the database no longer points at. Never raises StorageError."""
    try:
        storage.delete_object(key)
    except StorageError as e:
        logger.warning("blob_cleanup_failed", key=key, error=e.message)


# =============================================================================
# Chat images
# =============================================================================


def upload_image(
    db: Session,
    storage: StorageClientBase,
    username: str | None,
    filename: str | None,
    file_data: str | None,
    message: str | None = None,
    reply_to_id: int | str | None = None,
    reply_to_username: str | None = None,
    reply_preview: str | None = None,
    now: datetime | None = None,
) -> tuple[MessageOut, str]:
    """Store an image and post it to the global room.

    Returns:
        (created message, image URL)
    """
    settings = get_settings()
    filename = clean(filename)
    if not clean(username) or not filename or not file_data:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Username, filename, and file data are required"
        )
    username = require_username(username)
    set_username(username)

    content = decode_file_data(file_data)
    if len(content) > settings.max_image_bytes:
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE,
            f"File size too large. Maximum size is {_megabytes(settings.max_image_bytes)}MB.",
        )
    if get_file_extension(filename) not in IMAGE_EXTENSIONS:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_FILE_TYPE,
            "Invalid file type. Allowed types: JPG, PNG, WebP, GIF",
        )

    now = now or utcnow()
    key = build_image_key(username, filename, now)
    try:
        storage.put_object(
            key,
            content,
            content_type=content_type_for(filename),
            metadata={"uploadedBy": username, "originalFilename": filename},
        )
    except StorageError as e:
        logger.error("image_upload_failed", key=key, error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to upload image") from e

    image_url = f"{IMAGE_URL_PREFIX}{key}"
    try:
        created = send_message(
            db,
            username,
            clean(message) or f"📷 {filename}",
            reply_to_id=reply_to_id,
            reply_to_username=reply_to_username,
            reply_preview=reply_preview,
            image_url=image_url,
            image_filename=filename,
            now=now,
        )
    except Exception:
        _discard(storage, key)
        raise

    logger.info("image_uploaded", key=key, size=len(content))
    return created, image_url


def get_image(storage: StorageClientBase, username: str, filename: str) -> StoredObject:
    """Fetch an image blob by its key parts."""
    key = f"{username}/{filename}"
    stored = storage.get_object(key)
    if stored is None:
        raise NotFoundError(ApiErrorCode.E_IMAGE_NOT_FOUND, "Image not found")
    return StoredObject(content=stored.content, content_type=content_type_for(filename))


# =============================================================================
# Avatars
# =============================================================================


def _find_avatar(db: Session, username: str) -> UserAvatar | None:
    return db.scalar(
        select(UserAvatar)
        .where(UserAvatar.username == username)
        .execution_options(populate_existing=True)
    )


def _avatar_key(avatar_url: str) -> str:
    return avatar_url.removeprefix(AVATAR_URL_PREFIX)


def upload_avatar(
    db: Session,
    storage: StorageClientBase,
    username: str | None,
    filename: str | None,
    file_data: str | None,
    now: datetime | None = None,
) -> str:
    """Store a new avatar for ``username``. Returns its URL."""
    settings = get_settings()
    filename = clean(filename)
    if not clean(username) or not filename or not file_data:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Username, filename, and file data are required"
        )
    username = require_username(username)
    set_username(username)

    content = decode_file_data(file_data)
    if len(content) > settings.max_avatar_bytes:
        limit = _megabytes(settings.max_avatar_bytes)
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE,
            f"Avatar file size too large. Maximum size is {limit}MB.",
        )
    if get_file_extension(filename) not in AVATAR_EXTENSIONS:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_FILE_TYPE,
            "Invalid avatar file type. Allowed types: JPG, PNG, WebP",
        )

    now = now or utcnow()
    key = build_avatar_key(username, filename, now)
    try:
        storage.put_object(
            key,
            content,
            content_type=content_type_for(filename),
            metadata={"username": username, "originalFilename": filename},
        )
    except StorageError as e:
        logger.error("avatar_upload_failed", key=key, error=e.message)
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to upload avatar") from e

    previous = _find_avatar(db, username)
    previous_key = _avatar_key(previous.avatar_url) if previous is not None else None

    avatar_url = f"{AVATAR_URL_PREFIX}{key}"
    stmt = insert_for(db, UserAvatar).values(
        username=username,
        avatar_url=avatar_url,
        original_filename=filename,
        file_size=len(content),
        uploaded_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[UserAvatar.username],
        set_={
            "avatar_url": avatar_url,
            "original_filename": filename,
            "file_size": len(content),
            "updated_at": now,
        },
    )
    try:
        with transaction(db):
            db.execute(stmt)
    except Exception:
        _discard(storage, key)
        raise

    if previous_key and previous_key != key:
        _discard(storage, previous_key)

    logger.info("avatar_uploaded", key=key, size=len(content))
    return avatar_url


def get_avatar_blob(storage: StorageClientBase, key: str) -> StoredObject:
    """Fetch an avatar blob by key."""
    stored = storage.get_object(key)
    if stored is None:
        raise NotFoundError(ApiErrorCode.E_AVATAR_NOT_FOUND, "Avatar not found")
    return StoredObject(content=stored.content, content_type=content_type_for(key))


def get_user_avatar(db: Session, username: str | None) -> UserAvatarOut | None:
    """Avatar reference for ``username``, or None when they have none."""
    username = require_username(username)
    avatar = _find_avatar(db, username)
    return UserAvatarOut.model_validate(avatar) if avatar is not None else None


def delete_user_avatar(db: Session, storage: StorageClientBase, username: str | None) -> None:
    """Remove the avatar row and its blob."""
    username = require_username(username)
    avatar = _find_avatar(db, username)
    if avatar is None:
        raise NotFoundError(ApiErrorCode.E_AVATAR_NOT_FOUND, "Avatar not found")

    key = _avatar_key(avatar.avatar_url)
    with transaction(db):
        db.execute(delete(UserAvatar).where(UserAvatar.username == username))
    _discard(storage, key)
    logger.info("avatar_deleted", key=key)

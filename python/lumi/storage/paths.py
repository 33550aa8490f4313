"""Blob key building utilities.

Key Invariant:
    - Chat images: {username}/{ms_timestamp}-{random}.{ext}
    - Avatars: {username}-{ms_timestamp}.{ext}

Rules:
    - No leading slash
    - Extension is the lowercased suffix of the uploaded filename
    - Content type is derived from the extension, never from client input
"""

import secrets
import string
from datetime import datetime

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif"})
AVATAR_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp"})

CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}

_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def get_file_extension(filename: str) -> str:
    """Lowercased text after the last dot (the whole name when there is none)."""
    return filename.rsplit(".", 1)[-1].lower()


def content_type_for(filename: str) -> str:
    """Content type for a key or filename, by extension."""
    return CONTENT_TYPES.get(get_file_extension(filename), "application/octet-stream")


def _millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def random_suffix(length: int = 11) -> str:
    """Short lowercase alphanumeric token for key uniqueness."""
    return "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(length))


def build_image_key(username: str, filename: str, now: datetime, suffix: str | None = None) -> str:
    """Build the blob key for a chat image.

    Example:
        >>> build_image_key("alice", "Cat.PNG", now)
        'alice/1760875200000-k3j9x0a1b2c.png'
    """
    suffix = suffix or random_suffix()
    return f"{username}/{_millis(now)}-{suffix}.{get_file_extension(filename)}"


def build_avatar_key(username: str, filename: str, now: datetime) -> str:
    """Build the blob key for an avatar."""
    return f"{username}-{_millis(now)}.{get_file_extension(filename)}"

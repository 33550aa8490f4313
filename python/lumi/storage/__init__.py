"""Storage module for chat images and avatars.

Provides:
- StorageClient for Supabase Storage, FakeStorageClient for local/test
- Key building utilities for consistent blob keys
"""

from lumi.storage.client import (
    FakeStorageClient,
    StorageClient,
    StorageClientBase,
    StorageError,
    StoredObject,
)
from lumi.storage.paths import build_avatar_key, build_image_key, content_type_for

__all__ = [
    "StorageClient",
    "StorageClientBase",
    "FakeStorageClient",
    "StorageError",
    "StoredObject",
    "build_image_key",
    "build_avatar_key",
    "content_type_for",
]

"""Blob storage for chat images and avatars.

Each client is bound to one bucket and addresses blobs by the keys built in
``lumi.storage.paths``. Uploads overwrite, reads return None for a missing
key, and deletes never raise: a leftover blob is harmless, while a failed
request must not be.

Deployed environments talk to Supabase Storage over the app's shared
``httpx.Client``. Local runs and tests use ``FakeStorageClient``.
"""

import base64
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from lumi.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoredObject:
    content: bytes
    content_type: str
    metadata: dict = field(default_factory=dict)


class StorageError(Exception):
    """Upload or download failed; services turn it into E_STORAGE_ERROR."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StorageClientBase(ABC):
    @abstractmethod
    def put_object(
        self, key: str, content: bytes, *, content_type: str, metadata: dict | None = None
    ) -> None:
        """Store ``content`` under ``key``, replacing what is there. Raises StorageError."""

    @abstractmethod
    def get_object(self, key: str) -> StoredObject | None:
        """The blob at ``key``, or None. Raises StorageError when the store is unreachable."""

    @abstractmethod
    def delete_object(self, key: str) -> None:
        """Best-effort removal."""


class StorageClient(StorageClientBase):
    """Supabase Storage REST API, authenticated with the service key."""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str,
        http: httpx.Client | None = None,
    ):
        self.bucket = bucket
        self._objects_url = f"{supabase_url.rstrip('/')}/storage/v1/object/{bucket}"
        self._auth = {"Authorization": f"Bearer {service_key}", "apikey": service_key}
        self._http = http or httpx.Client(timeout=30.0)

    def _url(self, key: str) -> str:
        return f"{self._objects_url}/{key}"

    def put_object(
        self, key: str, content: bytes, *, content_type: str, metadata: dict | None = None
    ) -> None:
        headers = {**self._auth, "Content-Type": content_type, "x-upsert": "true"}
        if metadata:
            headers["x-metadata"] = base64.b64encode(json.dumps(metadata).encode()).decode("ascii")

        try:
            response = self._http.post(self._url(key), headers=headers, content=content)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to upload object: {e}") from e
        if not response.is_success:
            raise StorageError(f"Failed to upload object: {response.status_code} {response.text}")

    def get_object(self, key: str) -> StoredObject | None:
        try:
            response = self._http.get(self._url(key), headers=self._auth)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to fetch object: {e}") from e

        # Supabase answers 400 "not_found" for missing keys on some versions
        if response.status_code in (400, 404):
            return None
        if response.status_code != 200:
            raise StorageError(f"Failed to fetch object: {response.status_code}")
        return StoredObject(
            content=response.content,
            content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        )

    def delete_object(self, key: str) -> None:
        try:
            response = self._http.delete(self._url(key), headers=self._auth)
        except httpx.HTTPError as e:
            logger.warning("blob_delete_error", bucket=self.bucket, key=key, error=str(e))
            return
        if response.status_code not in (200, 204, 404):
            logger.warning(
                "blob_delete_failed",
                bucket=self.bucket,
                key=key,
                status_code=response.status_code,
            )


class FakeStorageClient(StorageClientBase):
    """Dict-backed bucket with the same semantics."""

    def __init__(self):
        self._objects: dict[str, StoredObject] = {}

    def put_object(
        self, key: str, content: bytes, *, content_type: str, metadata: dict | None = None
    ) -> None:
        self._objects[key] = StoredObject(content, content_type, dict(metadata or {}))

    def get_object(self, key: str) -> StoredObject | None:
        return self._objects.get(key)

    def delete_object(self, key: str) -> None:
        self._objects.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._objects)

    def clear(self) -> None:
        self._objects.clear()

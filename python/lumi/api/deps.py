"""FastAPI dependencies for route handlers.

Shared clients live on ``app.state`` (created in the app lifespan) so tests
can swap them with fakes via ``app.dependency_overrides``.
"""

from fastapi import Request

from lumi.db.session import get_db, get_session_factory
from lumi.services.spotify import SpotifyClient
from lumi.storage import StorageClientBase

__all__ = [
    "get_avatar_storage",
    "get_db",
    "get_image_storage",
    "get_session_factory",
    "get_spotify_client",
]


def get_spotify_client(request: Request) -> SpotifyClient:
    """Shared Spotify client wrapping the app's httpx.Client."""
    return request.app.state.spotify_client


def get_image_storage(request: Request) -> StorageClientBase:
    """Blob store for chat images."""
    return request.app.state.image_storage


def get_avatar_storage(request: Request) -> StorageClientBase:
    """Blob store for avatars."""
    return request.app.state.avatar_storage

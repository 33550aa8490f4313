"""Spotify integration: account linking, token refresh, and player control."""

from lumi.services.spotify.client import (
    SpotifyClient,
    SpotifyError,
    SpotifyUnauthorizedError,
    TokenGrant,
)

__all__ = [
    "SpotifyClient",
    "SpotifyError",
    "SpotifyUnauthorizedError",
    "TokenGrant",
]

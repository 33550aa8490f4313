"""Spotify auth and playback control request schemas."""

from pydantic import BaseModel, ConfigDict, Field


class SpotifyUserRequest(BaseModel):
    """Body carrying only the acting username (refresh, logout, pause, skip)."""

    username: str | None = None
    session_id: int | None = Field(default=None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class PlayRequest(SpotifyUserRequest):
    """Body for POST /spotify-control/play."""

    track_uri: str | None = Field(default=None, alias="trackUri")
    device_id: str | None = Field(default=None, alias="deviceId")
    position: int = 0


class QueueTrackRequest(SpotifyUserRequest):
    """Body for POST /spotify-control/queue."""

    track_uri: str | None = Field(default=None, alias="trackUri")


class VolumeRequest(SpotifyUserRequest):
    """Body for PUT /spotify-control/volume."""

    volume: int | float | None = None


class SeekRequest(SpotifyUserRequest):
    """Body for PUT /spotify-control/seek."""

    position: int | None = None

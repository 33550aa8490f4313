"""Playback control on the user's Spotify player, mirrored into jam sessions.

Every write that names a ``session_id`` copies the resulting playback state
into the session through a PlaybackPatch, so listeners polling the session
see what the host's player is doing.
"""

import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from lumi.config import get_settings
from lumi.db.types import utcnow
from lumi.errors import ApiErrorCode, InvalidRequestError
from lumi.logging import get_logger, set_username
from lumi.schemas.jam import TrackData
from lumi.services import jam_sessions
from lumi.services.playback import PlaybackPatch, clamp_volume
from lumi.services.spotify.auth import call_api
from lumi.services.spotify.client import SpotifyClient
from lumi.services.validation import clean, require_username

logger = get_logger(__name__)

SUCCESS = {"success": True}


def _require(username: str | None, ok: bool, message: str) -> str:
    username = clean(username)
    if not username or not ok:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, message)
    set_username(username)
    return username


def track_id_from_uri(uri: str) -> str:
    """``spotify:track:abc`` -> ``abc``."""
    return uri.rsplit(":", 1)[-1]


def track_from_item(item: dict[str, Any]) -> TrackData:
    """TrackData from a Web API track object."""
    artists = ", ".join(a.get("name", "") for a in item.get("artists") or [])
    return TrackData(uri=item.get("uri", ""), name=item.get("name", ""), artist=artists)


def _fetch_track(db: Session, client: SpotifyClient, username: str, uri: str) -> TrackData:
    item = call_api(db, client, username, "GET", f"/tracks/{track_id_from_uri(uri)}") or {}
    return track_from_item({"uri": uri, **item})


# =============================================================================
# Reads
# =============================================================================


def search(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    query: str | None,
    search_type: str = "track",
    limit: int = 20,
) -> Any:
    """Catalog search, returned as Spotify sends it."""
    username = _require(username, bool(clean(query)), "Username and query are required")
    params = {"q": clean(query), "type": search_type or "track", "limit": limit}
    return call_api(db, client, username, "GET", "/search", params=params)


def devices(db: Session, client: SpotifyClient, username: str | None) -> Any:
    """Devices available to the user's player."""
    username = require_username(username)
    return call_api(db, client, username, "GET", "/me/player/devices") or {"devices": []}


def current(db: Session, client: SpotifyClient, username: str | None) -> Any:
    """Currently playing item; ``{"is_playing": false}`` when nothing is."""
    username = require_username(username)
    return call_api(db, client, username, "GET", "/me/player/currently-playing") or {
        "is_playing": False
    }


# =============================================================================
# Writes
# =============================================================================


def play(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    track_uri: str | None = None,
    device_id: str | None = None,
    position: int = 0,
    session_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Start or resume playback, optionally of a specific track."""
    username = require_username(username)
    set_username(username)

    body: dict[str, Any] = {"position_ms": position}
    if track_uri:
        body["uris"] = [track_uri]
    params = {"device_id": device_id} if device_id else None
    call_api(db, client, username, "PUT", "/me/player/play", params=params, json=body)

    track = _fetch_track(db, client, username, track_uri) if track_uri else None
    jam_sessions.mirror_playback(
        db,
        session_id,
        PlaybackPatch(track=track, position=position, is_playing=True),
        now,
    )
    logger.info("spotify_play", session_id=session_id, has_track=track is not None)
    return SUCCESS


def pause(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    session_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    username = require_username(username)
    call_api(db, client, username, "PUT", "/me/player/pause")
    jam_sessions.mirror_playback(db, session_id, PlaybackPatch(is_playing=False), now)
    return SUCCESS


def skip(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    session_id: int | None = None,
    now: datetime | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Skip to the next track and mirror whatever the player settles on."""
    username = require_username(username)
    call_api(db, client, username, "POST", "/me/player/next")

    # The player reports the new item only after a short delay
    sleep(get_settings().spotify_skip_settle_s)

    playing = call_api(db, client, username, "GET", "/me/player/currently-playing") or {}
    item = playing.get("item")
    if item:
        patch = PlaybackPatch(
            track=track_from_item(item),
            position=playing.get("progress_ms") or 0,
            is_playing=bool(playing.get("is_playing")),
        )
        jam_sessions.mirror_playback(db, session_id, patch, now)
    return SUCCESS


def queue(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    track_uri: str | None,
    session_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Queue a track on the player and in the session queue."""
    username = _require(username, bool(clean(track_uri)), "Username and track URI are required")
    track_uri = clean(track_uri)

    call_api(db, client, username, "POST", "/me/player/queue", params={"uri": track_uri})
    track = _fetch_track(db, client, username, track_uri)
    if session_id is not None:
        jam_sessions.append_to_queue(db, session_id, track, username, now or utcnow())
    return {"success": True, "track": track.model_dump()}


def set_volume(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    volume: int | float | None,
    session_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    username = _require(username, volume is not None, "Username and volume are required")
    level = clamp_volume(volume)
    call_api(
        db, client, username, "PUT", "/me/player/volume", params={"volume_percent": level}
    )
    jam_sessions.mirror_playback(db, session_id, PlaybackPatch(volume=level), now)
    return SUCCESS


def seek(
    db: Session,
    client: SpotifyClient,
    username: str | None,
    position: int | None,
    session_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    username = _require(username, position is not None, "Username and position are required")
    position = max(0, position)
    call_api(db, client, username, "PUT", "/me/player/seek", params={"position_ms": position})
    jam_sessions.mirror_playback(db, session_id, PlaybackPatch(position=position), now)
    return SUCCESS

"""Typed partial updates for jam session playback state.

Every writer of playback state (host updates, Spotify control mirroring)
describes its change as a PlaybackPatch. ``build_update`` turns the set
fields into one parameterized UPDATE that also bumps ``last_updated``.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Update, update

from lumi.db.models import JamSession
from lumi.schemas.jam import TrackData


def clamp_volume(volume: int | float) -> int:
    """Round and clamp a volume to 0..100."""
    return max(0, min(100, round(volume)))


@dataclass(frozen=True)
class PlaybackPatch:
    """Fields to change on a session; None means "leave as is"."""

    track: TrackData | None = None
    position: int | None = None
    is_playing: bool | None = None
    volume: int | float | None = None

    def is_empty(self) -> bool:
        return (
            self.track is None
            and self.position is None
            and self.is_playing is None
            and self.volume is None
        )

    def values(self) -> dict:
        """Column values for the set fields."""
        values: dict = {}
        if self.track is not None:
            values["current_track_uri"] = self.track.uri
            values["current_track_name"] = self.track.name
            values["current_track_artist"] = self.track.artist
        if self.position is not None:
            values["current_position"] = self.position
        if self.is_playing is not None:
            values["is_playing"] = self.is_playing
        if self.volume is not None:
            values["volume"] = clamp_volume(self.volume)
        return values


def build_update(session_id: int, patch: PlaybackPatch, now: datetime) -> Update | None:
    """Build the UPDATE for ``patch``, or None when nothing would change."""
    if patch.is_empty():
        return None
    return (
        update(JamSession)
        .where(JamSession.id == session_id)
        .values(**patch.values(), last_updated=now)
    )

"""Spotify player control routes.

Writes accept an optional ``sessionId``; when present the resulting playback
state is mirrored into that jam session.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lumi.api.deps import get_db, get_spotify_client
from lumi.schemas.spotify import (
    PlayRequest,
    QueueTrackRequest,
    SeekRequest,
    SpotifyUserRequest,
    VolumeRequest,
)
from lumi.services.spotify import SpotifyClient
from lumi.services.spotify import control

router = APIRouter(prefix="/spotify-control", tags=["spotify"])

SpotifyDep = Annotated[SpotifyClient, Depends(get_spotify_client)]
DbDep = Annotated[Session, Depends(get_db)]


@router.get("/search")
def search(
    db: DbDep,
    spotify: SpotifyDep,
    username: str | None = None,
    query: str | None = None,
    type: str = "track",
    limit: int = 20,
) -> Any:
    return control.search(db, spotify, username, query, search_type=type, limit=limit)


@router.get("/devices")
def devices(db: DbDep, spotify: SpotifyDep, username: str | None = None) -> Any:
    return control.devices(db, spotify, username)


@router.get("/current")
def current(db: DbDep, spotify: SpotifyDep, username: str | None = None) -> Any:
    return control.current(db, spotify, username)


@router.post("/play")
def play(body: PlayRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.play(
        db,
        spotify,
        body.username,
        track_uri=body.track_uri,
        device_id=body.device_id,
        position=body.position,
        session_id=body.session_id,
    )


@router.post("/pause")
def pause(body: SpotifyUserRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.pause(db, spotify, body.username, session_id=body.session_id)


@router.post("/skip")
def skip(body: SpotifyUserRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.skip(db, spotify, body.username, session_id=body.session_id)


@router.post("/queue")
def queue(body: QueueTrackRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.queue(
        db, spotify, body.username, body.track_uri, session_id=body.session_id
    )


@router.put("/volume")
def volume(body: VolumeRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.set_volume(
        db, spotify, body.username, body.volume, session_id=body.session_id
    )


@router.put("/seek")
def seek(body: SeekRequest, db: DbDep, spotify: SpotifyDep) -> dict:
    return control.seek(db, spotify, body.username, body.position, session_id=body.session_id)

"""Jam session routes.

PUT multiplexes three actions on one path (join, leave, updatePlayback)
because that is the contract the browser client speaks.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.schemas.jam import CreateSessionRequest, EndSessionRequest, UpdateSessionRequest
from lumi.services import jam_sessions as jam_service
from lumi.services.validation import parse_id

router = APIRouter(tags=["jam-sessions"])


@router.get("/jam-sessions")
def get_sessions(
    db: Annotated[Session, Depends(get_db)],
    session_id: Annotated[str | None, Query(alias="sessionId")] = None,
) -> dict:
    """One session with participants and queue, or every active session."""
    parsed = parse_id(session_id, "sessionId")
    if parsed is not None:
        detail = jam_service.get_session_detail(db, parsed)
        return {"session": detail.model_dump(mode="json")}

    sessions = jam_service.list_active_sessions(db)
    return {"sessions": [s.model_dump(mode="json") for s in sessions]}


@router.post("/jam-sessions", status_code=201)
def create_session(
    body: CreateSessionRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Host a new session. Requires a connected Spotify account."""
    session = jam_service.create_session(
        db, username=body.username, session_name=body.session_name
    )
    return {"session": session.model_dump(mode="json")}


@router.put("/jam-sessions")
def update_session(
    body: UpdateSessionRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Join, leave, or update playback.

    Errors:
        E_INVALID_ACTION (400): Unknown action.
        E_SESSION_NOT_FOUND (404): Joining a missing or ended session.
        E_NOT_A_PARTICIPANT (403): Updating playback without being in the session.
    """
    session = jam_service.update_session(
        db,
        session_id=body.session_id,
        action=body.action,
        username=body.username,
        track=body.track_data,
        position=body.position,
        is_playing=body.is_playing,
        volume=body.volume,
    )
    if session is None:
        return {"success": True}
    return {"session": session.model_dump(mode="json")}


@router.delete("/jam-sessions")
def end_session(
    body: EndSessionRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """End a session (host only)."""
    jam_service.end_session(db, session_id=body.session_id, username=body.username)
    return {"success": True}

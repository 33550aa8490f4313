"""Jam session lifecycle: listing, create, join/leave, playback, end, queue.

A session is active while ``ended_at`` is null. Ending a session (host
leaves, or host deletes it) stamps ``ended_at`` and purges its participants;
the row itself is kept. Hosting or joining requires a Spotify connection whose
access token has not expired.
"""

from collections import defaultdict
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from lumi.db.models import JamSession, SessionParticipant, SessionQueueItem, SpotifyToken
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiErrorCode, ForbiddenError, InvalidRequestError, NotFoundError
from lumi.logging import get_logger, set_username
from lumi.schemas.jam import (
    JamSessionDetailOut,
    JamSessionOut,
    JamSessionSummaryOut,
    QueueItemOut,
    SessionParticipantOut,
    TrackData,
)
from lumi.services.playback import PlaybackPatch, build_update
from lumi.services.validation import clean, require_username

logger = get_logger(__name__)

ACTION_JOIN = "join"
ACTION_LEAVE = "leave"
ACTION_UPDATE_PLAYBACK = "updatePlayback"

SPOTIFY_NOT_CONNECTED = "Spotify account not connected or expired"


# =============================================================================
# Lookups
# =============================================================================


def get_active_session(db: Session, session_id: int) -> JamSession | None:
    """Return the session if it exists and has not ended."""
    return db.scalar(
        select(JamSession).where(JamSession.id == session_id, JamSession.ended_at.is_(None))
    )


def is_session_participant(db: Session, session_id: int, username: str) -> bool:
    found = db.scalar(
        select(SessionParticipant.username).where(
            SessionParticipant.session_id == session_id,
            SessionParticipant.username == username,
        )
    )
    return found is not None


def count_participants(db: Session, session_id: int) -> int:
    """Number of listeners currently in the session."""
    return db.scalar(
        select(func.count())
        .select_from(SessionParticipant)
        .where(SessionParticipant.session_id == session_id)
    )


def require_spotify_connection(db: Session, username: str, now: datetime) -> SpotifyToken:
    """Return the user's unexpired Spotify token or raise 400."""
    token = db.scalar(
        select(SpotifyToken).where(
            SpotifyToken.username == username, SpotifyToken.expires_at > now
        )
    )
    if token is None:
        raise InvalidRequestError(ApiErrorCode.E_SPOTIFY_NOT_CONNECTED, SPOTIFY_NOT_CONNECTED)
    return token


# =============================================================================
# Reads
# =============================================================================


def list_active_sessions(db: Session) -> list[JamSessionSummaryOut]:
    """Active sessions, newest first, with their listeners."""
    sessions = list(
        db.scalars(
            select(JamSession)
            .where(JamSession.ended_at.is_(None))
            .order_by(JamSession.created_at.desc(), JamSession.id.desc())
        )
    )
    if not sessions:
        return []

    listeners: dict[int, list[str]] = defaultdict(list)
    rows = db.execute(
        select(SessionParticipant.session_id, SessionParticipant.username)
        .where(SessionParticipant.session_id.in_([s.id for s in sessions]))
        .order_by(SessionParticipant.joined_at.asc(), SessionParticipant.username.asc())
    )
    for session_id, username in rows:
        listeners[session_id].append(username)

    return [
        JamSessionSummaryOut(
            **JamSessionOut.model_validate(session).model_dump(),
            participant_count=len(listeners[session.id]),
            participant_usernames=listeners[session.id],
        )
        for session in sessions
    ]


def list_queue(db: Session, session_id: int) -> list[QueueItemOut]:
    """Queued tracks in play order."""
    rows = db.scalars(
        select(SessionQueueItem)
        .where(SessionQueueItem.session_id == session_id)
        .order_by(SessionQueueItem.position.asc(), SessionQueueItem.id.asc())
    )
    return [QueueItemOut.model_validate(row) for row in rows]


def get_session_detail(db: Session, session_id: int) -> JamSessionDetailOut:
    """Single active session with participants and queue.

    Raises:
        NotFoundError: Session missing or ended.
    """
    session = get_active_session(db, session_id)
    if session is None:
        raise NotFoundError(ApiErrorCode.E_SESSION_NOT_FOUND, "Session not found")

    participants = db.scalars(
        select(SessionParticipant)
        .where(SessionParticipant.session_id == session_id)
        .order_by(SessionParticipant.joined_at.asc(), SessionParticipant.username.asc())
    )
    return JamSessionDetailOut(
        **JamSessionOut.model_validate(session).model_dump(),
        participants=[SessionParticipantOut.model_validate(p) for p in participants],
        queue=list_queue(db, session_id),
    )


# =============================================================================
# Mutations
# =============================================================================


def _upsert_participant(
    db: Session, session_id: int, username: str, spotify_user_id: str | None, now: datetime
) -> None:
    stmt = insert_for(db, SessionParticipant).values(
        session_id=session_id,
        username=username,
        spotify_user_id=spotify_user_id,
        joined_at=now,
        last_seen=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[SessionParticipant.session_id, SessionParticipant.username],
        set_={"last_seen": now, "spotify_user_id": spotify_user_id},
    )
    db.execute(stmt)


def _end(db: Session, session_id: int, now: datetime) -> None:
    db.execute(
        update(JamSession)
        .where(JamSession.id == session_id)
        .values(ended_at=now, is_playing=False, last_updated=now)
    )
    db.execute(delete(SessionParticipant).where(SessionParticipant.session_id == session_id))


def create_session(
    db: Session,
    username: str | None,
    session_name: str | None,
    now: datetime | None = None,
) -> JamSessionOut:
    """Create a session hosted by ``username`` and add the host as a listener."""
    username = clean(username)
    session_name = clean(session_name)
    if not username or not session_name:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Username and session name are required"
        )
    set_username(username)
    now = now or utcnow()

    token = require_spotify_connection(db, username, now)

    with transaction(db):
        session = JamSession(
            host_username=username,
            session_name=session_name,
            created_at=now,
            last_updated=now,
        )
        db.add(session)
        db.flush()
        _upsert_participant(db, session.id, username, token.spotify_user_id, now)

    logger.info("session_created", session_id=session.id)
    return JamSessionOut.model_validate(session)


def join_session(db: Session, session_id: int, username: str, now: datetime) -> None:
    if get_active_session(db, session_id) is None:
        raise NotFoundError(ApiErrorCode.E_SESSION_NOT_FOUND, "Session not found or ended")
    token = require_spotify_connection(db, username, now)

    with transaction(db):
        _upsert_participant(db, session_id, username, token.spotify_user_id, now)
    logger.info("session_joined", session_id=session_id)


def leave_session(db: Session, session_id: int, username: str, now: datetime) -> None:
    """Remove the listener; the host leaving ends the session."""
    with transaction(db):
        db.execute(
            delete(SessionParticipant).where(
                SessionParticipant.session_id == session_id,
                SessionParticipant.username == username,
            )
        )
        host = db.scalar(select(JamSession.host_username).where(JamSession.id == session_id))
        ended = host == username
        if ended:
            _end(db, session_id, now)

    logger.info("session_left", session_id=session_id, ended=ended)


def update_playback(
    db: Session,
    session_id: int,
    username: str,
    patch: PlaybackPatch,
    now: datetime,
) -> JamSessionOut:
    """Apply a playback patch on behalf of a listener.

    Raises:
        ForbiddenError: ``username`` is not in the session.
        InvalidRequestError: The patch sets nothing.
    """
    if not is_session_participant(db, session_id, username):
        raise ForbiddenError(
            ApiErrorCode.E_NOT_A_PARTICIPANT, "Not authorized to update this session"
        )

    stmt = build_update(session_id, patch, now)
    if stmt is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "No valid updates provided")

    with transaction(db):
        db.execute(stmt)

    session = db.get(JamSession, session_id, populate_existing=True)
    return JamSessionOut.model_validate(session)


def mirror_playback(
    db: Session, session_id: int | None, patch: PlaybackPatch, now: datetime | None = None
) -> None:
    """Copy provider playback state into a session, if one is named."""
    if session_id is None:
        return
    stmt = build_update(session_id, patch, now or utcnow())
    if stmt is None:
        return
    with transaction(db):
        db.execute(stmt)


def update_session(
    db: Session,
    session_id: int | None,
    action: str | None,
    username: str | None,
    track: TrackData | None = None,
    position: int | None = None,
    is_playing: bool | None = None,
    volume: int | None = None,
    now: datetime | None = None,
) -> JamSessionOut | None:
    """Dispatch a PUT /jam-sessions action.

    Returns:
        The updated session for ``updatePlayback``, None for join/leave.
    """
    if session_id is None or not clean(action):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Session ID and action are required"
        )
    username = require_username(username)
    set_username(username)
    now = now or utcnow()

    if action == ACTION_JOIN:
        join_session(db, session_id, username, now)
        return None
    if action == ACTION_LEAVE:
        leave_session(db, session_id, username, now)
        return None
    if action == ACTION_UPDATE_PLAYBACK:
        patch = PlaybackPatch(
            track=track, position=position, is_playing=is_playing, volume=volume
        )
        return update_playback(db, session_id, username, patch, now)

    raise InvalidRequestError(ApiErrorCode.E_INVALID_ACTION, "Invalid action")


def end_session(
    db: Session, session_id: int | None, username: str | None, now: datetime | None = None
) -> None:
    """Host-only: end the session and purge its listeners."""
    username = clean(username)
    if session_id is None or not username:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Session ID and username are required"
        )
    set_username(username)

    host = db.scalar(select(JamSession.host_username).where(JamSession.id == session_id))
    if host is None:
        raise NotFoundError(ApiErrorCode.E_SESSION_NOT_FOUND, "Session not found")
    if host != username:
        raise ForbiddenError(ApiErrorCode.E_NOT_SESSION_HOST, "Only the host can end the session")

    with transaction(db):
        _end(db, session_id, now or utcnow())
    logger.info("session_ended", session_id=session_id)


def append_to_queue(
    db: Session,
    session_id: int,
    track: TrackData,
    added_by: str,
    now: datetime | None = None,
) -> QueueItemOut:
    """Append a track at ``max(position) + 1``."""
    now = now or utcnow()
    with transaction(db):
        last = db.scalar(
            select(func.coalesce(func.max(SessionQueueItem.position), 0)).where(
                SessionQueueItem.session_id == session_id
            )
        )
        item = SessionQueueItem(
            session_id=session_id,
            track_uri=track.uri,
            track_name=track.name,
            track_artist=track.artist,
            added_by=added_by,
            position=last + 1,
            created_at=now,
        )
        db.add(item)
        db.flush()

    logger.info("track_queued", session_id=session_id, position=item.position)
    return QueueItemOut.model_validate(item)

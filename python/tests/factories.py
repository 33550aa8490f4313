"""Test data factories.

Centralizes helper functions that create database rows for tests.
Each factory knows the full schema requirements for its table,
so individual tests don't need to track NOT NULL constraints.

Factories commit, so the rows are visible to the app's own sessions.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from lumi.db.models import (
    JamSession,
    Message,
    SessionParticipant,
    SessionVote,
    SpotifyToken,
    UserPresence,
)
from lumi.db.types import utcnow

# =============================================================================
# Global room
# =============================================================================


def create_message(
    session: Session,
    username: str = "alice",
    message: str = "hello",
    created_at: datetime | None = None,
) -> int:
    """Insert a global room message and return its id."""
    row = Message(username=username, message=message, created_at=created_at or utcnow())
    session.add(row)
    session.commit()
    return row.id


def create_messages(session: Session, count: int, username: str = "alice") -> list[int]:
    """Insert ``count`` messages one second apart; returns ids oldest first."""
    start = utcnow() - timedelta(seconds=count)
    return [
        create_message(
            session, username, f"message {i}", created_at=start + timedelta(seconds=i)
        )
        for i in range(count)
    ]


def create_presence(
    session: Session,
    username: str,
    last_seen: datetime | None = None,
    is_typing: bool = False,
) -> None:
    """Insert a presence row with an explicit heartbeat time."""
    last_seen = last_seen or utcnow()
    session.add(
        UserPresence(
            username=username,
            last_seen=last_seen,
            is_typing=is_typing,
            typing_started_at=last_seen if is_typing else None,
        )
    )
    session.commit()


# =============================================================================
# Spotify / jam sessions
# =============================================================================


def connect_spotify(
    session: Session,
    username: str,
    expires_in: int = 3600,
    access_token: str | None = None,
    refresh_token: str | None = None,
    spotify_user_id: str | None = None,
    now: datetime | None = None,
) -> None:
    """Store Spotify tokens for ``username``; negative ``expires_in`` means expired."""
    now = now or utcnow()
    session.add(
        SpotifyToken(
            username=username,
            access_token=access_token or f"access-{username}",
            refresh_token=refresh_token or f"refresh-{username}",
            expires_at=now + timedelta(seconds=expires_in),
            spotify_user_id=spotify_user_id or f"spotify-{username}",
            created_at=now,
            updated_at=now,
        )
    )
    session.commit()


def create_jam_session(
    session: Session,
    host: str = "host",
    name: str = "Friday Jam",
    listeners: tuple[str, ...] = (),
    created_at: datetime | None = None,
) -> int:
    """Insert an active session with the host and ``listeners`` as participants.

    Bypasses the Spotify precondition; use the service for that path.
    """
    now = created_at or utcnow()
    jam = JamSession(host_username=host, session_name=name, created_at=now, last_updated=now)
    session.add(jam)
    session.flush()
    for username in (host, *listeners):
        session.add(
            SessionParticipant(
                session_id=jam.id, username=username, joined_at=now, last_seen=now
            )
        )
    session.commit()
    return jam.id


def create_vote(
    session: Session,
    session_id: int,
    username: str,
    vote_type: str = "skip",
    vote_target: str = "",
    vote_value: int = 1,
    created_at: datetime | None = None,
    expires_at: datetime | None = None,
) -> None:
    """Insert a vote row directly, e.g. one that has already expired."""
    session.add(
        SessionVote(
            session_id=session_id,
            vote_type=vote_type,
            vote_target=vote_target,
            username=username,
            vote_value=vote_value,
            created_at=created_at or utcnow(),
            expires_at=expires_at,
        )
    )
    session.commit()

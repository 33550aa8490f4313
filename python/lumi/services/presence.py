"""Presence heartbeats, typing flags, and the participant directory.

Presence is advisory: a user is "online" while their last heartbeat is within
the online window (30 s), "recently active" within the recent window (5 min),
and otherwise absent whether or not the row still exists. Departure is never
pushed; a missed heartbeat simply ages the user out.
"""

from datetime import datetime, timedelta

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.orm import Session

from lumi.config import get_settings
from lumi.db.models import ChatParticipant, UserPresence
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiErrorCode, InvalidRequestError
from lumi.logging import get_logger
from lumi.schemas.presence import ParticipantListOut, ParticipantOut, PresenceOut

logger = get_logger(__name__)

DEFAULT_PARTICIPANT_LIMIT = 20
MAX_PARTICIPANT_LIMIT = 100


def _windows(now: datetime) -> tuple[datetime, datetime]:
    settings = get_settings()
    online_cutoff = now - timedelta(seconds=settings.presence_online_window_s)
    recent_cutoff = now - timedelta(seconds=settings.presence_recent_window_s)
    return online_cutoff, recent_cutoff


def classify(last_seen: datetime | None, now: datetime | None = None) -> str:
    """Return online / recently_active / offline for a heartbeat time."""
    if last_seen is None:
        return "offline"
    online_cutoff, recent_cutoff = _windows(now or utcnow())
    if last_seen > online_cutoff:
        return "online"
    if last_seen > recent_cutoff:
        return "recently_active"
    return "offline"


def heartbeat(
    db: Session,
    username: str,
    is_typing: bool | None = None,
    now: datetime | None = None,
) -> None:
    """Upsert ``last_seen = now``; also set the typing flag when given."""
    now = now or utcnow()
    values: dict = {"username": username, "last_seen": now}
    updates: dict = {"last_seen": now}

    if is_typing is not None:
        typing_started_at = now if is_typing else None
        values.update(is_typing=is_typing, typing_started_at=typing_started_at)
        updates.update(is_typing=is_typing, typing_started_at=typing_started_at)

    stmt = insert_for(db, UserPresence).values(**values)
    stmt = stmt.on_conflict_do_update(index_elements=[UserPresence.username], set_=updates)

    with transaction(db):
        db.execute(stmt)


def leave(db: Session, username: str) -> None:
    """Remove the presence row outright (explicit leave / tab close)."""
    with transaction(db):
        db.execute(delete(UserPresence).where(UserPresence.username == username))
    logger.info("presence_left", username=username)


def list_online(db: Session, now: datetime | None = None) -> list[PresenceOut]:
    """Users whose last heartbeat is inside the online window, by username."""
    online_cutoff, _ = _windows(now or utcnow())
    rows = db.scalars(
        select(UserPresence)
        .where(UserPresence.last_seen > online_cutoff)
        .order_by(UserPresence.username.asc())
    )
    return [PresenceOut.model_validate(row) for row in rows]


def parse_limit(value: str | int | None) -> int:
    """Parse the directory page size, defaulting to 20 and capping at 100."""
    if value is None or value == "":
        return DEFAULT_PARTICIPANT_LIMIT
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "limit must be a positive integer"
        ) from None
    if limit < 1:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "limit must be a positive integer"
        )
    return min(limit, MAX_PARTICIPANT_LIMIT)


def list_participants(
    db: Session,
    query: str = "",
    limit: int = DEFAULT_PARTICIPANT_LIMIT,
    now: datetime | None = None,
) -> ParticipantListOut:
    """Directory search: online first, then recently active, then offline.

    Within a status bucket, most recent poster first, then most prolific.
    """
    now = now or utcnow()
    online_cutoff, recent_cutoff = _windows(now)
    query = query.strip()

    status_rank = case(
        (UserPresence.last_seen > online_cutoff, 1),
        (UserPresence.last_seen > recent_cutoff, 2),
        else_=3,
    )
    stmt = (
        select(ChatParticipant, UserPresence.last_seen)
        .outerjoin(UserPresence, UserPresence.username == ChatParticipant.username)
        .order_by(
            status_rank,
            ChatParticipant.last_message_at.desc().nulls_last(),
            ChatParticipant.message_count.desc(),
        )
        .limit(limit)
    )
    if query:
        stmt = stmt.where(func.lower(ChatParticipant.username).like(f"%{query.lower()}%"))

    participants = [
        ParticipantOut(
            username=participant.username,
            first_seen=participant.first_seen,
            last_message_at=participant.last_message_at,
            message_count=participant.message_count,
            last_seen=last_seen,
            status=classify(last_seen, now),
        )
        for participant, last_seen in db.execute(stmt)
    ]
    return ParticipantListOut(
        participants=participants, total=len(participants), query=query, limit=limit
    )


def sweep_stale_presence(db: Session, now: datetime | None = None) -> tuple[int, int]:
    """Drop rows past the recent window and clear typing flags left on.

    Returns:
        (rows deleted, typing flags cleared)
    """
    settings = get_settings()
    now = now or utcnow()
    _, recent_cutoff = _windows(now)
    typing_cutoff = now - timedelta(seconds=settings.typing_stale_s)

    with transaction(db):
        deleted = db.execute(
            delete(UserPresence).where(UserPresence.last_seen < recent_cutoff)
        ).rowcount
        cleared = db.execute(
            update(UserPresence)
            .where(
                UserPresence.is_typing.is_(True),
                UserPresence.typing_started_at < typing_cutoff,
            )
            .values(is_typing=False, typing_started_at=None)
        ).rowcount

    return deleted, cleared

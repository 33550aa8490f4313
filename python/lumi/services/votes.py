"""Session votes: upsert, quorum checks, tallies, and expiry cleanup.

One vote per (session, type, target, username); re-voting overwrites the
value and restarts the vote's clock. Skip and vibe votes expire after
``expires_in`` seconds and are ignored once expired, even before the cleanup
task deletes them.

Quorum rules, with P = current listener count:
- skip passes once ceil(P / 2) live positive votes exist on the target; the
  target's votes are then purged.
- vibe resolves once live votes total P or the first vibe vote's window has
  closed; the most voted vibe wins and every vibe vote is purged.
"""

import math
from collections import OrderedDict
from datetime import datetime, timedelta

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from lumi.config import get_settings
from lumi.db.models import TIME_BOUNDED_VOTE_TYPES, SessionVote, VoteType
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiErrorCode, ForbiddenError, InvalidRequestError
from lumi.logging import get_logger, set_username
from lumi.schemas.jam import VibeCountOut, VoteResultOut, VoteSummaryOut, VoteTallyOut
from lumi.services.jam_sessions import count_participants, is_session_participant
from lumi.services.validation import clean

logger = get_logger(__name__)

ACTION_SKIP_TRACK = "skip_track"
ACTION_CHANGE_VIBE = "change_vibe"

VOTE_FIELDS_REQUIRED = "Session ID, vote type, and username are required"


def majority_threshold(participant_count: int) -> int:
    """Votes needed for a skip: ceil(P / 2)."""
    return math.ceil(participant_count / 2)


def _live(now: datetime):
    return or_(SessionVote.expires_at.is_(None), SessionVote.expires_at > now)


def _validate_key(
    session_id: int | None, vote_type: str | None, username: str | None
) -> tuple[str, str]:
    vote_type = clean(vote_type)
    username = clean(username)
    if session_id is None or not vote_type or not username:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, VOTE_FIELDS_REQUIRED)
    if vote_type not in {v.value for v in VoteType}:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Invalid vote type")
    return vote_type, username


def cast_vote(
    db: Session,
    session_id: int | None,
    vote_type: str | None,
    username: str | None,
    vote_target: str | None = "",
    vote_value: int = 1,
    expires_in: int | None = None,
    now: datetime | None = None,
) -> VoteResultOut:
    """Record a vote and evaluate the quorum for its kind.

    Raises:
        InvalidRequestError: Missing fields or unknown vote type.
        ForbiddenError: Voter is not in the session.
    """
    vote_type, username = _validate_key(session_id, vote_type, username)
    vote_target = vote_target or ""
    set_username(username)
    now = now or utcnow()

    if not is_session_participant(db, session_id, username):
        raise ForbiddenError(
            ApiErrorCode.E_NOT_A_PARTICIPANT, "You must be in the session to vote"
        )

    expires_at = None
    if vote_type in TIME_BOUNDED_VOTE_TYPES:
        seconds = expires_in if expires_in is not None else get_settings().vote_default_expiry_s
        expires_at = now + timedelta(seconds=seconds)

    stmt = insert_for(db, SessionVote).values(
        session_id=session_id,
        vote_type=vote_type,
        vote_target=vote_target,
        username=username,
        vote_value=vote_value,
        created_at=now,
        expires_at=expires_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[
            SessionVote.session_id,
            SessionVote.vote_type,
            SessionVote.vote_target,
            SessionVote.username,
        ],
        set_={"vote_value": vote_value, "created_at": now, "expires_at": expires_at},
    )
    with transaction(db):
        db.execute(stmt)

    logger.info("vote_cast", session_id=session_id, vote_type=vote_type)

    if vote_type == VoteType.skip.value:
        return _check_skip(db, session_id, vote_target, now)
    if vote_type == VoteType.vibe.value:
        return _check_vibe(db, session_id, now)
    return VoteResultOut()


def _check_skip(db: Session, session_id: int, vote_target: str, now: datetime) -> VoteResultOut:
    required = majority_threshold(count_participants(db, session_id))
    key = (
        SessionVote.session_id == session_id,
        SessionVote.vote_type == VoteType.skip.value,
        SessionVote.vote_target == vote_target,
    )
    vote_count = db.scalar(
        select(func.count()).select_from(SessionVote).where(
            *key, SessionVote.vote_value > 0, _live(now)
        )
    )
    if required == 0 or vote_count < required:
        return VoteResultOut()

    with transaction(db):
        db.execute(delete(SessionVote).where(*key))

    logger.info("vote_passed", session_id=session_id, action=ACTION_SKIP_TRACK, votes=vote_count)
    return VoteResultOut(
        vote_passed=True, action=ACTION_SKIP_TRACK, vote_count=vote_count, required=required
    )


def _check_vibe(db: Session, session_id: int, now: datetime) -> VoteResultOut:
    participants = count_participants(db, session_id)
    is_vibe = (SessionVote.session_id == session_id, SessionVote.vote_type == VoteType.vibe.value)

    tallies = db.execute(
        select(
            SessionVote.vote_target,
            func.count().label("count"),
            func.min(SessionVote.created_at).label("first_vote"),
        )
        .where(*is_vibe, _live(now))
        .group_by(SessionVote.vote_target)
    ).all()
    if not tallies:
        return VoteResultOut()

    # The window is set by the first vibe vote, expired or not
    first_expiry = db.scalar(
        select(SessionVote.expires_at)
        .where(*is_vibe)
        .order_by(SessionVote.created_at.asc(), SessionVote.id.asc())
        .limit(1)
    )
    total = sum(row.count for row in tallies)
    window_closed = first_expiry is not None and first_expiry < now
    if total < participants and not window_closed:
        return VoteResultOut()

    ranked = sorted(tallies, key=lambda row: (-row.count, row.first_vote, row.vote_target))
    winner = ranked[0].vote_target

    with transaction(db):
        db.execute(delete(SessionVote).where(*is_vibe))

    logger.info("vote_passed", session_id=session_id, action=ACTION_CHANGE_VIBE, winner=winner)
    return VoteResultOut(
        vote_passed=True,
        action=ACTION_CHANGE_VIBE,
        winner=winner,
        votes=[VibeCountOut(vibe=row.vote_target, count=row.count) for row in ranked],
    )


def remove_vote(
    db: Session,
    session_id: int | None,
    vote_type: str | None,
    username: str | None,
    vote_target: str | None = "",
) -> None:
    """Withdraw a vote. Removing a vote that does not exist is not an error."""
    vote_type, username = _validate_key(session_id, vote_type, username)
    with transaction(db):
        db.execute(
            delete(SessionVote).where(
                SessionVote.session_id == session_id,
                SessionVote.vote_type == vote_type,
                SessionVote.vote_target == (vote_target or ""),
                SessionVote.username == username,
            )
        )


def get_votes(
    db: Session,
    session_id: int | None,
    vote_type: str | None = None,
    now: datetime | None = None,
) -> VoteSummaryOut:
    """Live votes grouped by (type, target), biggest total first within a type."""
    if session_id is None:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Session ID is required")
    now = now or utcnow()

    query = select(SessionVote).where(SessionVote.session_id == session_id, _live(now))
    if vote_type:
        query = query.where(SessionVote.vote_type == vote_type)

    groups: OrderedDict[tuple[str, str], list[SessionVote]] = OrderedDict()
    for vote in db.scalars(query.order_by(SessionVote.created_at.asc(), SessionVote.id.asc())):
        groups.setdefault((vote.vote_type, vote.vote_target), []).append(vote)

    tallies = [
        VoteTallyOut(
            vote_type=kind,
            vote_target=target,
            vote_count=len(votes),
            total_value=sum(v.vote_value for v in votes),
            voters=[v.username for v in votes],
            started_at=votes[0].created_at,
            expires_at=max(
                (v.expires_at for v in votes if v.expires_at is not None), default=None
            ),
        )
        for (kind, target), votes in groups.items()
    ]
    tallies.sort(key=lambda t: (t.vote_type, -t.total_value))

    participants = count_participants(db, session_id)
    return VoteSummaryOut(
        votes=tallies,
        participant_count=participants,
        majority_threshold=majority_threshold(participants),
    )


def cleanup_expired_votes(db: Session, now: datetime | None = None) -> int:
    """Delete votes whose window has closed. Returns the number removed."""
    now = now or utcnow()
    with transaction(db):
        result = db.execute(delete(SessionVote).where(SessionVote.expires_at < now))
    return result.rowcount

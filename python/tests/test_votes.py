"""Tests for jam session votes.

Tests cover:
- One vote per (session, type, target, user); re-voting overwrites
- Skip quorum at ceil(P / 2) live positive votes
- Vibe resolution when everyone voted or the window closed
- Expired votes never count and are swept by the cleanup
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lumi.db.models import SessionVote
from lumi.db.types import utcnow
from lumi.errors import ForbiddenError, InvalidRequestError
from lumi.services import votes as votes_service
from tests.factories import create_jam_session, create_vote
from tests.helpers import assert_error

TRACK = "spotify:track:abc"


def _vote_rows(db: Session, session_id: int, vote_type: str | None = None) -> int:
    query = select(func.count()).select_from(SessionVote).where(
        SessionVote.session_id == session_id
    )
    if vote_type:
        query = query.where(SessionVote.vote_type == vote_type)
    return db.scalar(query)


class TestMajorityThreshold:
    @pytest.mark.parametrize(("participants", "required"), [(1, 1), (2, 1), (3, 2), (4, 2), (5, 3)])
    def test_ceil_half(self, participants: int, required: int):
        assert votes_service.majority_threshold(participants) == required


class TestCastVote:
    """Tests for POST /session-votes"""

    def test_revoting_overwrites_single_row(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))

        votes_service.cast_vote(db_session, session_id, "volume", "a", "up", vote_value=1)
        votes_service.cast_vote(db_session, session_id, "volume", "a", "up", vote_value=-1)

        values = db_session.scalars(
            select(SessionVote.vote_value).where(SessionVote.session_id == session_id)
        ).all()
        assert values == [-1]

    def test_volume_votes_do_not_expire(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj")

        votes_service.cast_vote(db_session, session_id, "volume", "dj", "up")

        expires_at = db_session.scalar(select(SessionVote.expires_at))
        assert expires_at is None

    def test_skip_vote_uses_expiry_window(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        now = utcnow()

        votes_service.cast_vote(db_session, session_id, "skip", "a", TRACK, expires_in=45, now=now)

        expires_at = db_session.scalar(select(SessionVote.expires_at))
        assert expires_at == now + timedelta(seconds=45)

    def test_non_member_forbidden(self, client: TestClient, db_session: Session):
        session_id = create_jam_session(db_session, host="dj")

        response = client.post(
            "/session-votes",
            json={"sessionId": session_id, "voteType": "skip", "username": "stranger"},
        )

        assert_error(response, 403, "You must be in the session to vote", "E_NOT_A_PARTICIPANT")

    def test_invalid_vote_type_rejected(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj")

        with pytest.raises(InvalidRequestError, match="Invalid vote type"):
            votes_service.cast_vote(db_session, session_id, "mosh", "dj")

    def test_missing_fields_rejected(self, client: TestClient):
        response = client.post("/session-votes", json={"voteType": "skip"})

        assert_error(response, 400, "Session ID, vote type, and username are required")

    def test_pending_vote_reports_only_success(self, client: TestClient, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))

        response = client.post(
            "/session-votes",
            json={
                "sessionId": session_id,
                "voteType": "skip",
                "voteTarget": TRACK,
                "username": "a",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}


class TestSkipQuorum:
    """Skip passes at ceil(P / 2) live positive votes on the same target."""

    def test_four_listeners_pass_at_two_votes(self, client: TestClient, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        body = {"sessionId": session_id, "voteType": "skip", "voteTarget": TRACK}

        first = client.post("/session-votes", json={**body, "username": "a"})
        second = client.post("/session-votes", json={**body, "username": "b"})

        assert first.json() == {"success": True}
        assert second.json() == {
            "success": True,
            "votePassed": True,
            "action": "skip_track",
            "voteCount": 2,
            "required": 2,
        }
        assert _vote_rows(db_session, session_id, "skip") == 0

    def test_expired_votes_do_not_count(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        now = utcnow()
        create_vote(
            db_session,
            session_id,
            "a",
            vote_target=TRACK,
            created_at=now - timedelta(seconds=60),
            expires_at=now - timedelta(seconds=30),
        )

        result = votes_service.cast_vote(db_session, session_id, "skip", "b", TRACK, now=now)

        assert result.vote_passed is None
        assert _vote_rows(db_session, session_id, "skip") == 2

    def test_negative_votes_do_not_count(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        votes_service.cast_vote(db_session, session_id, "skip", "a", TRACK, vote_value=-1)

        result = votes_service.cast_vote(db_session, session_id, "skip", "b", TRACK)

        assert result.vote_passed is None

    def test_votes_on_other_targets_are_separate(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        votes_service.cast_vote(db_session, session_id, "skip", "a", "spotify:track:other")

        result = votes_service.cast_vote(db_session, session_id, "skip", "b", TRACK)

        assert result.vote_passed is None


class TestVibeResolution:
    """Vibe votes resolve once everyone voted or the window closed."""

    def test_resolves_when_all_listeners_voted(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b"))
        now = utcnow()
        votes_service.cast_vote(db_session, session_id, "vibe", "dj", "chill", now=now)
        votes_service.cast_vote(
            db_session, session_id, "vibe", "a", "hype", now=now + timedelta(seconds=1)
        )

        result = votes_service.cast_vote(
            db_session, session_id, "vibe", "b", "hype", now=now + timedelta(seconds=2)
        )

        response = result.to_response()
        assert response["votePassed"] is True
        assert response["action"] == "change_vibe"
        assert response["winner"] == "hype"
        assert response["votes"] == [{"vibe": "hype", "count": 2}, {"vibe": "chill", "count": 1}]
        assert _vote_rows(db_session, session_id, "vibe") == 0

    def test_waits_while_votes_are_missing(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b"))

        result = votes_service.cast_vote(db_session, session_id, "vibe", "a", "chill")

        assert result.vote_passed is None
        assert _vote_rows(db_session, session_id, "vibe") == 1

    def test_tie_goes_to_the_vibe_voted_first(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a",))
        now = utcnow()
        votes_service.cast_vote(db_session, session_id, "vibe", "a", "jazz", now=now)

        result = votes_service.cast_vote(
            db_session, session_id, "vibe", "dj", "rock", now=now + timedelta(seconds=1)
        )

        assert result.winner == "jazz"

    def test_closed_window_resolves_with_live_votes(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b", "c"))
        now = utcnow()
        create_vote(
            db_session,
            session_id,
            "a",
            vote_type="vibe",
            vote_target="chill",
            created_at=now - timedelta(seconds=40),
            expires_at=now - timedelta(seconds=10),
        )

        result = votes_service.cast_vote(db_session, session_id, "vibe", "b", "hype", now=now)

        assert result.vote_passed is True
        assert result.winner == "hype"
        assert _vote_rows(db_session, session_id, "vibe") == 0


class TestGetAndRemoveVotes:
    """Tests for GET/DELETE /session-votes"""

    def test_summary_groups_live_votes(self, client: TestClient, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b"))
        votes_service.cast_vote(db_session, session_id, "volume", "a", "up", vote_value=2)
        votes_service.cast_vote(db_session, session_id, "volume", "b", "up", vote_value=1)
        votes_service.cast_vote(db_session, session_id, "volume", "dj", "down")

        response = client.get("/session-votes", params={"sessionId": session_id})

        assert response.status_code == 200
        body = response.json()
        assert body["participantCount"] == 3
        assert body["majorityThreshold"] == 2
        tallies = [(v["vote_target"], v["vote_count"], v["total_value"]) for v in body["votes"]]
        assert tallies == [("up", 2, 3), ("down", 1, 1)]
        assert body["votes"][0]["voters"] == ["a", "b"]

    def test_summary_filters_by_type_and_hides_expired(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a",))
        now = utcnow()
        create_vote(db_session, session_id, "a", vote_target=TRACK, expires_at=now - timedelta(1))
        votes_service.cast_vote(db_session, session_id, "queue", "a", "spotify:track:q")

        skip_only = votes_service.get_votes(db_session, session_id, "skip", now=now)
        everything = votes_service.get_votes(db_session, session_id, now=now)

        assert skip_only.votes == []
        assert [t.vote_type for t in everything.votes] == ["queue"]

    def test_session_id_required(self, client: TestClient):
        response = client.get("/session-votes")

        assert_error(response, 400, "Session ID is required")

    def test_remove_vote(self, client: TestClient, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a",))
        votes_service.cast_vote(db_session, session_id, "queue", "a", "spotify:track:q")

        response = client.request(
            "DELETE",
            "/session-votes",
            json={
                "sessionId": session_id,
                "voteType": "queue",
                "voteTarget": "spotify:track:q",
                "username": "a",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert _vote_rows(db_session, session_id) == 0

    def test_removing_missing_vote_is_not_an_error(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj")

        votes_service.remove_vote(db_session, session_id, "skip", "dj", TRACK)

    def test_forbidden_error_type(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj")

        with pytest.raises(ForbiddenError):
            votes_service.cast_vote(db_session, session_id, "skip", "nobody", TRACK)


class TestCleanupExpiredVotes:
    def test_deletes_only_expired_votes(self, db_session: Session):
        session_id = create_jam_session(db_session, host="dj", listeners=("a", "b"))
        now = utcnow()
        create_vote(db_session, session_id, "a", vote_target=TRACK, expires_at=now - timedelta(1))
        create_vote(
            db_session, session_id, "b", vote_target=TRACK, expires_at=now + timedelta(minutes=1)
        )
        create_vote(db_session, session_id, "dj", vote_type="volume", vote_target="up")

        removed = votes_service.cleanup_expired_votes(db_session, now=now)

        assert removed == 1
        assert _vote_rows(db_session, session_id) == 2

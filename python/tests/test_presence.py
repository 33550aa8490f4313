"""Tests for presence heartbeats, typing flags and the stale-presence sweep.

Presence freshness: a user heartbeated at T is online for reads up to but not
including T + 30s.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from lumi.db.models import UserPresence
from lumi.db.types import utcnow
from lumi.services import presence as presence_service
from tests.factories import create_presence
from tests.helpers import assert_error


class TestPresenceRoutes:
    """Tests for GET/POST/DELETE /presence"""

    def test_heartbeat_then_listed_online(self, client: TestClient):
        response = client.post("/presence", json={"username": "alice"})

        assert response.status_code == 200
        assert response.json() == {"success": True}

        online = client.get("/presence").json()
        assert [u["username"] for u in online] == ["alice"]
        assert online[0]["last_seen"]
        assert online[0]["is_typing"] is False

    def test_online_list_sorted_by_username(self, client: TestClient):
        for name in ("carol", "alice", "bob"):
            client.post("/presence", json={"username": name})

        online = client.get("/presence").json()

        assert [u["username"] for u in online] == ["alice", "bob", "carol"]

    def test_repeated_heartbeats_keep_one_row(self, client: TestClient, db_session: Session):
        client.post("/presence", json={"username": "alice"})
        client.post("/presence", json={"username": "alice"})

        rows = db_session.scalars(select(UserPresence.username)).all()
        assert rows == ["alice"]

    def test_typing_flag_set_and_cleared(self, client: TestClient):
        client.post("/presence", json={"username": "alice", "isTyping": True})
        typing = client.get("/presence").json()[0]
        assert typing["is_typing"] is True
        assert typing["typing_started_at"] is not None

        client.post("/presence", json={"username": "alice", "isTyping": False})
        idle = client.get("/presence").json()[0]
        assert idle["is_typing"] is False
        assert idle["typing_started_at"] is None

    def test_heartbeat_without_typing_keeps_flag(self, client: TestClient):
        client.post("/presence", json={"username": "alice", "isTyping": True})
        client.post("/presence", json={"username": "alice"})

        assert client.get("/presence").json()[0]["is_typing"] is True

    def test_heartbeat_requires_username(self, client: TestClient):
        response = client.post("/presence", json={})

        assert_error(response, 400, "Username is required")

    def test_delete_with_body_removes_row(self, client: TestClient):
        client.post("/presence", json={"username": "alice"})

        response = client.request("DELETE", "/presence", json={"username": "alice"})

        assert response.status_code == 200
        assert client.get("/presence").json() == []

    def test_delete_with_query_parameter(self, client: TestClient):
        client.post("/presence", json={"username": "bob"})

        response = client.delete("/presence", params={"username": "bob"})

        assert response.status_code == 200
        assert client.get("/presence").json() == []

    def test_delete_without_username_rejected(self, client: TestClient):
        response = client.delete("/presence")

        assert_error(response, 400, "Username is required")


class TestPresenceWindow:
    """Freshness boundaries at the service layer."""

    def test_online_until_just_before_30_seconds(self, db_session: Session):
        t = utcnow()
        presence_service.heartbeat(db_session, "alice", now=t)

        just_before = presence_service.list_online(
            db_session, now=t + timedelta(seconds=29, milliseconds=999)
        )
        at_boundary = presence_service.list_online(db_session, now=t + timedelta(seconds=30))

        assert [u.username for u in just_before] == ["alice"]
        assert at_boundary == []

    @pytest.mark.parametrize(
        ("age_s", "expected"),
        [(0, "online"), (29, "online"), (30, "recently_active"), (299, "recently_active")],
    )
    def test_classify_by_age(self, age_s: int, expected: str):
        now = utcnow()
        assert presence_service.classify(now - timedelta(seconds=age_s), now) == expected

    def test_classify_without_heartbeat_is_offline(self):
        assert presence_service.classify(None) == "offline"

    def test_classify_older_than_recent_window_is_offline(self):
        now = utcnow()
        assert presence_service.classify(now - timedelta(minutes=5), now) == "offline"


class TestSweepStalePresence:
    """Tests for the periodic presence sweep."""

    def test_removes_rows_older_than_recent_window(self, db_session: Session):
        now = utcnow()
        create_presence(db_session, "fresh", last_seen=now - timedelta(seconds=10))
        create_presence(db_session, "idle", last_seen=now - timedelta(minutes=2))
        create_presence(db_session, "gone", last_seen=now - timedelta(minutes=10))

        deleted, _ = presence_service.sweep_stale_presence(db_session, now=now)

        assert deleted == 1
        remaining = db_session.scalars(
            select(UserPresence.username).order_by(UserPresence.username)
        ).all()
        assert remaining == ["fresh", "idle"]

    def test_clears_typing_flags_left_on(self, db_session: Session):
        now = utcnow()
        create_presence(
            db_session, "stuck", last_seen=now - timedelta(seconds=20), is_typing=True
        )
        create_presence(db_session, "typing", last_seen=now - timedelta(seconds=2), is_typing=True)

        _, cleared = presence_service.sweep_stale_presence(db_session, now=now)

        assert cleared == 1
        flags = dict(db_session.execute(select(UserPresence.username, UserPresence.is_typing)).all())
        assert flags == {"stuck": False, "typing": True}

"""Tests for global room messages.

Tests cover:
- Send validation (presence, length, reply metadata) and exact error messages
- Cursor paging: recent window, sinceId, since timestamp
- Gap-free, duplicate-free incremental fetching
- Participant directory rollup on send
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from lumi.db.models import ChatParticipant, Message
from lumi.db.types import utcnow
from lumi.errors import InvalidRequestError
from lumi.services import messages as messages_service
from lumi.services.validation import parse_id, parse_reply, parse_since_id
from tests.factories import create_message, create_messages
from tests.helpers import assert_error


class TestSendMessage:
    """Tests for POST /messages"""

    def test_send_returns_201_with_created_message(self, client: TestClient):
        response = client.post("/messages", json={"username": "alice", "message": "hi all"})

        assert response.status_code == 201
        body = response.json()
        assert body["id"] > 0
        assert body["username"] == "alice"
        assert body["message"] == "hi all"
        assert body["created_at"]
        assert body["reply_to_id"] is None
        assert body["image_url"] is None

    def test_send_trims_username_and_message(self, client: TestClient):
        response = client.post("/messages", json={"username": "  bob ", "message": "  yo  "})

        assert response.status_code == 201
        assert response.json()["username"] == "bob"
        assert response.json()["message"] == "yo"

    def test_username_of_51_characters_rejected(self, client: TestClient):
        response = client.post("/messages", json={"username": "a" * 51, "message": "hi"})

        assert_error(response, 400, "Username must be 50 characters or less")

    def test_username_of_50_characters_accepted(self, client: TestClient):
        response = client.post("/messages", json={"username": "a" * 50, "message": "hi"})

        assert response.status_code == 201

    def test_message_over_1000_characters_rejected(self, client: TestClient):
        response = client.post("/messages", json={"username": "alice", "message": "x" * 1001})

        assert_error(response, 400, "Message must be 1000 characters or less")

    def test_missing_username_rejected(self, client: TestClient):
        response = client.post("/messages", json={"message": "hi"})

        assert_error(response, 400, "Username is required", "E_USERNAME_INVALID")

    def test_blank_message_rejected(self, client: TestClient):
        response = client.post("/messages", json={"username": "alice", "message": "   "})

        assert_error(response, 400, "Message is required", "E_MESSAGE_INVALID")

    def test_presence_checked_before_length(self, client: TestClient):
        """An oversized username with no message reports the missing message."""
        response = client.post("/messages", json={"username": "a" * 51})

        assert_error(response, 400, "Message is required")

    def test_reply_with_all_fields_is_stored(self, client: TestClient):
        original = client.post("/messages", json={"username": "alice", "message": "first"})
        reply = client.post(
            "/messages",
            json={
                "username": "bob",
                "message": "agreed",
                "replyToId": original.json()["id"],
                "replyToUsername": "alice",
                "replyPreview": "first",
            },
        )

        assert reply.status_code == 201
        body = reply.json()
        assert body["reply_to_id"] == original.json()["id"]
        assert body["reply_to_username"] == "alice"
        assert body["reply_preview"] == "first"

    def test_reply_without_username_and_preview_rejected(self, client: TestClient):
        response = client.post(
            "/messages", json={"username": "bob", "message": "hm", "replyToId": 1}
        )

        assert_error(response, 400, "Reply requires both username and preview", "E_REPLY_INVALID")

    def test_reply_with_non_numeric_id_rejected(self, client: TestClient):
        response = client.post(
            "/messages",
            json={
                "username": "bob",
                "message": "hm",
                "replyToId": "abc",
                "replyToUsername": "alice",
                "replyPreview": "x",
            },
        )

        assert_error(response, 400, "Reply ID must be a valid positive integer")

    def test_reply_metadata_without_id_rejected(self, client: TestClient):
        response = client.post(
            "/messages",
            json={"username": "bob", "message": "hm", "replyToUsername": "alice"},
        )

        assert_error(response, 400, "Reply ID must be a valid positive integer")

    def test_send_bumps_participant_directory(self, client: TestClient, db_session: Session):
        client.post("/messages", json={"username": "carol", "message": "one"})
        client.post("/messages", json={"username": "carol", "message": "two"})

        count, last_message_at = db_session.execute(
            select(ChatParticipant.message_count, ChatParticipant.last_message_at).where(
                ChatParticipant.username == "carol"
            )
        ).one()
        assert count == 2
        assert last_message_at is not None


class TestListMessages:
    """Tests for GET /messages"""

    def test_empty_room_returns_empty_list(self, client: TestClient):
        response = client.get("/messages")

        assert response.status_code == 200
        assert response.json() == []

    def test_no_cursor_returns_most_recent_50_ascending(
        self, client: TestClient, db_session: Session
    ):
        ids = create_messages(db_session, 55)

        response = client.get("/messages")

        returned = [m["id"] for m in response.json()]
        assert returned == ids[5:]

    def test_since_id_returns_only_newer_messages(
        self, client: TestClient, db_session: Session
    ):
        ids = create_messages(db_session, 5)

        response = client.get("/messages", params={"sinceId": ids[2]})

        assert [m["id"] for m in response.json()] == ids[3:]

    def test_since_id_beyond_last_returns_empty(self, client: TestClient, db_session: Session):
        ids = create_messages(db_session, 3)

        response = client.get("/messages", params={"sinceId": ids[-1]})

        assert response.json() == []

    def test_since_id_is_not_limited_to_page_size(
        self, client: TestClient, db_session: Session
    ):
        ids = create_messages(db_session, 60)

        response = client.get("/messages", params={"sinceId": 0})

        assert [m["id"] for m in response.json()] == ids

    def test_malformed_since_id_rejected(self, client: TestClient):
        response = client.get("/messages", params={"sinceId": "abc"})

        assert_error(response, 400, "sinceId must be a non-negative integer")

    def test_unicode_digit_since_id_rejected(self, client: TestClient):
        response = client.get("/messages", params={"sinceId": "²"})

        assert_error(response, 400, "sinceId must be a non-negative integer")

    def test_since_timestamp_fallback(self, client: TestClient, db_session: Session):
        base = utcnow() - timedelta(minutes=10)
        create_message(db_session, message="old", created_at=base)
        newer = create_message(db_session, message="new", created_at=base + timedelta(minutes=5))

        since = (base + timedelta(minutes=1)).isoformat()
        response = client.get("/messages", params={"since": since})

        assert [m["id"] for m in response.json()] == [newer]

    def test_malformed_since_rejected(self, client: TestClient):
        response = client.get("/messages", params={"since": "yesterday"})

        assert_error(response, 400, "since must be an ISO-8601 timestamp")


class TestNumericParsing:
    """Ids and cursors accept ASCII digits only."""

    @pytest.mark.parametrize("value", ["²", "١٢", "-1", "1.5", " "])
    def test_since_id_rejects_non_ascii_digits(self, value: str):
        with pytest.raises(InvalidRequestError, match="sinceId"):
            parse_since_id(value)

    def test_since_id_accepts_padded_digits(self):
        assert parse_since_id(" 42 ") == 42

    @pytest.mark.parametrize("value", ["²", "0", "x"])
    def test_id_rejects_non_positive_or_unicode(self, value: str):
        with pytest.raises(InvalidRequestError, match="sessionId must be a positive integer"):
            parse_id(value, "sessionId")

    def test_session_id_query_with_unicode_digit_is_400(self, client: TestClient):
        response = client.get("/session-votes", params={"sessionId": "²"})

        assert_error(response, 400, "sessionId must be a positive integer")

    def test_unicode_reply_id_rejected(self, client: TestClient):
        response = client.post(
            "/messages",
            json={
                "username": "alice",
                "message": "hi",
                "replyToId": "²",
                "replyToUsername": "bob",
                "replyPreview": "hey",
            },
        )

        assert_error(response, 400, "Reply ID must be a valid positive integer")

    def test_reply_id_digits_string_accepted(self):
        assert parse_reply("7", "bob", "hey") == (7, "bob", "hey")


class TestCursorPaging:
    """Incremental fetching with the last seen id."""

    def test_repeated_since_fetches_are_gap_free_and_duplicate_free(self, db_session: Session):
        seen: list[int] = []
        cursor = None

        for batch in range(4):
            for i in range(batch + 1):
                messages_service.send_message(db_session, "alice", f"b{batch}-{i}")
            page = messages_service.list_messages(db_session, since_id=cursor)
            seen.extend(m.id for m in page)
            cursor = seen[-1]

        all_ids = list(db_session.scalars(select(Message.id).order_by(Message.id)))
        assert seen == all_ids
        assert len(set(seen)) == len(seen)

    def test_display_order_uses_created_at_then_id(self, db_session: Session):
        now = utcnow()
        later = create_message(db_session, message="later", created_at=now)
        earlier = create_message(
            db_session, message="earlier", created_at=now - timedelta(seconds=5)
        )

        page = messages_service.list_messages(db_session)

        assert [m.id for m in page] == [earlier, later]

    def test_cursor_includes_higher_id_with_older_timestamp(self, db_session: Session):
        now = utcnow()
        first = create_message(db_session, created_at=now)
        backdated = create_message(db_session, created_at=now - timedelta(seconds=5))

        page = messages_service.list_messages(db_session, since_id=first)

        assert [m.id for m in page] == [backdated]

    def test_service_send_rejects_invalid_reply(self, db_session: Session):
        with pytest.raises(InvalidRequestError, match="Reply requires both"):
            messages_service.send_message(db_session, "a", "b", reply_to_id=3)

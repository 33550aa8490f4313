"""Tests for the Python chat client and its pollers.

Tests cover:
- ChatApiClient against the real app (TestClient is an httpx.Client)
- Error mapping and transport failures (mocked with respx)
- MessagePoller cursor, dedup and callback behavior
- PresencePoller heartbeat and leave on stop
"""

import threading

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from lumi.client import (
    ChatApiClient,
    ChatApiError,
    MessagePoller,
    PresencePoller,
    find_mentions,
    merge_messages,
)
from lumi.client.poller import _Poller

BASE_URL = "http://chat.test"


@pytest.fixture
def bot(client: TestClient) -> ChatApiClient:
    """Client acting as the default bot user over the in-process app."""
    return ChatApiClient("http://testserver", http=client)


class TestChatApiClient:
    """ChatApiClient round trips through the app."""

    def test_default_username(self, bot: ChatApiClient):
        assert bot.username == "Lumi"

    def test_send_and_fetch(self, bot: ChatApiClient):
        sent = bot.send_message("  hello room  ")

        assert sent["username"] == "Lumi"
        assert sent["message"] == "hello room"
        assert [m["id"] for m in bot.fetch_messages()] == [sent["id"]]
        assert bot.fetch_messages(since_id=sent["id"]) == []

    def test_reply_fields_are_sent(self, bot: ChatApiClient, client: TestClient):
        original = client.post("/messages", json={"username": "amy", "message": "hi lumi"})

        reply = bot.send_message(
            "hi amy",
            reply_to_id=original.json()["id"],
            reply_to_username="amy",
            reply_preview="hi lumi",
        )

        assert reply["reply_to_username"] == "amy"

    def test_recent_messages_limit(self, bot: ChatApiClient):
        for i in range(5):
            bot.send_message(f"m{i}")

        assert [m["message"] for m in bot.recent_messages(limit=2)] == ["m3", "m4"]

    def test_find_mentions_since_cursor(self, bot: ChatApiClient, client: TestClient):
        first = client.post("/messages", json={"username": "amy", "message": "@lumi old"})
        client.post("/messages", json={"username": "amy", "message": "hey @Lumi!"})
        client.post("/messages", json={"username": "ben", "message": "no mention"})

        mentions = bot.find_mentions(since_id=first.json()["id"])

        assert [m["message"] for m in mentions] == ["hey @Lumi!"]

    def test_presence_heartbeat_and_leave(self, bot: ChatApiClient):
        bot.heartbeat(is_typing=True)

        online = bot.fetch_presence()
        assert [u["username"] for u in online] == ["Lumi"]
        assert online[0]["is_typing"] is True

        bot.leave()
        assert bot.fetch_presence() == []

    def test_server_error_raises_with_message(self, bot: ChatApiClient):
        with pytest.raises(ChatApiError) as exc_info:
            bot.send_message("x" * 1001)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Message must be 1000 characters or less"

    @respx.mock
    def test_non_json_error_body(self):
        respx.get(f"{BASE_URL}/messages").mock(return_value=httpx.Response(502, text="bad gw"))

        with ChatApiClient(BASE_URL) as api, pytest.raises(ChatApiError) as exc_info:
            api.fetch_messages()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "bad gw"

    @respx.mock
    def test_since_id_sent_as_query(self):
        route = respx.get(f"{BASE_URL}/messages").mock(return_value=httpx.Response(200, json=[]))

        with ChatApiClient(BASE_URL) as api:
            api.fetch_messages(since_id=7)

        assert route.calls.last.request.url.params["sinceId"] == "7"


class TestFindMentions:
    MESSAGES = [
        {"id": 1, "username": "amy", "message": "@Lumi hi"},
        {"id": 2, "username": "Lumi", "message": "@lumi talking to myself"},
        {"id": 3, "username": "ben", "message": "ok", "reply_to_username": "Lumi"},
        {"id": 4, "username": "ben", "message": "unrelated"},
    ]

    def test_mentions_and_replies(self):
        assert [m["id"] for m in find_mentions(self.MESSAGES, "Lumi")] == [1, 3]

    def test_replies_can_be_excluded(self):
        found = find_mentions(self.MESSAGES, "Lumi", include_replies=False)

        assert [m["id"] for m in found] == [1]


class TestMergeMessages:
    def test_union_by_id_in_display_order(self):
        known = [{"id": 2, "created_at": "2025-01-01T00:00:02"}]
        incoming = [
            {"id": 1, "created_at": "2025-01-01T00:00:01"},
            {"id": 2, "created_at": "2025-01-01T00:00:02"},
            {"id": 3, "created_at": "2025-01-01T00:00:02"},
        ]

        assert [m["id"] for m in merge_messages(known, incoming)] == [1, 2, 3]

    def test_inputs_not_mutated(self):
        known = [{"id": 1, "created_at": "a"}]

        merge_messages(known, [{"id": 2, "created_at": "b"}])

        assert known == [{"id": 1, "created_at": "a"}]


class TestMessagePoller:
    """Tests for incremental message polling."""

    def test_first_poll_takes_recent_window(self, bot: ChatApiClient, client: TestClient):
        for text in ("one", "two"):
            client.post("/messages", json={"username": "amy", "message": text})
        received: list[list[dict]] = []

        poller = MessagePoller(bot, received.append)
        new = poller.poll_once()

        assert [m["message"] for m in new] == ["one", "two"]
        assert received == [new]
        assert poller.last_id == new[-1]["id"]

    def test_later_polls_only_report_new_messages(
        self, bot: ChatApiClient, client: TestClient
    ):
        client.post("/messages", json={"username": "amy", "message": "one"})
        received: list[list[dict]] = []
        poller = MessagePoller(bot, received.append)
        poller.poll_once()

        assert poller.poll_once() == []
        client.post("/messages", json={"username": "amy", "message": "two"})
        new = poller.poll_once()

        assert [m["message"] for m in new] == ["two"]
        assert len(received) == 2

    @respx.mock
    def test_duplicates_are_dropped(self):
        respx.get(f"{BASE_URL}/messages").mock(
            side_effect=[
                httpx.Response(200, json=[{"id": 1}, {"id": 2}]),
                httpx.Response(200, json=[{"id": 2}, {"id": 3}]),
            ]
        )
        received: list[list[dict]] = []

        with ChatApiClient(BASE_URL) as api:
            poller = MessagePoller(api, received.append)
            poller.poll_once()
            second = poller.poll_once()

        assert [m["id"] for m in second] == [3]
        assert poller.last_id == 3

    @respx.mock
    def test_failed_tick_is_swallowed_and_cursor_kept(self):
        respx.get(f"{BASE_URL}/messages").mock(return_value=httpx.Response(500, json={}))
        calls: list = []

        with ChatApiClient(BASE_URL) as api:
            poller = MessagePoller(api, calls.append)
            poller._tick()

        assert calls == []
        assert poller.last_id is None

    @respx.mock
    def test_non_json_reply_does_not_stop_polling(self):
        replies = [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json=[{"id": 1}]),
        ]
        respx.get(f"{BASE_URL}/messages").mock(
            side_effect=lambda request: replies.pop(0) if replies else httpx.Response(200, json=[])
        )
        received: list[int] = []
        delivered = threading.Event()

        def on_messages(messages):
            received.extend(m["id"] for m in messages)
            delivered.set()

        with ChatApiClient(BASE_URL) as api:
            poller = MessagePoller(api, on_messages, interval_s=0.05)
            poller.start()
            try:
                assert delivered.wait(timeout=5)
                assert poller.running
            finally:
                poller.stop(timeout=5)

        assert received == [1]

    @respx.mock
    def test_callback_error_is_swallowed_and_cursor_advances(self):
        respx.get(f"{BASE_URL}/messages").mock(
            return_value=httpx.Response(200, json=[{"id": 4}])
        )

        def explode(messages):
            raise RuntimeError("render failed")

        with ChatApiClient(BASE_URL) as api:
            poller = MessagePoller(api, explode)
            poller._tick()

        assert poller.last_id == 4

    def test_start_and_stop(self, bot: ChatApiClient):
        poller = MessagePoller(bot, lambda messages: None, interval_s=60)

        poller.start()
        assert poller.running
        poller.stop(timeout=5)

        assert not poller.running


class TestPollerBase:
    def test_poll_once_must_be_implemented(self):
        class Idle(_Poller):
            pass

        with pytest.raises(TypeError):
            Idle(interval_s=1.0)

class TestPresencePoller:
    """Tests for presence heartbeats."""

    def test_poll_heartbeats_and_reports_online(self, bot: ChatApiClient):
        seen: list[list[dict]] = []
        poller = PresencePoller(bot, seen.append)

        online = poller.poll_once()

        assert [u["username"] for u in online] == ["Lumi"]
        assert seen == [online]
        assert poller.online == online

    def test_stop_sends_leave(self, bot: ChatApiClient):
        poller = PresencePoller(bot)
        poller.poll_once()

        poller.stop()

        assert bot.fetch_presence() == []

    @respx.mock
    def test_stop_ignores_leave_failure(self):
        respx.delete(f"{BASE_URL}/presence").mock(side_effect=httpx.ConnectError)

        with ChatApiClient(BASE_URL) as api:
            PresencePoller(api).stop()

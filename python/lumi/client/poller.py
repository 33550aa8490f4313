"""Background pollers for the chat API.

The server never pushes; clients converge by polling. Each poller is an
explicit object that owns its cursor and a start/stop lifecycle:

- MessagePoller asks for messages after the highest id it has seen (the
  recent window when it has seen none), drops ids it already knows, and hands
  only new messages to the callback. Ids are assigned by the database and
  strictly increase, so this is gap-free and duplicate-free.
- PresencePoller heartbeats and refreshes the online list; stopping it sends a
  best-effort leave.

A failed tick is logged and skipped; the next tick retries.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import httpx

from lumi.client.api import ChatApiClient, ChatApiError
from lumi.logging import get_logger

logger = get_logger(__name__)

MESSAGE_POLL_INTERVAL_S = 1.0
PRESENCE_POLL_INTERVAL_S = 5.0

Message = dict[str, Any]


def merge_messages(known: list[Message], incoming: list[Message]) -> list[Message]:
    """Union of two message lists by id, in display order (created_at, id)."""
    seen = {m["id"] for m in known}
    merged = list(known)
    for message in incoming:
        if message["id"] not in seen:
            seen.add(message["id"])
            merged.append(message)
    merged.sort(key=lambda m: (m.get("created_at") or "", m["id"]))
    return merged


class _Poller(ABC):
    """Runs ``poll_once`` on a daemon thread every ``interval_s`` seconds."""

    name = "poller"

    def __init__(self, interval_s: float):
        self.interval_s = interval_s
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @abstractmethod
    def poll_once(self) -> Any:
        """One fetch-and-report cycle."""

    def _tick(self) -> None:
        try:
            self.poll_once()
        except (httpx.HTTPError, ChatApiError) as e:
            logger.warning("poll_failed", poller=self.name, error=str(e))
        except Exception:
            logger.exception("poll_failed", poller=self.name)

    def _run(self) -> None:
        self._tick()
        while not self._stop.wait(self.interval_s):
            self._tick()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


class MessagePoller(_Poller):
    """Incrementally fetch global room messages and report new ones."""

    name = "message-poller"

    def __init__(
        self,
        client: ChatApiClient,
        on_messages: Callable[[list[Message]], None],
        interval_s: float = MESSAGE_POLL_INTERVAL_S,
    ):
        super().__init__(interval_s)
        self.client = client
        self.on_messages = on_messages
        self.last_id: int | None = None
        self._known_ids: set[int] = set()
        self._lock = threading.Lock()

    def poll_once(self) -> list[Message]:
        """Fetch once; return (and report) only messages not seen before."""
        with self._lock:
            incoming = self.client.fetch_messages(self.last_id)
            new = [m for m in incoming if m["id"] not in self._known_ids]
            for message in new:
                self._known_ids.add(message["id"])
                if self.last_id is None or message["id"] > self.last_id:
                    self.last_id = message["id"]

        if new:
            self.on_messages(new)
        return new


class PresencePoller(_Poller):
    """Heartbeat and refresh the list of online users."""

    name = "presence-poller"

    def __init__(
        self,
        client: ChatApiClient,
        on_presence: Callable[[list[dict[str, Any]]], None] | None = None,
        interval_s: float = PRESENCE_POLL_INTERVAL_S,
    ):
        super().__init__(interval_s)
        self.client = client
        self.on_presence = on_presence
        self.online: list[dict[str, Any]] = []

    def poll_once(self) -> list[dict[str, Any]]:
        self.client.heartbeat()
        self.online = self.client.fetch_presence()
        if self.on_presence is not None:
            self.on_presence(self.online)
        return self.online

    def stop(self, timeout: float | None = None) -> None:
        """Stop heartbeating and tell the server we left."""
        super().stop(timeout)
        try:
            self.client.leave()
        except (httpx.HTTPError, ChatApiError) as e:
            logger.warning("presence_leave_failed", error=str(e))

"""Synchronous httpx wrapper over the chat API.

Returns the decoded JSON the server sends (plain dicts and lists). Any
non-2xx response raises ChatApiError with the server's ``error`` message.
"""

from typing import Any

import httpx

from lumi.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BOT_USERNAME = "Lumi"


class ChatApiError(Exception):
    """The chat API answered with an error status.

    Attributes:
        status_code: HTTP status returned by the server
        message: The server's ``error`` field, or the raw body
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def find_mentions(
    messages: list[dict[str, Any]],
    username: str,
    include_replies: bool = True,
) -> list[dict[str, Any]]:
    """Messages that @-mention ``username`` or reply to them.

    Matching is case-insensitive on ``@username``; the user's own messages are
    never included.
    """
    tag = f"@{username.lower()}"
    found = []
    for message in messages:
        if message.get("username") == username:
            continue
        mentioned = tag in (message.get("message") or "").lower()
        replied = include_replies and message.get("reply_to_username") == username
        if mentioned or replied:
            found.append(message)
    return found


class ChatApiClient:
    """Client for one chat server, acting as ``username``."""

    def __init__(
        self,
        base_url: str,
        username: str = DEFAULT_BOT_USERNAME,
        http: httpx.Client | None = None,
        timeout_s: float = 10.0,
    ):
        self.username = username
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout_s)
        self._base_url = base_url.rstrip("/")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ChatApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        response = self._http.request(
            method, f"{self._base_url}{path}", params=params, json=json
        )
        if response.status_code >= 400:
            try:
                message = response.json().get("error") or response.text
            except ValueError:
                message = response.text
            raise ChatApiError(response.status_code, message)
        if not response.content:
            return None
        return response.json()

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def fetch_messages(self, since_id: int | None = None) -> list[dict[str, Any]]:
        """Messages after ``since_id``, or the most recent page when None."""
        params = {"sinceId": since_id} if since_id is not None else None
        return self._request("GET", "/messages", params=params) or []

    def send_message(
        self,
        message: str,
        reply_to_id: int | None = None,
        reply_to_username: str | None = None,
        reply_preview: str | None = None,
    ) -> dict[str, Any]:
        """Post to the global room as this client's user."""
        payload: dict[str, Any] = {"username": self.username, "message": message.strip()}
        if reply_to_id is not None:
            payload.update(
                replyToId=reply_to_id,
                replyToUsername=reply_to_username,
                replyPreview=reply_preview,
            )
        return self._request("POST", "/messages", json=payload)

    def recent_messages(self, limit: int = 20) -> list[dict[str, Any]]:
        """The last ``limit`` messages of the recent window."""
        return self.fetch_messages()[-limit:]

    def find_mentions(
        self, since_id: int | None = None, include_replies: bool = True
    ) -> list[dict[str, Any]]:
        """Mentions of (and replies to) this client's user since the cursor."""
        return find_mentions(self.fetch_messages(since_id), self.username, include_replies)

    # -------------------------------------------------------------------------
    # Presence
    # -------------------------------------------------------------------------

    def heartbeat(self, is_typing: bool | None = None) -> None:
        payload: dict[str, Any] = {"username": self.username}
        if is_typing is not None:
            payload["isTyping"] = is_typing
        self._request("POST", "/presence", json=payload)

    def leave(self) -> None:
        self._request("DELETE", "/presence", json={"username": self.username})

    def fetch_presence(self) -> list[dict[str, Any]]:
        """Users currently online."""
        return self._request("GET", "/presence") or []

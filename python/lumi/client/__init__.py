"""Python client for the chat API: HTTP wrapper plus message and presence pollers."""

from lumi.client.api import ChatApiClient, ChatApiError, find_mentions
from lumi.client.poller import MessagePoller, PresencePoller, merge_messages

__all__ = [
    "ChatApiClient",
    "ChatApiError",
    "MessagePoller",
    "PresencePoller",
    "find_mentions",
    "merge_messages",
]

"""Database module for Lumi Chat.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from lumi.db.engine import create_db_engine, get_engine
from lumi.db.models import (
    Base,
    ChatParticipant,
    Conversation,
    ConversationParticipant,
    DirectMessage,
    JamSession,
    Message,
    SessionParticipant,
    SessionQueueItem,
    SessionVote,
    SpotifyToken,
    UserAvatar,
    UserPresence,
    VoteType,
)
from lumi.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "VoteType",
    # Models
    "Message",
    "UserPresence",
    "ChatParticipant",
    "Conversation",
    "ConversationParticipant",
    "DirectMessage",
    "JamSession",
    "SessionParticipant",
    "SessionQueueItem",
    "SessionVote",
    "UserAvatar",
    "SpotifyToken",
]

"""SQLAlchemy ORM models for Lumi Chat.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Integer ids are monotonically increasing and never reused; they double as the
polling cursor for message feeds.
"""

from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from lumi.db.types import BigIntId, UTCDateTime, utcnow

USERNAME_MAX_LENGTH = 50
MESSAGE_MAX_LENGTH = 1000


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class VoteType(str, PyEnum):
    """Kinds of jam session votes.

    skip and vibe votes are time-bounded; volume and queue votes are not.
    """

    skip = "skip"
    vibe = "vibe"
    volume = "volume"
    queue = "queue"


TIME_BOUNDED_VOTE_TYPES = frozenset({VoteType.skip.value, VoteType.vibe.value})


# =============================================================================
# Global room
# =============================================================================


class Message(Base):
    """Global room message. Immutable once created."""

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    reply_to_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    reply_to_username: Mapped[str | None] = mapped_column(
        String(USERNAME_MAX_LENGTH), nullable=True
    )
    reply_preview: Mapped[str | None] = mapped_column(Text, nullable=True)

    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_filename: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_messages_created_at", "created_at"),
        Index("idx_messages_reply_to_id", "reply_to_id"),
        {"sqlite_autoincrement": True},
    )


class UserPresence(Base):
    """Heartbeat row per username."""

    __tablename__ = "user_presence"

    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    last_seen: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    is_typing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    typing_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (Index("idx_user_presence_last_seen", "last_seen"),)


class ChatParticipant(Base):
    """Directory rollup of everyone who has posted in the global room."""

    __tablename__ = "chat_participants"

    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    first_seen: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    message_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("idx_chat_participants_last_message_at", "last_message_at"),)


# =============================================================================
# Direct messages
# =============================================================================


class Conversation(Base):
    """Two-party conversation keyed by the sorted username pair."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_a: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    user_b: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_a", "user_b", name="uq_conversations_pair"),
        CheckConstraint("user_a < user_b", name="ck_conversations_pair_sorted"),
        Index("idx_conversations_updated_at", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    participants: Mapped[list["ConversationParticipant"]] = relationship(
        "ConversationParticipant", back_populates="conversation", cascade="all, delete-orphan"
    )


class ConversationParticipant(Base):
    """Membership row carrying the per-user read cursor."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_read_message_id: Mapped[int | None] = mapped_column(BigIntId, nullable=True)

    __table_args__ = (Index("idx_conversation_participants_username", "username"),)

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="participants"
    )


class DirectMessage(Base):
    """Message inside a conversation. Immutable once created."""

    __tablename__ = "direct_messages"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    reply_to_id: Mapped[int | None] = mapped_column(
        BigIntId, ForeignKey("direct_messages.id", ondelete="SET NULL"), nullable=True
    )
    reply_to_username: Mapped[str | None] = mapped_column(
        String(USERNAME_MAX_LENGTH), nullable=True
    )
    reply_preview: Mapped[str | None] = mapped_column(Text, nullable=True)

    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_filename: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_direct_messages_conversation_created", "conversation_id", "created_at"),
        {"sqlite_autoincrement": True},
    )


# =============================================================================
# Jam sessions
# =============================================================================


class JamSession(Base):
    """Shared listening session hosted by one Spotify-connected user."""

    __tablename__ = "jam_sessions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    host_username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    session_name: Mapped[str] = mapped_column(String(100), nullable=False)
    current_track_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_track_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_track_artist: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_playing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    volume: Mapped[int] = mapped_column(Integer, default=75, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("volume >= 0 AND volume <= 100", name="ck_jam_sessions_volume"),
        Index("idx_jam_sessions_host", "host_username"),
        {"sqlite_autoincrement": True},
    )


class SessionParticipant(Base):
    """Listener in a jam session."""

    __tablename__ = "session_participants"

    session_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("jam_sessions.id", ondelete="CASCADE"), primary_key=True
    )
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    spotify_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    last_seen: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class SessionQueueItem(Base):
    """Track queued in a jam session, ordered by position."""

    __tablename__ = "session_queue"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("jam_sessions.id", ondelete="CASCADE"), nullable=False
    )
    track_uri: Mapped[str] = mapped_column(Text, nullable=False)
    track_name: Mapped[str] = mapped_column(Text, nullable=False)
    track_artist: Mapped[str] = mapped_column(Text, nullable=False)
    added_by: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    votes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_session_queue_session_position", "session_id", "position"),
        {"sqlite_autoincrement": True},
    )


class SessionVote(Base):
    """One user's vote on one (type, target) in a session."""

    __tablename__ = "session_votes"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("jam_sessions.id", ondelete="CASCADE"), nullable=False
    )
    vote_type: Mapped[str] = mapped_column(String(20), nullable=False)
    vote_target: Mapped[str] = mapped_column(Text, default="", nullable=False)
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    vote_value: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "session_id", "vote_type", "vote_target", "username", name="uq_session_votes_key"
        ),
        CheckConstraint(
            "vote_type IN ('skip', 'vibe', 'volume', 'queue')", name="ck_session_votes_type"
        ),
        Index("idx_session_votes_session_type", "session_id", "vote_type"),
        Index("idx_session_votes_expires_at", "expires_at"),
        {"sqlite_autoincrement": True},
    )


# =============================================================================
# Users
# =============================================================================


class UserAvatar(Base):
    """Current avatar blob reference for a username."""

    __tablename__ = "user_avatars"

    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    avatar_url: Mapped[str] = mapped_column(Text, nullable=False)
    original_filename: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class SpotifyToken(Base):
    """OAuth tokens linking a username to a Spotify account."""

    __tablename__ = "spotify_tokens"

    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    spotify_user_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

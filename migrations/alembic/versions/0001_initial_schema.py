"""Initial schema - global room, presence, DMs, jam sessions, votes, avatars, Spotify tokens

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Ids are BIGSERIAL and double as polling cursors: strictly increasing, never
reused. Cross-request coordination relies on the unique constraints here
(conversation pair, vote key) together with INSERT ... ON CONFLICT.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TIMESTAMPTZ = sa.TIMESTAMP(timezone=True)


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, TIMESTAMPTZ, server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    # ==========================================================================
    # messages table (global room)
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
        sa.Column("reply_to_id", sa.BigInteger(), nullable=True),
        sa.Column("reply_to_username", sa.String(50), nullable=True),
        sa.Column("reply_preview", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("image_filename", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["reply_to_id"], ["messages.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_messages_created_at", "messages", ["created_at"])
    op.create_index("idx_messages_reply_to_id", "messages", ["reply_to_id"])

    # ==========================================================================
    # user_presence / chat_participants
    # ==========================================================================
    op.create_table(
        "user_presence",
        sa.Column("username", sa.String(50), nullable=False),
        _created_at("last_seen"),
        sa.Column("is_typing", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("typing_started_at", TIMESTAMPTZ, nullable=True),
        sa.PrimaryKeyConstraint("username"),
    )
    op.create_index("idx_user_presence_last_seen", "user_presence", ["last_seen"])

    op.create_table(
        "chat_participants",
        sa.Column("username", sa.String(50), nullable=False),
        _created_at("first_seen"),
        sa.Column("last_message_at", TIMESTAMPTZ, nullable=True),
        sa.Column("message_count", sa.Integer(), server_default="0", nullable=False),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("username"),
    )
    op.create_index(
        "idx_chat_participants_last_message_at", "chat_participants", ["last_message_at"]
    )

    # ==========================================================================
    # conversations / conversation_participants / direct_messages
    # ==========================================================================
    op.create_table(
        "conversations",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("user_a", sa.String(50), nullable=False),
        sa.Column("user_b", sa.String(50), nullable=False),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_a", "user_b", name="uq_conversations_pair"),
        sa.CheckConstraint("user_a < user_b", name="ck_conversations_pair_sorted"),
    )
    op.create_index("idx_conversations_updated_at", "conversations", ["updated_at"])

    op.create_table(
        "conversation_participants",
        sa.Column("conversation_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        _created_at("joined_at"),
        sa.Column("last_read_message_id", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("conversation_id", "username"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_conversation_participants_username", "conversation_participants", ["username"]
    )

    op.create_table(
        "direct_messages",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("conversation_id", sa.BigInteger(), nullable=False),
        sa.Column("sender_username", sa.String(50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
        sa.Column("reply_to_id", sa.BigInteger(), nullable=True),
        sa.Column("reply_to_username", sa.String(50), nullable=True),
        sa.Column("reply_preview", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("image_filename", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["conversation_id"], ["conversations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reply_to_id"], ["direct_messages.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "idx_direct_messages_conversation_created",
        "direct_messages",
        ["conversation_id", "created_at"],
    )

    # ==========================================================================
    # jam_sessions / session_participants / session_queue / session_votes
    # ==========================================================================
    op.create_table(
        "jam_sessions",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("host_username", sa.String(50), nullable=False),
        sa.Column("session_name", sa.String(100), nullable=False),
        sa.Column("current_track_uri", sa.Text(), nullable=True),
        sa.Column("current_track_name", sa.Text(), nullable=True),
        sa.Column("current_track_artist", sa.Text(), nullable=True),
        sa.Column("current_position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_playing", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("volume", sa.Integer(), server_default="75", nullable=False),
        _created_at(),
        sa.Column("ended_at", TIMESTAMPTZ, nullable=True),
        _created_at("last_updated"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("volume >= 0 AND volume <= 100", name="ck_jam_sessions_volume"),
    )
    op.create_index("idx_jam_sessions_host", "jam_sessions", ["host_username"])

    op.create_table(
        "session_participants",
        sa.Column("session_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("spotify_user_id", sa.String(100), nullable=True),
        _created_at("joined_at"),
        _created_at("last_seen"),
        sa.PrimaryKeyConstraint("session_id", "username"),
        sa.ForeignKeyConstraint(["session_id"], ["jam_sessions.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "session_queue",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("session_id", sa.BigInteger(), nullable=False),
        sa.Column("track_uri", sa.Text(), nullable=False),
        sa.Column("track_name", sa.Text(), nullable=False),
        sa.Column("track_artist", sa.Text(), nullable=False),
        sa.Column("added_by", sa.String(50), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("votes", sa.Integer(), server_default="0", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["jam_sessions.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_session_queue_session_position", "session_queue", ["session_id", "position"]
    )

    op.create_table(
        "session_votes",
        sa.Column("id", sa.BigInteger(), sa.Identity(), nullable=False),
        sa.Column("session_id", sa.BigInteger(), nullable=False),
        sa.Column("vote_type", sa.String(20), nullable=False),
        sa.Column("vote_target", sa.Text(), server_default="", nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("vote_value", sa.Integer(), server_default="1", nullable=False),
        _created_at(),
        sa.Column("expires_at", TIMESTAMPTZ, nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["jam_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "session_id", "vote_type", "vote_target", "username", name="uq_session_votes_key"
        ),
        sa.CheckConstraint(
            "vote_type IN ('skip', 'vibe', 'volume', 'queue')", name="ck_session_votes_type"
        ),
    )
    op.create_index(
        "idx_session_votes_session_type", "session_votes", ["session_id", "vote_type"]
    )
    op.create_index("idx_session_votes_expires_at", "session_votes", ["expires_at"])

    # ==========================================================================
    # user_avatars / spotify_tokens
    # ==========================================================================
    op.create_table(
        "user_avatars",
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=False),
        sa.Column("original_filename", sa.Text(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        _created_at("uploaded_at"),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("username"),
    )

    op.create_table(
        "spotify_tokens",
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("refresh_token", sa.Text(), nullable=False),
        sa.Column("expires_at", TIMESTAMPTZ, nullable=False),
        sa.Column("spotify_user_id", sa.String(100), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("username"),
    )


def downgrade() -> None:
    op.drop_table("spotify_tokens")
    op.drop_table("user_avatars")
    op.drop_index("idx_session_votes_expires_at", table_name="session_votes")
    op.drop_index("idx_session_votes_session_type", table_name="session_votes")
    op.drop_table("session_votes")
    op.drop_index("idx_session_queue_session_position", table_name="session_queue")
    op.drop_table("session_queue")
    op.drop_table("session_participants")
    op.drop_index("idx_jam_sessions_host", table_name="jam_sessions")
    op.drop_table("jam_sessions")
    op.drop_index("idx_direct_messages_conversation_created", table_name="direct_messages")
    op.drop_table("direct_messages")
    op.drop_index(
        "idx_conversation_participants_username", table_name="conversation_participants"
    )
    op.drop_table("conversation_participants")
    op.drop_index("idx_conversations_updated_at", table_name="conversations")
    op.drop_table("conversations")
    op.drop_index("idx_chat_participants_last_message_at", table_name="chat_participants")
    op.drop_table("chat_participants")
    op.drop_index("idx_user_presence_last_seen", table_name="user_presence")
    op.drop_table("user_presence")
    op.drop_index("idx_messages_reply_to_id", table_name="messages")
    op.drop_index("idx_messages_created_at", table_name="messages")
    op.drop_table("messages")

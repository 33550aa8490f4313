"""Direct message conversations, DM paging, and read cursors.

A conversation is identified by the sorted username pair (user_a < user_b)
under a unique constraint. Lookup-or-create is one conflict-safe
``INSERT ... ON CONFLICT DO UPDATE ... RETURNING id``, so two users opening a
conversation with each other at the same moment converge on one id.

Read cursors only move forward: a stale client posting an older
``last_read_message_id`` is a no-op.
"""

from datetime import datetime

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, aliased

from lumi.db.models import Conversation, ConversationParticipant, DirectMessage
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.errors import ApiErrorCode, ForbiddenError, InvalidRequestError
from lumi.logging import get_logger, set_username
from lumi.schemas.conversation import (
    ConversationCreatedOut,
    ConversationSummaryOut,
    DirectMessageOut,
    ReadStatusOut,
)
from lumi.services.messages import DEFAULT_PAGE_SIZE, fetch_page
from lumi.services.validation import (
    clean,
    optional_username,
    parse_reply,
    require_username,
    validate_message_fields,
)

logger = get_logger(__name__)

ACCESS_DENIED = "Access denied to this conversation"


def sorted_pair(user1: str, user2: str) -> tuple[str, str]:
    """Canonical (user_a, user_b) ordering for an unordered pair."""
    return (user1, user2) if user1 < user2 else (user2, user1)


def get_or_create_conversation(
    db: Session, user1: str, user2: str, now: datetime | None = None
) -> int:
    """Return the conversation id for the pair, creating it if needed.

    Runs inside the caller's transaction; the caller commits.

    Raises:
        InvalidRequestError: Both usernames are the same.
    """
    if user1 == user2:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Cannot create conversation with yourself"
        )

    now = now or utcnow()
    user_a, user_b = sorted_pair(user1, user2)

    stmt = insert_for(db, Conversation).values(
        user_a=user_a, user_b=user_b, created_at=now, updated_at=now
    )
    # No-op update so RETURNING yields the existing row on conflict
    stmt = stmt.on_conflict_do_update(
        index_elements=[Conversation.user_a, Conversation.user_b],
        set_={"user_a": stmt.excluded.user_a},
    ).returning(Conversation.id)
    conversation_id = db.execute(stmt).scalar_one()

    participants = insert_for(db, ConversationParticipant).values(
        [
            {"conversation_id": conversation_id, "username": user_a, "joined_at": now},
            {"conversation_id": conversation_id, "username": user_b, "joined_at": now},
        ]
    )
    db.execute(
        participants.on_conflict_do_nothing(
            index_elements=[
                ConversationParticipant.conversation_id,
                ConversationParticipant.username,
            ]
        )
    )
    return conversation_id


def create_conversation(
    db: Session, username: str | None, recipient_username: str | None
) -> ConversationCreatedOut:
    """Open (or reopen) an empty conversation between two users."""
    username = clean(username)
    recipient = clean(recipient_username)
    if not username or not recipient:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST, "Username and recipientUsername are required"
        )
    username, recipient = require_username(username), require_username(recipient)

    with transaction(db):
        conversation_id = get_or_create_conversation(db, username, recipient)

    logger.info("conversation_opened", conversation_id=conversation_id)
    return ConversationCreatedOut(
        conversation_id=conversation_id, participants=[username, recipient]
    )


def is_participant(db: Session, conversation_id: int, username: str) -> bool:
    """Whether ``username`` belongs to the conversation."""
    found = db.scalar(
        select(ConversationParticipant.username).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.username == username,
        )
    )
    return found is not None


def require_participant(db: Session, conversation_id: int, username: str) -> None:
    """Raise ForbiddenError unless ``username`` belongs to the conversation."""
    if not is_participant(db, conversation_id, username):
        raise ForbiddenError(ApiErrorCode.E_NOT_A_PARTICIPANT, ACCESS_DENIED)


def list_conversations(db: Session, username: str) -> list[ConversationSummaryOut]:
    """Conversations of ``username`` by recent activity, with unread counts.

    Unread = messages with ``id > last_read_message_id`` not sent by the reader.
    """
    me = ConversationParticipant
    other = aliased(ConversationParticipant)

    def last_message_column(column):
        return (
            select(column)
            .where(DirectMessage.conversation_id == Conversation.id)
            .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
            .limit(1)
            .scalar_subquery()
        )

    other_username = (
        select(other.username)
        .where(other.conversation_id == Conversation.id, other.username != username)
        .limit(1)
        .scalar_subquery()
    )
    unread_count = (
        select(func.count(DirectMessage.id))
        .where(
            DirectMessage.conversation_id == Conversation.id,
            DirectMessage.id > func.coalesce(me.last_read_message_id, 0),
            DirectMessage.sender_username != username,
        )
        .scalar_subquery()
    )

    stmt = (
        select(
            Conversation.id,
            Conversation.created_at,
            Conversation.updated_at,
            other_username.label("other_username"),
            last_message_column(DirectMessage.message).label("last_message"),
            last_message_column(DirectMessage.sender_username).label("last_sender"),
            last_message_column(DirectMessage.created_at).label("last_message_at"),
            unread_count.label("unread_count"),
        )
        .join(me, me.conversation_id == Conversation.id)
        .where(me.username == username)
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
    )
    return [
        ConversationSummaryOut.model_validate(row, from_attributes=True)
        for row in db.execute(stmt)
    ]


def list_direct_messages(
    db: Session,
    conversation_id: int,
    username: str,
    since_id: int | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> list[DirectMessageOut]:
    """Page a conversation with the same cursor rules as the global room."""
    require_participant(db, conversation_id, username)
    rows = fetch_page(
        db,
        DirectMessage,
        DirectMessage.conversation_id == conversation_id,
        since_id=since_id,
        limit=limit,
    )
    return [DirectMessageOut.model_validate(row) for row in rows]


def send_direct_message(
    db: Session,
    username: str | None,
    message: str | None,
    conversation_id: int | None = None,
    recipient_username: str | None = None,
    reply_to_id: int | str | None = None,
    reply_to_username: str | None = None,
    reply_preview: str | None = None,
    image_url: str | None = None,
    image_filename: str | None = None,
    now: datetime | None = None,
) -> DirectMessageOut:
    """Send a DM, opening the conversation by recipient when no id is given.

    Raises:
        InvalidRequestError: Invalid fields or no conversation target.
        ForbiddenError: Sender is not a participant of the conversation.
    """
    username, text = validate_message_fields(username, message)
    reply_id, reply_username, preview = parse_reply(
        reply_to_id, reply_to_username, reply_preview
    )
    recipient = optional_username(recipient_username)
    set_username(username)
    now = now or utcnow()

    with transaction(db):
        if conversation_id is None and recipient:
            conversation_id = get_or_create_conversation(db, username, recipient, now=now)
        if conversation_id is None:
            raise InvalidRequestError(
                ApiErrorCode.E_INVALID_REQUEST,
                "Either conversationId or recipientUsername is required",
            )
        require_participant(db, conversation_id, username)

        row = DirectMessage(
            conversation_id=conversation_id,
            sender_username=username,
            message=text,
            created_at=now,
            reply_to_id=reply_id,
            reply_to_username=reply_username,
            reply_preview=preview,
            image_url=image_url,
            image_filename=image_filename,
        )
        db.add(row)
        db.execute(
            update(Conversation).where(Conversation.id == conversation_id).values(updated_at=now)
        )
        db.flush()

    logger.info("direct_message_sent", conversation_id=conversation_id, message_id=row.id)
    return DirectMessageOut.model_validate(row)


def mark_read(
    db: Session,
    username: str | None,
    conversation_id: int | None,
    last_read_message_id: int | None,
) -> ReadStatusOut:
    """Advance the reader's cursor to ``max(current, last_read_message_id)``."""
    username = clean(username)
    if not username or conversation_id is None or last_read_message_id is None:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_REQUEST,
            "Username, conversationId, and lastReadMessageId are required",
        )
    require_participant(db, conversation_id, username)

    cursor = ConversationParticipant.last_read_message_id
    with transaction(db):
        db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.username == username,
            )
            .values(
                last_read_message_id=case(
                    (cursor.is_(None), last_read_message_id),
                    (cursor < last_read_message_id, last_read_message_id),
                    else_=cursor,
                )
            )
        )

    stored = db.scalar(
        select(cursor).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.username == username,
        )
    )
    return ReadStatusOut(conversation_id=conversation_id, last_read_message_id=stored)


def fetch_direct_messages(
    db: Session,
    conversation_id: int | None,
    username: str | None,
    since_id: int | None = None,
) -> list[DirectMessageOut] | list[ConversationSummaryOut]:
    """GET /direct-messages: a conversation's messages, or the user's inbox."""
    username = clean(username)
    if conversation_id is not None:
        if not username:
            raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, "Username is required")
        return list_direct_messages(db, conversation_id, username, since_id=since_id)
    if username:
        return list_conversations(db, username)
    raise InvalidRequestError(
        ApiErrorCode.E_INVALID_REQUEST, "Either conversationId or username is required"
    )

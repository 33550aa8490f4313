"""Global room message service.

Cursor contract:
- ``since_id`` given: every message with ``id > since_id``, ascending by
  (created_at, id). Ids are assigned by the database, strictly increasing and
  never reused, so repeated "since last seen id" fetches are gap-free and
  duplicate-free.
- ``since`` (ISO timestamp) given instead: messages with ``created_at > since``.
- Neither: the most recent page, fetched newest-first then reversed.

Every send also bumps the sender's participant directory rollup.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from lumi.db.models import ChatParticipant, Message
from lumi.db.session import transaction
from lumi.db.types import utcnow
from lumi.db.upsert import insert_for
from lumi.logging import get_logger, set_username
from lumi.schemas.message import MessageOut
from lumi.services.validation import parse_reply, validate_message_fields

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50


def fetch_page(
    db: Session,
    model,
    *conditions,
    since_id: int | None = None,
    since: datetime | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> list:
    """Fetch one poll page of ``model`` rows (Message or DirectMessage).

    A client that has never fetched has no cursor and must take the
    recent-window path.
    """
    query = select(model).where(*conditions)
    ascending = (model.created_at.asc(), model.id.asc())

    if since_id is not None:
        return list(db.scalars(query.where(model.id > since_id).order_by(*ascending)))

    if since is not None:
        return list(db.scalars(query.where(model.created_at > since).order_by(*ascending)))

    rows = list(
        db.scalars(query.order_by(model.created_at.desc(), model.id.desc()).limit(limit))
    )
    rows.reverse()
    return rows


def message_to_out(message: Message) -> MessageOut:
    """Convert Message ORM model to MessageOut schema."""
    return MessageOut.model_validate(message)


def list_messages(
    db: Session,
    since_id: int | None = None,
    since: datetime | None = None,
    limit: int = DEFAULT_PAGE_SIZE,
) -> list[MessageOut]:
    """Return a page of global room messages in display order."""
    rows = fetch_page(db, Message, since_id=since_id, since=since, limit=limit)
    return [message_to_out(row) for row in rows]


def record_participant_activity(db: Session, username: str, now: datetime) -> None:
    """Upsert the sender's directory entry: count + 1, last_message_at = now."""
    stmt = insert_for(db, ChatParticipant).values(
        username=username,
        first_seen=now,
        last_message_at=now,
        message_count=1,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[ChatParticipant.username],
        set_={
            "last_message_at": now,
            "message_count": ChatParticipant.message_count + 1,
            "updated_at": now,
        },
    )
    db.execute(stmt)


def send_message(
    db: Session,
    username: str | None,
    message: str | None,
    reply_to_id: int | str | None = None,
    reply_to_username: str | None = None,
    reply_preview: str | None = None,
    image_url: str | None = None,
    image_filename: str | None = None,
    now: datetime | None = None,
) -> MessageOut:
    """Validate and insert a global room message.

    Raises:
        InvalidRequestError: Missing/oversized username or message, or
            incomplete reply metadata.
    """
    username, text = validate_message_fields(username, message)
    reply_id, reply_username, preview = parse_reply(
        reply_to_id, reply_to_username, reply_preview
    )
    set_username(username)
    now = now or utcnow()

    with transaction(db):
        row = Message(
            username=username,
            message=text,
            created_at=now,
            reply_to_id=reply_id,
            reply_to_username=reply_username,
            reply_preview=preview,
            image_url=image_url,
            image_filename=image_filename,
        )
        db.add(row)
        db.flush()
        record_participant_activity(db, username, now)

    logger.info(
        "message_sent",
        message_id=row.id,
        is_reply=reply_id is not None,
        has_image=image_url is not None,
    )
    return message_to_out(row)

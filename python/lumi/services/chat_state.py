"""Single-round-trip poll snapshot: messages, presence and typing."""

from datetime import datetime

from sqlalchemy.orm import Session

from lumi.db.models import USERNAME_MAX_LENGTH
from lumi.db.types import utcnow
from lumi.errors import ApiErrorCode, InvalidRequestError
from lumi.schemas.presence import ChatStateOut
from lumi.services import messages as messages_service
from lumi.services import presence as presence_service


def get_chat_state(
    db: Session,
    username: str | None,
    since_id: int | None = None,
    now: datetime | None = None,
) -> ChatStateOut:
    """Return new messages since the cursor plus who is online and typing.

    Raises:
        InvalidRequestError: Username missing, blank, or longer than 50 characters.
    """
    if not username:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, "Username is required")
    if not username.strip() or len(username) > USERNAME_MAX_LENGTH:
        raise InvalidRequestError(ApiErrorCode.E_USERNAME_INVALID, "Invalid username format")

    now = now or utcnow()
    messages = messages_service.list_messages(db, since_id=since_id)
    presence = presence_service.list_online(db, now=now)

    return ChatStateOut(
        messages=messages,
        presence=presence,
        typing=[user.username for user in presence if user.is_typing],
        timestamp=now,
    )

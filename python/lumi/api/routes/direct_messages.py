"""Direct message, conversation and read-status routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.schemas.conversation import (
    CreateConversationRequest,
    ReadStatusRequest,
    SendDirectMessageRequest,
)
from lumi.services import conversations as conversations_service
from lumi.services.validation import parse_id, parse_since_id

router = APIRouter(tags=["direct-messages"])


@router.get("/direct-messages")
def get_direct_messages(
    db: Annotated[Session, Depends(get_db)],
    username: str | None = None,
    conversation_id: Annotated[str | None, Query(alias="conversationId")] = None,
    since_id: Annotated[str | None, Query(alias="sinceId")] = None,
) -> list[dict]:
    """A conversation's messages when ``conversationId`` is given, else the inbox.

    Errors:
        E_INVALID_REQUEST (400): Neither parameter given.
        E_NOT_A_PARTICIPANT (403): Caller is not in the conversation.
    """
    results = conversations_service.fetch_direct_messages(
        db,
        conversation_id=parse_id(conversation_id, "conversationId"),
        username=username,
        since_id=parse_since_id(since_id),
    )
    return [r.model_dump(mode="json") for r in results]


@router.post("/direct-messages", status_code=201)
def send_direct_message(
    body: SendDirectMessageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Send a DM, opening the conversation by recipient if needed."""
    message = conversations_service.send_direct_message(
        db,
        username=body.username,
        message=body.message,
        conversation_id=body.conversation_id,
        recipient_username=body.recipient_username,
        reply_to_id=body.reply_to_id,
        reply_to_username=body.reply_to_username,
        reply_preview=body.reply_preview,
    )
    return message.model_dump(mode="json")


@router.post("/create-conversation", status_code=201)
def create_conversation(
    body: CreateConversationRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Open (or reopen) a conversation between two users."""
    result = conversations_service.create_conversation(
        db, username=body.username, recipient_username=body.recipient_username
    )
    return result.model_dump(mode="json")


@router.post("/dm-read-status")
def mark_read(
    body: ReadStatusRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Advance the caller's read cursor (never backwards)."""
    result = conversations_service.mark_read(
        db,
        username=body.username,
        conversation_id=body.conversation_id,
        last_read_message_id=body.last_read_message_id,
    )
    return result.model_dump(mode="json")

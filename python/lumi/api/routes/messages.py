"""Global room message routes.

Routes are transport-only: each calls exactly one service function.
Responses are the bare JSON the polling client consumes (no envelope).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.schemas.message import SendMessageRequest
from lumi.services import messages as messages_service
from lumi.services.validation import parse_since, parse_since_id

router = APIRouter(tags=["messages"])


@router.get("/messages")
def list_messages(
    db: Annotated[Session, Depends(get_db)],
    since_id: Annotated[str | None, Query(alias="sinceId")] = None,
    since: str | None = None,
) -> list[dict]:
    """Messages after the ``sinceId`` cursor, or the most recent page.

    Errors:
        E_INVALID_REQUEST (400): sinceId or since is malformed.
    """
    messages = messages_service.list_messages(
        db, since_id=parse_since_id(since_id), since=parse_since(since)
    )
    return [m.model_dump(mode="json") for m in messages]


@router.post("/messages", status_code=201)
def send_message(
    body: SendMessageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Post to the global room. Returns the created message."""
    message = messages_service.send_message(
        db,
        username=body.username,
        message=body.message,
        reply_to_id=body.reply_to_id,
        reply_to_username=body.reply_to_username,
        reply_preview=body.reply_preview,
    )
    return message.model_dump(mode="json")

"""Participant directory and chat-state snapshot routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.services import chat_state as chat_state_service
from lumi.services import presence as presence_service
from lumi.services.validation import parse_since_id

router = APIRouter(tags=["participants"])


@router.get("/participants")
def list_participants(
    db: Annotated[Session, Depends(get_db)],
    query: str = "",
    limit: str | None = None,
) -> dict:
    """Directory search ordered by presence status, then activity."""
    result = presence_service.list_participants(
        db, query=query, limit=presence_service.parse_limit(limit)
    )
    return result.model_dump(mode="json")


@router.get("/chat-state")
def get_chat_state(
    db: Annotated[Session, Depends(get_db)],
    username: str | None = None,
    since_id: Annotated[str | None, Query(alias="sinceId")] = None,
) -> dict:
    """Messages, online users and typing users in one round trip."""
    state = chat_state_service.get_chat_state(
        db, username=username, since_id=parse_since_id(since_id)
    )
    return state.model_dump(mode="json")

"""Presence heartbeat routes."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.schemas.presence import PresenceRequest
from lumi.services import presence as presence_service
from lumi.services.validation import require_username

router = APIRouter(tags=["presence"])


@router.get("/presence")
def list_presence(db: Annotated[Session, Depends(get_db)]) -> list[dict]:
    """Users heartbeated within the online window."""
    return [p.model_dump(mode="json") for p in presence_service.list_online(db)]


@router.post("/presence")
def heartbeat(
    body: PresenceRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Record a heartbeat (and typing flag when sent)."""
    presence_service.heartbeat(db, require_username(body.username), is_typing=body.is_typing)
    return {"success": True}


@router.delete("/presence")
def leave(
    db: Annotated[Session, Depends(get_db)],
    body: Annotated[PresenceRequest | None, Body()] = None,
    username: Annotated[str | None, Query()] = None,
) -> dict:
    """Remove the caller's presence row. Username may come in the body or query."""
    name = body.username if body is not None and body.username else username
    presence_service.leave(db, require_username(name))
    return {"success": True}

"""Session vote routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lumi.api.deps import get_db
from lumi.schemas.jam import CastVoteRequest, RemoveVoteRequest
from lumi.services import votes as votes_service
from lumi.services.validation import parse_id

router = APIRouter(tags=["session-votes"])


@router.get("/session-votes")
def get_votes(
    db: Annotated[Session, Depends(get_db)],
    session_id: Annotated[str | None, Query(alias="sessionId")] = None,
    vote_type: Annotated[str | None, Query(alias="voteType")] = None,
) -> dict:
    """Live tallies plus participant count and skip threshold."""
    summary = votes_service.get_votes(
        db, session_id=parse_id(session_id, "sessionId"), vote_type=vote_type
    )
    return summary.model_dump(mode="json", by_alias=True)


@router.post("/session-votes")
def cast_vote(
    body: CastVoteRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Cast or change a vote; reports when a skip or vibe vote passes."""
    result = votes_service.cast_vote(
        db,
        session_id=body.session_id,
        vote_type=body.vote_type,
        username=body.username,
        vote_target=body.vote_target,
        vote_value=body.vote_value,
        expires_in=body.expires_in,
    )
    return result.to_response()


@router.delete("/session-votes")
def remove_vote(
    body: RemoveVoteRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Withdraw a vote."""
    votes_service.remove_vote(
        db,
        session_id=body.session_id,
        vote_type=body.vote_type,
        username=body.username,
        vote_target=body.vote_target,
    )
    return {"success": True}

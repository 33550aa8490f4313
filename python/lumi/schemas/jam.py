"""Jam session, queue and vote schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Request Schemas
# =============================================================================


class TrackData(BaseModel):
    """Track identity mirrored into the session."""

    uri: str
    name: str
    artist: str


class CreateSessionRequest(BaseModel):
    """Body for POST /jam-sessions."""

    username: str | None = None
    session_name: str | None = Field(default=None, alias="sessionName")

    model_config = ConfigDict(populate_by_name=True)


class UpdateSessionRequest(BaseModel):
    """Body for PUT /jam-sessions (join / leave / updatePlayback)."""

    session_id: int | None = Field(default=None, alias="sessionId")
    action: str | None = None
    username: str | None = None
    track_data: TrackData | None = Field(default=None, alias="trackData")
    position: int | None = None
    is_playing: bool | None = Field(default=None, alias="isPlaying")
    volume: int | None = None

    model_config = ConfigDict(populate_by_name=True)


class EndSessionRequest(BaseModel):
    """Body for DELETE /jam-sessions."""

    session_id: int | None = Field(default=None, alias="sessionId")
    username: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class CastVoteRequest(BaseModel):
    """Body for POST /session-votes."""

    session_id: int | None = Field(default=None, alias="sessionId")
    vote_type: str | None = Field(default=None, alias="voteType")
    vote_target: str | None = Field(default=None, alias="voteTarget")
    username: str | None = None
    vote_value: int = Field(default=1, alias="voteValue")
    expires_in: int | None = Field(default=None, alias="expiresIn")

    model_config = ConfigDict(populate_by_name=True)


class RemoveVoteRequest(BaseModel):
    """Body for DELETE /session-votes."""

    session_id: int | None = Field(default=None, alias="sessionId")
    vote_type: str | None = Field(default=None, alias="voteType")
    vote_target: str | None = Field(default=None, alias="voteTarget")
    username: str | None = None

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Response Schemas
# =============================================================================


class JamSessionOut(BaseModel):
    """Session row as stored."""

    id: int
    host_username: str
    session_name: str
    current_track_uri: str | None = None
    current_track_name: str | None = None
    current_track_artist: str | None = None
    current_position: int
    is_playing: bool
    volume: int
    created_at: datetime
    ended_at: datetime | None = None
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class JamSessionSummaryOut(JamSessionOut):
    """Active session listing entry."""

    participant_count: int
    participant_usernames: list[str]


class SessionParticipantOut(BaseModel):
    """Listener in a session."""

    username: str
    spotify_user_id: str | None = None
    joined_at: datetime
    last_seen: datetime

    model_config = ConfigDict(from_attributes=True)


class QueueItemOut(BaseModel):
    """Queued track."""

    id: int
    session_id: int
    track_uri: str
    track_name: str
    track_artist: str
    added_by: str
    position: int
    votes: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class JamSessionDetailOut(JamSessionOut):
    """Single session with participants and queue."""

    participants: list[SessionParticipantOut]
    queue: list[QueueItemOut]


class VoteTallyOut(BaseModel):
    """Live votes grouped by (vote_type, vote_target)."""

    vote_type: str
    vote_target: str
    vote_count: int
    total_value: int
    voters: list[str]
    started_at: datetime
    expires_at: datetime | None = None


class VoteSummaryOut(BaseModel):
    """Response for GET /session-votes."""

    votes: list[VoteTallyOut]
    participant_count: int = Field(serialization_alias="participantCount")
    majority_threshold: int = Field(serialization_alias="majorityThreshold")


class VibeCountOut(BaseModel):
    """One vibe candidate's count at resolution."""

    vibe: str
    count: int


class VoteResultOut(BaseModel):
    """Response for POST /session-votes.

    Only ``success`` is present while a vote is still collecting; the other
    fields appear once a skip passes or a vibe vote resolves.
    """

    success: bool = True
    vote_passed: bool | None = Field(default=None, serialization_alias="votePassed")
    action: str | None = None
    vote_count: int | None = Field(default=None, serialization_alias="voteCount")
    required: int | None = None
    winner: str | None = None
    votes: list[VibeCountOut] | None = None

    def to_response(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting fields that are unset."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

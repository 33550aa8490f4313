"""Pydantic schemas for request/response models."""

from lumi.schemas.conversation import (
    ConversationCreatedOut,
    ConversationSummaryOut,
    CreateConversationRequest,
    DirectMessageOut,
    ReadStatusOut,
    ReadStatusRequest,
    SendDirectMessageRequest,
)
from lumi.schemas.jam import (
    CastVoteRequest,
    CreateSessionRequest,
    EndSessionRequest,
    JamSessionDetailOut,
    JamSessionOut,
    JamSessionSummaryOut,
    QueueItemOut,
    RemoveVoteRequest,
    SessionParticipantOut,
    TrackData,
    UpdateSessionRequest,
    VoteResultOut,
    VoteSummaryOut,
    VoteTallyOut,
)
from lumi.schemas.message import MessageOut, SendMessageRequest
from lumi.schemas.presence import (
    ChatStateOut,
    ParticipantListOut,
    ParticipantOut,
    PresenceOut,
    PresenceRequest,
)
from lumi.schemas.upload import UploadAvatarRequest, UploadImageRequest, UserAvatarOut

__all__ = [
    # Messages
    "MessageOut",
    "SendMessageRequest",
    # Presence
    "ChatStateOut",
    "ParticipantListOut",
    "ParticipantOut",
    "PresenceOut",
    "PresenceRequest",
    # Conversations
    "ConversationCreatedOut",
    "ConversationSummaryOut",
    "CreateConversationRequest",
    "DirectMessageOut",
    "ReadStatusOut",
    "ReadStatusRequest",
    "SendDirectMessageRequest",
    # Jam sessions
    "CastVoteRequest",
    "CreateSessionRequest",
    "EndSessionRequest",
    "JamSessionDetailOut",
    "JamSessionOut",
    "JamSessionSummaryOut",
    "QueueItemOut",
    "RemoveVoteRequest",
    "SessionParticipantOut",
    "TrackData",
    "UpdateSessionRequest",
    "VoteResultOut",
    "VoteSummaryOut",
    "VoteTallyOut",
    # Uploads
    "UploadAvatarRequest",
    "UploadImageRequest",
    "UserAvatarOut",
]

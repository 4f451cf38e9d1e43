"""
API request/response schemas.

Pydantic models for API validation and serialization. All payloads are
camelCase on the wire; routes return them with by_alias serialization.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mediator.domain.models.message import Message, MessageRole
from mediator.domain.models.participant import ParticipantRole
from mediator.domain.models.safety import SafetyAlert
from mediator.domain.models.session import (
    Session,
    SessionMode,
    SessionStage,
    SessionStatus,
)
from mediator.services.stage_machine import stage_progress


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ SESSION SCHEMAS ============


class SessionCreate(CamelModel):
    """Request to create a new session."""

    topic: Optional[str] = Field(default=None, min_length=1, max_length=500)
    mode: SessionMode = SessionMode.SOLO
    template_context: Optional[str] = Field(default=None, max_length=5000)


class SessionResponse(CamelModel):
    """Session details response."""

    id: str
    topic: str
    stage: SessionStage
    status: SessionStatus
    session_mode: SessionMode
    initiator_id: str
    initiator_name: Optional[str] = None
    current_speaker_id: Optional[str] = None
    progress: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            id=session.id,
            topic=session.topic,
            stage=session.stage,
            status=session.status,
            session_mode=session.mode,
            initiator_id=session.initiator_id,
            initiator_name=session.initiator_name,
            current_speaker_id=session.current_speaker_id,
            progress=stage_progress(session.stage),
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionListResponse(CamelModel):
    sessions: List[SessionResponse]
    total: int


class StatusChangeRequest(CamelModel):
    action: Literal["pause", "resume", "abandon"]


# ============ MESSAGE SCHEMAS ============


class MessageResponse(CamelModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    stage: SessionStage
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            session_id=message.session_id,
            role=message.role,
            content=message.content,
            stage=message.stage,
            user_id=message.user_id,
            user_name=message.author_name,
            created_at=message.created_at,
        )


class SessionCreateResponse(SessionResponse):
    welcome_message: MessageResponse


class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=5000)


class TurnResponse(CamelModel):
    user_message: MessageResponse
    assistant_message: MessageResponse
    next_stage: Optional[SessionStage] = None
    safety_alert: Optional[SafetyAlert] = None


class TypingRequest(CamelModel):
    is_typing: bool


class SuccessResponse(CamelModel):
    success: bool = True


# ============ INVITE / PARTICIPANT SCHEMAS ============


class InviteResponse(CamelModel):
    invite_code: str
    invite_url: str
    expires_at: datetime


class InviteStatusResponse(CamelModel):
    has_invite: bool
    invite_code: Optional[str] = None
    invite_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_expired: bool = False


class InvitePreviewResponse(CamelModel):
    id: str
    topic: str
    initiator_name: str
    status: SessionStatus
    created_at: datetime


class JoinRequest(CamelModel):
    invite_code: str = Field(..., min_length=1, max_length=64)
    display_name: Optional[str] = Field(default=None, max_length=100)


class JoinResponse(CamelModel):
    success: bool = True
    session_id: str


class ParticipantResponse(CamelModel):
    user_id: str
    role: ParticipantRole
    display_name: Optional[str] = None
    joined_at: datetime
    last_seen_at: Optional[datetime] = None
    is_active: bool
    is_online: bool


class ParticipantListResponse(CamelModel):
    participants: List[ParticipantResponse]
    session_mode: SessionMode
    is_collaborative: bool


# ============ SETTINGS SCHEMAS ============


class PreviewResponse(CamelModel):
    prompt: str

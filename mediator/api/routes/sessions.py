"""
Session API routes.

Endpoints for session lifecycle, message history and turn processing.
"""

from fastapi import APIRouter, status
import structlog

from mediator.api.dependencies import CurrentUserDep, SessionServiceDep
from mediator.api.schemas import (
    MessageCreate,
    MessageResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionListResponse,
    SessionResponse,
    StatusChangeRequest,
    SuccessResponse,
    TurnResponse,
    TypingRequest,
)
from mediator.core.logging import bind_context

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ============ SESSION CRUD ============


@router.post(
    "",
    response_model=SessionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    request: SessionCreate,
    user: CurrentUserDep,
    service: SessionServiceDep,
):
    """Create a session at intake and return it with its welcome message."""
    session, welcome = await service.create_session(
        user_id=user.id,
        user_name=user.name,
        topic=request.topic,
        mode=request.mode,
        template_context=request.template_context,
    )
    base = SessionResponse.from_session(session)
    return SessionCreateResponse(
        **base.model_dump(),
        welcome_message=MessageResponse.from_message(welcome),
    )


@router.get("", response_model=SessionListResponse)
async def list_sessions(user: CurrentUserDep, service: SessionServiceDep):
    """Sessions the caller initiated or joined, newest first."""
    sessions = await service.list_sessions(user.id)
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, user: CurrentUserDep, service: SessionServiceDep):
    session = await service.get_session(session_id, user.id)
    return SessionResponse.from_session(session)


@router.post("/{session_id}/status", response_model=SessionResponse)
async def change_status(
    session_id: str,
    request: StatusChangeRequest,
    user: CurrentUserDep,
    service: SessionServiceDep,
):
    """Pause, resume or abandon a session."""
    session = await service.change_status(session_id, user.id, request.action)
    return SessionResponse.from_session(session)


# ============ MESSAGES ============


@router.get("/{session_id}/messages", response_model=list[MessageResponse])
async def get_messages(session_id: str, user: CurrentUserDep, service: SessionServiceDep):
    """Full ordered history. Clients refetch this on (re)connect."""
    messages = await service.get_messages(session_id, user.id)
    return [MessageResponse.from_message(m) for m in messages]


@router.post("/{session_id}/messages", response_model=TurnResponse)
async def submit_message(
    session_id: str,
    request: MessageCreate,
    user: CurrentUserDep,
    service: SessionServiceDep,
):
    """
    Process one utterance.

    On generation failure nothing is stored and the error body says why.
    """
    bind_context(session_id=session_id)
    result = await service.submit_message(
        session_id=session_id,
        user_id=user.id,
        content=request.content,
        user_name=user.name,
    )
    return TurnResponse(
        user_message=MessageResponse.from_message(result.user_message),
        assistant_message=MessageResponse.from_message(result.assistant_message),
        next_stage=result.next_stage,
        safety_alert=result.safety_alert,
    )


@router.post("/{session_id}/typing", response_model=SuccessResponse)
async def typing(
    session_id: str,
    request: TypingRequest,
    user: CurrentUserDep,
    service: SessionServiceDep,
):
    await service.set_typing(session_id, user.id, request.is_typing, user.name)
    return SuccessResponse()

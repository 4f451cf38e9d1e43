"""Participant and presence routes."""

from fastapi import APIRouter

from mediator.api.dependencies import CurrentUserDep, ParticipantServiceDep
from mediator.api.schemas import (
    ParticipantListResponse,
    ParticipantResponse,
    SuccessResponse,
)

router = APIRouter(prefix="/sessions", tags=["participants"])


@router.get("/{session_id}/participants", response_model=ParticipantListResponse)
async def list_participants(
    session_id: str,
    user: CurrentUserDep,
    service: ParticipantServiceDep,
):
    """Participants with liveness. Also counts as the caller's heartbeat."""
    session = await service.get_session(session_id)
    views = await service.list_participants(session_id, user.id)
    return ParticipantListResponse(
        participants=[ParticipantResponse(**v.model_dump()) for v in views],
        session_mode=session.mode,
        is_collaborative=session.is_collaborative,
    )


@router.post("/{session_id}/heartbeat", response_model=SuccessResponse)
async def heartbeat(session_id: str, user: CurrentUserDep, service: ParticipantServiceDep):
    await service.heartbeat(session_id, user.id)
    return SuccessResponse()


@router.post("/{session_id}/leave", response_model=SuccessResponse)
async def leave(session_id: str, user: CurrentUserDep, service: ParticipantServiceDep):
    await service.leave(session_id, user.id)
    return SuccessResponse()

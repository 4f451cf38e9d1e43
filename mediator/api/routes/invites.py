"""
Invite and join routes.

The join endpoints live under /sessions/join and must be registered before
the /sessions/{session_id} routes.
"""

from typing import Optional

from fastapi import APIRouter, Query, status
import structlog

from mediator.api.dependencies import CurrentUserDep, ParticipantServiceDep
from mediator.api.schemas import (
    InvitePreviewResponse,
    InviteResponse,
    InviteStatusResponse,
    JoinRequest,
    JoinResponse,
    SuccessResponse,
)

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["invites"])


@router.get("/join", response_model=Optional[InvitePreviewResponse])
async def preview_invite(
    service: ParticipantServiceDep,
    code: str = Query(..., min_length=1, max_length=64),
):
    """Preview a session before joining. Returns null for unknown or expired codes."""
    preview = await service.preview_invite(code)
    if preview is None:
        return None
    return InvitePreviewResponse(**preview.model_dump())


@router.post("/join", response_model=JoinResponse)
async def join_session(
    request: JoinRequest,
    user: CurrentUserDep,
    service: ParticipantServiceDep,
):
    session_id = await service.join_by_invite_code(
        request.invite_code, user.id, request.display_name or user.name
    )
    return JoinResponse(session_id=session_id)


@router.post(
    "/{session_id}/invite",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_invite(
    session_id: str,
    user: CurrentUserDep,
    service: ParticipantServiceDep,
):
    invite = await service.generate_invite(session_id, user.id)
    return InviteResponse(
        invite_code=invite.code,
        invite_url=invite.url,
        expires_at=invite.expires_at,
    )


@router.get("/{session_id}/invite", response_model=InviteStatusResponse)
async def invite_status(
    session_id: str,
    user: CurrentUserDep,
    service: ParticipantServiceDep,
):
    result = await service.invite_status(session_id, user.id)
    return InviteStatusResponse(**result.model_dump())


@router.delete("/{session_id}/invite", response_model=SuccessResponse)
async def revoke_invite(
    session_id: str,
    user: CurrentUserDep,
    service: ParticipantServiceDep,
):
    await service.revoke_invite(session_id, user.id)
    return SuccessResponse()

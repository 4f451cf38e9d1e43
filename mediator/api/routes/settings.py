"""
Mediator settings routes.

GET    /settings/mediator          - current profile (defaults until first update)
PUT    /settings/mediator          - partial update
DELETE /settings/mediator          - reset to defaults
GET    /settings/mediator/options  - presets and UI labels
POST   /settings/mediator/preview  - composed instruction text for a profile
"""

from typing import Any, Dict

from fastapi import APIRouter

from mediator.api.dependencies import CurrentUserDep, SettingsServiceDep
from mediator.api.schemas import PreviewResponse
from mediator.domain.models.personality import PersonalityProfile, PersonalityUpdate
from mediator.services.settings_service import SettingsService

router = APIRouter(prefix="/settings/mediator", tags=["settings"])


@router.get("", response_model=PersonalityProfile)
async def get_mediator_settings(user: CurrentUserDep, service: SettingsServiceDep):
    return await service.get(user.id)


@router.put("", response_model=PersonalityProfile)
async def update_mediator_settings(
    request: PersonalityUpdate,
    user: CurrentUserDep,
    service: SettingsServiceDep,
):
    return await service.update(user.id, request)


@router.delete("", response_model=PersonalityProfile)
async def reset_mediator_settings(user: CurrentUserDep, service: SettingsServiceDep):
    return await service.reset(user.id)


@router.get("/options")
async def get_options() -> Dict[str, Any]:
    return SettingsService.options()


@router.post("/preview", response_model=PreviewResponse)
async def preview(profile: PersonalityProfile):
    return PreviewResponse(prompt=SettingsService.preview(profile))

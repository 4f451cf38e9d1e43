"""Mediator personality settings: read, partial update, reset, preview."""

from typing import Any, Dict

import structlog

from mediator.domain.models.personality import (
    DEFAULT_PERSONALITY,
    PersonalityProfile,
    PersonalityUpdate,
)
from mediator.llm.prompts.personality import (
    FORMALITY_DESCRIPTIONS,
    PERSONALITY_PRESETS,
    RESPONSE_LENGTH_DESCRIPTIONS,
    TONE_DESCRIPTIONS,
    compose_personality_prompt,
)
from mediator.persistence.repositories.settings_repo import SettingsRepository

log = structlog.get_logger(__name__)


class SettingsService:
    """Per-user personality profile. Defaults are returned until first update."""

    def __init__(self, settings_repo: SettingsRepository):
        self.repo = settings_repo

    async def get(self, user_id: str) -> PersonalityProfile:
        return await self.repo.get(user_id) or DEFAULT_PERSONALITY

    async def update(self, user_id: str, update: PersonalityUpdate) -> PersonalityProfile:
        """Apply only the fields present in the request."""
        current = await self.get(user_id)
        # An explicit null only clears the free-text field
        changes = {
            k: v
            for k, v in update.model_dump(exclude_unset=True).items()
            if v is not None or k == "cultural_context"
        }
        profile = PersonalityProfile.model_validate(
            {**current.model_dump(), **changes}
        )
        await self.repo.upsert(user_id, profile)
        log.info("mediator_settings_updated", fields=sorted(changes))
        return profile

    async def reset(self, user_id: str) -> PersonalityProfile:
        await self.repo.delete(user_id)
        log.info("mediator_settings_reset")
        return DEFAULT_PERSONALITY

    @staticmethod
    def preview(profile: PersonalityProfile) -> str:
        return compose_personality_prompt(profile)

    @staticmethod
    def options() -> Dict[str, Any]:
        """Presets and label/description tables for the settings UI."""
        return {
            "presets": {
                name: preset.model_dump(mode="json", by_alias=True)
                for name, preset in PERSONALITY_PRESETS.items()
            },
            "tones": {k.value: v for k, v in TONE_DESCRIPTIONS.items()},
            "formalities": {k.value: v for k, v in FORMALITY_DESCRIPTIONS.items()},
            "responseLengths": {
                k.value: v for k, v in RESPONSE_LENGTH_DESCRIPTIONS.items()
            },
            "defaults": DEFAULT_PERSONALITY.model_dump(mode="json", by_alias=True),
        }

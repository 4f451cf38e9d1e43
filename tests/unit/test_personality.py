"""Tests for the personality composer and settings service."""

import pytest

from mediator.domain.models.personality import (
    DEFAULT_PERSONALITY,
    MediatorFormality,
    MediatorResponseLength,
    MediatorTone,
    PersonalityProfile,
    PersonalityUpdate,
)
from mediator.llm.prompts.personality import (
    EMOJI_OFF,
    EMOJI_ON,
    PERSONALITY_PRESETS,
    TONE_PROMPTS,
    compose_personality_prompt,
)


class TestComposePersonalityPrompt:
    def test_identical_profiles_compose_identically(self):
        a = PersonalityProfile(tone=MediatorTone.GENTLE, cultural_context="Family-first")
        b = PersonalityProfile(tone=MediatorTone.GENTLE, cultural_context="Family-first")
        assert compose_personality_prompt(a) == compose_personality_prompt(b)

    def test_emoji_flag_changes_only_emoji_section(self):
        off = compose_personality_prompt(DEFAULT_PERSONALITY)
        on = compose_personality_prompt(DEFAULT_PERSONALITY.model_copy(update={"use_emoji": True}))

        off_sections = off.split("\n\n")
        on_sections = on.split("\n\n")
        assert len(off_sections) == len(on_sections)

        differing = [i for i, (x, y) in enumerate(zip(off_sections, on_sections)) if x != y]
        assert len(differing) == 1
        assert off_sections[differing[0]] == EMOJI_OFF
        assert on_sections[differing[0]] == EMOJI_ON

    def test_section_order(self):
        text = compose_personality_prompt(DEFAULT_PERSONALITY)
        headings = [line for line in text.split("\n\n") if line.startswith("## ")]
        assert headings == [
            "## Communication Style",
            "## Language Formality",
            "## Response Length",
            "## Emoji Usage",
            "## Metaphors and Analogies",
        ]

    def test_tone_text_is_selected_by_key(self):
        text = compose_personality_prompt(
            PersonalityProfile(tone=MediatorTone.DIRECT)
        )
        assert TONE_PROMPTS[MediatorTone.DIRECT] in text
        assert TONE_PROMPTS[MediatorTone.WARM] not in text

    def test_cultural_context_appended_verbatim(self):
        text = compose_personality_prompt(
            PersonalityProfile(cultural_context="We avoid direct confrontation")
        )
        assert text.split("\n\n")[-2] == "## Cultural Considerations"
        assert '"We avoid direct confrontation"' in text

    def test_no_cultural_section_without_context(self):
        assert "Cultural Considerations" not in compose_personality_prompt(DEFAULT_PERSONALITY)

    def test_presets_cover_four_styles(self):
        assert set(PERSONALITY_PRESETS) == {
            "warm-casual",
            "professional-formal",
            "direct-concise",
            "gentle-supportive",
        }


class TestProfileModel:
    def test_defaults(self):
        assert DEFAULT_PERSONALITY.tone == MediatorTone.WARM
        assert DEFAULT_PERSONALITY.formality == MediatorFormality.BALANCED
        assert DEFAULT_PERSONALITY.response_length == MediatorResponseLength.MODERATE
        assert DEFAULT_PERSONALITY.use_emoji is False
        assert DEFAULT_PERSONALITY.use_metaphors is True
        assert DEFAULT_PERSONALITY.cultural_context is None

    def test_camel_case_wire_format(self):
        data = DEFAULT_PERSONALITY.model_dump(by_alias=True)
        assert "responseLength" in data
        assert "useEmoji" in data
        assert "culturalContext" in data

    def test_rejects_unknown_tone(self):
        with pytest.raises(ValueError):
            PersonalityProfile(tone="sarcastic")


class TestSettingsService:
    async def test_defaults_until_first_update(self, settings_service):
        assert await settings_service.get("user-1") == DEFAULT_PERSONALITY

    async def test_partial_update_keeps_other_fields(self, settings_service):
        await settings_service.update(
            "user-1", PersonalityUpdate(tone=MediatorTone.DIRECT, cultural_context="Quebec")
        )
        updated = await settings_service.update(
            "user-1", PersonalityUpdate.model_validate({"useEmoji": True})
        )

        assert updated.tone == MediatorTone.DIRECT
        assert updated.use_emoji is True
        assert updated.cultural_context == "Quebec"
        assert await settings_service.get("user-1") == updated

    async def test_explicit_null_clears_cultural_context(self, settings_service):
        await settings_service.update("user-1", PersonalityUpdate(cultural_context="Quebec"))
        updated = await settings_service.update(
            "user-1", PersonalityUpdate.model_validate({"culturalContext": None})
        )
        assert updated.cultural_context is None

    async def test_settings_are_per_user(self, settings_service):
        await settings_service.update("user-1", PersonalityUpdate(use_emoji=True))
        assert (await settings_service.get("user-2")).use_emoji is False

    async def test_reset_restores_defaults(self, settings_service):
        await settings_service.update("user-1", PersonalityUpdate(tone=MediatorTone.GENTLE))
        assert await settings_service.reset("user-1") == DEFAULT_PERSONALITY
        assert await settings_service.get("user-1") == DEFAULT_PERSONALITY

    def test_options_lists_presets_and_labels(self, settings_service):
        options = settings_service.options()
        assert "warm-casual" in options["presets"]
        assert options["tones"]["warm"]["label"] == "Warm"
        assert options["defaults"]["responseLength"] == "moderate"

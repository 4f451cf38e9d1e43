"""Mediator personality profile.

Per-user configuration shaping mediator replies. Created with defaults on
first use, mutated from settings, reset by replacing with defaults.
Serialized in camelCase (responseLength, useEmoji, ...) on the wire.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MediatorTone(str, Enum):
    WARM = "warm"
    PROFESSIONAL = "professional"
    DIRECT = "direct"
    GENTLE = "gentle"


class MediatorFormality(str, Enum):
    CASUAL = "casual"
    BALANCED = "balanced"
    FORMAL = "formal"


class MediatorResponseLength(str, Enum):
    CONCISE = "concise"
    MODERATE = "moderate"
    DETAILED = "detailed"


class PersonalityProfile(BaseModel):
    """Tone / formality / length / emoji / metaphor / cultural context."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    tone: MediatorTone = MediatorTone.WARM
    formality: MediatorFormality = MediatorFormality.BALANCED
    response_length: MediatorResponseLength = MediatorResponseLength.MODERATE
    use_emoji: bool = False
    use_metaphors: bool = True
    cultural_context: Optional[str] = Field(default=None, max_length=1000)


class PersonalityUpdate(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tone: Optional[MediatorTone] = None
    formality: Optional[MediatorFormality] = None
    response_length: Optional[MediatorResponseLength] = None
    use_emoji: Optional[bool] = None
    use_metaphors: Optional[bool] = None
    cultural_context: Optional[str] = Field(default=None, max_length=1000)


DEFAULT_PERSONALITY = PersonalityProfile()

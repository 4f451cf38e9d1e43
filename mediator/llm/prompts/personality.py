"""
Personality instruction composer.

compose_personality_prompt() turns a PersonalityProfile into an ordered set
of labeled sections. Every section is a fixed string selected by enum key;
the only interpolation is the verbatim cultural-context quote. Output is
byte-identical for identical profiles, which the settings preview relies on.
"""

from typing import Dict, List

from mediator.domain.models.personality import (
    MediatorFormality,
    MediatorResponseLength,
    MediatorTone,
    PersonalityProfile,
)


TONE_PROMPTS: Dict[MediatorTone, str] = {
    MediatorTone.WARM: (
        "Use a warm, empathetic tone throughout your responses. Express genuine care "
        "and understanding.\nMake the user feel heard and supported. Use phrases like "
        '"I understand," "That sounds difficult," and "Thank you for sharing."'
    ),
    MediatorTone.PROFESSIONAL: (
        "Maintain a professional, composed tone. Be supportive but businesslike.\n"
        "Keep responses focused and structured. Use clear, respectful language "
        "without being cold or distant."
    ),
    MediatorTone.DIRECT: (
        "Be direct and straightforward in your communication. Get to the point "
        "efficiently while remaining respectful.\nAvoid excessive hedging or "
        "over-explanation. State observations and suggestions clearly."
    ),
    MediatorTone.GENTLE: (
        "Use an especially gentle, nurturing tone. Be extra careful with sensitive "
        "topics and emotions.\nSpeak softly and reassuringly. Validate feelings "
        "frequently and create a very safe, non-judgmental space."
    ),
}

FORMALITY_PROMPTS: Dict[MediatorFormality, str] = {
    MediatorFormality.CASUAL: (
        "Use casual, conversational language. Feel free to use contractions and "
        "informal expressions.\nWrite as if having a friendly conversation. Avoid "
        "stiff or overly academic language."
    ),
    MediatorFormality.BALANCED: (
        "Use a balanced mix of professional and conversational language.\nBe "
        "approachable but maintain appropriate boundaries. Adapt your formality to "
        "match the user's style."
    ),
    MediatorFormality.FORMAL: (
        "Use formal, proper language throughout. Maintain professional decorum.\n"
        "Avoid contractions and colloquialisms. Use complete sentences and proper "
        "grammar at all times."
    ),
}

RESPONSE_LENGTH_PROMPTS: Dict[MediatorResponseLength, str] = {
    MediatorResponseLength.CONCISE: (
        "Keep responses brief and focused. Aim for 2-3 sentences when possible.\n"
        "Get to the essential point quickly. Only elaborate when absolutely necessary."
    ),
    MediatorResponseLength.MODERATE: (
        "Provide balanced responses with enough detail to be helpful but not "
        "overwhelming.\nUse 3-5 sentences typically. Include relevant context and "
        "explanation."
    ),
    MediatorResponseLength.DETAILED: (
        "Provide thorough, comprehensive responses. Take time to fully explore each "
        "topic.\nInclude examples, context, and nuanced explanations. Don't rush "
        "through important points."
    ),
}

EMOJI_ON = (
    "Feel free to use appropriate emojis sparingly to add warmth and "
    "expressiveness. Use them to emphasize emotions or soften messages, but don't "
    "overuse them."
)
EMOJI_OFF = (
    "Do not use emojis in your responses. Keep communication text-based and "
    "professional."
)

METAPHORS_ON = (
    "Use metaphors and analogies when they can help clarify concepts or make "
    "abstract ideas more relatable. Draw from everyday experiences to illustrate "
    "points about communication and relationships."
)
METAPHORS_OFF = (
    "Avoid using metaphors or analogies. Communicate ideas directly and literally. "
    "Focus on clear, straightforward explanations."
)


def compose_personality_prompt(profile: PersonalityProfile) -> str:
    """
    Build the personality instruction block for a profile.

    Args:
        profile: The user's mediator personality

    Returns:
        Sections joined by a blank line
    """
    sections: List[str] = [
        "## Communication Style",
        TONE_PROMPTS[profile.tone],
        "## Language Formality",
        FORMALITY_PROMPTS[profile.formality],
        "## Response Length",
        RESPONSE_LENGTH_PROMPTS[profile.response_length],
        "## Emoji Usage",
        EMOJI_ON if profile.use_emoji else EMOJI_OFF,
        "## Metaphors and Analogies",
        METAPHORS_ON if profile.use_metaphors else METAPHORS_OFF,
    ]

    if profile.cultural_context:
        sections.append("## Cultural Considerations")
        sections.append(
            "The user has noted the following cultural context to consider: "
            f'"{profile.cultural_context}". Be mindful of this in your '
            "communication style and recommendations."
        )

    return "\n\n".join(sections)


# =============================================================================
# Presets and display tables for the settings UI
# =============================================================================

PERSONALITY_PRESETS: Dict[str, PersonalityProfile] = {
    "warm-casual": PersonalityProfile(
        tone=MediatorTone.WARM,
        formality=MediatorFormality.CASUAL,
        response_length=MediatorResponseLength.MODERATE,
        use_emoji=True,
        use_metaphors=True,
    ),
    "professional-formal": PersonalityProfile(
        tone=MediatorTone.PROFESSIONAL,
        formality=MediatorFormality.FORMAL,
        response_length=MediatorResponseLength.DETAILED,
        use_emoji=False,
        use_metaphors=False,
    ),
    "direct-concise": PersonalityProfile(
        tone=MediatorTone.DIRECT,
        formality=MediatorFormality.BALANCED,
        response_length=MediatorResponseLength.CONCISE,
        use_emoji=False,
        use_metaphors=False,
    ),
    "gentle-supportive": PersonalityProfile(
        tone=MediatorTone.GENTLE,
        formality=MediatorFormality.CASUAL,
        response_length=MediatorResponseLength.DETAILED,
        use_emoji=True,
        use_metaphors=True,
    ),
}

TONE_DESCRIPTIONS: Dict[MediatorTone, Dict[str, str]] = {
    MediatorTone.WARM: {
        "label": "Warm",
        "description": "Empathetic and caring, like talking to a supportive friend",
    },
    MediatorTone.PROFESSIONAL: {
        "label": "Professional",
        "description": "Composed and structured, like a skilled counselor",
    },
    MediatorTone.DIRECT: {
        "label": "Direct",
        "description": "Straightforward and efficient, getting to the point",
    },
    MediatorTone.GENTLE: {
        "label": "Gentle",
        "description": "Extra soft and nurturing, very careful with sensitive topics",
    },
}

FORMALITY_DESCRIPTIONS: Dict[MediatorFormality, Dict[str, str]] = {
    MediatorFormality.CASUAL: {
        "label": "Casual",
        "description": "Relaxed and conversational",
    },
    MediatorFormality.BALANCED: {
        "label": "Balanced",
        "description": "Mix of professional and approachable",
    },
    MediatorFormality.FORMAL: {
        "label": "Formal",
        "description": "Proper and professional language",
    },
}

RESPONSE_LENGTH_DESCRIPTIONS: Dict[MediatorResponseLength, Dict[str, str]] = {
    MediatorResponseLength.CONCISE: {
        "label": "Concise",
        "description": "Brief and to the point",
    },
    MediatorResponseLength.MODERATE: {
        "label": "Moderate",
        "description": "Balanced detail level",
    },
    MediatorResponseLength.DETAILED: {
        "label": "Detailed",
        "description": "Thorough explanations",
    },
}

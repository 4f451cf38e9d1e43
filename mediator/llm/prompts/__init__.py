# noqa
from mediator.llm.prompts.mediator import (
    get_advance_directive,
    get_stage_prompt,
    get_system_prompt,
    get_welcome_prompt,
)
from mediator.llm.prompts.personality import compose_personality_prompt
from mediator.llm.prompts.safety import get_safety_user_prompt, parse_safety_response

__all__ = [
    "get_advance_directive",
    "get_stage_prompt",
    "get_system_prompt",
    "get_welcome_prompt",
    "compose_personality_prompt",
    "get_safety_user_prompt",
    "parse_safety_response",
]

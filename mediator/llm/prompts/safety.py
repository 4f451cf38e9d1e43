"""
Prompts and response parsing for utterance safety classification.

The classifier is asked for a fixed JSON shape. Models sometimes wrap the
object in markdown fences or add prose around it, so parsing extracts the
first JSON object before validating it.
"""

import json
import re

from pydantic import ValidationError as PydanticValidationError

from mediator.core.exceptions import LLMResponseParseError
from mediator.domain.models.safety import SafetyVerdict


SAFETY_PROMPT = """Analyze the message for safety concerns. Return a JSON response:
{
  "safe": true/false,
  "concerns": {
    "crisis": false,
    "abuse": false,
    "escalation": false
  },
  "reason": "explanation if not safe"
}

Crisis indicators: mentions of suicide, self-harm, wanting to die, feeling hopeless
Abuse indicators: physical violence, controlling behavior, isolation, fear of partner
Escalation indicators: threats, extreme profanity, refusing to engage constructively

Only flag genuine concerns, not normal conflict or negative emotions."""

CRISIS_RESOURCES = """
I'm concerned about what you've shared. Your safety is the priority.

If you're in immediate danger, please call 911 or your local emergency number.

Resources:
- National Suicide Prevention Lifeline: 988 (US)
- Crisis Text Line: Text HOME to 741741
- National Domestic Violence Hotline: 1-800-799-7233
- International Association for Suicide Prevention: https://www.iasp.info/resources/Crisis_Centres/

This tool is designed for communication coaching, not crisis intervention. Please reach out to a professional if you're struggling.

Would you like to continue with a different topic, or would you prefer to end this session?"""

DEESCALATION_MESSAGE = """I notice things are getting heated. Let's take a moment to breathe.

Remember, the goal isn't to win - it's to understand each other better. Would you like to:
1. Take a short break and come back in a few minutes
2. Rephrase your thoughts more calmly
3. Move to a different aspect of the situation

What feels right to you?"""

CRISIS_ALERT_MESSAGE = "Crisis indicators detected"
ABUSE_ALERT_MESSAGE = "Potential abuse indicators detected"
ESCALATION_ALERT_MESSAGE = "Escalation detected"

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def get_safety_user_prompt(utterance: str) -> str:
    return f'{SAFETY_PROMPT}\n\nMessage to analyze: "{utterance}"'


def _extract_json_object(text: str) -> str:
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    if start == -1:
        raise LLMResponseParseError("No JSON object in safety response")

    # Walk braces to find the end of the first balanced object
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    raise LLMResponseParseError("Unterminated JSON object in safety response")


def parse_safety_response(text: str) -> SafetyVerdict:
    """
    Parse classifier output into a SafetyVerdict.

    Raises:
        LLMResponseParseError: If no valid verdict object can be extracted
    """
    raw = _extract_json_object(text or "")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LLMResponseParseError(f"Invalid JSON in safety response: {e}") from e

    if not isinstance(data, dict) or "safe" not in data:
        raise LLMResponseParseError("Safety response missing 'safe' field")

    try:
        return SafetyVerdict.model_validate(data)
    except PydanticValidationError as e:
        raise LLMResponseParseError(f"Safety response failed validation: {e}") from e

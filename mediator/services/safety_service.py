"""
Safety classifier for inbound utterances.

One call to the "safety" LLM client per utterance. Classification failure
is recovered here: with the default policy (safety.fail_open) any client
error or unusable output yields the all-clear verdict and a warning log.
With fail_open disabled the failure surfaces as SafetyCheckUnavailableError.
"""

from typing import Optional

import structlog

from mediator.core.config import SafetyConfig, mediator_config
from mediator.core.exceptions import SafetyCheckUnavailableError
from mediator.domain.models.safety import (
    SafetyAlert,
    SafetyAlertType,
    SafetyVerdict,
)
from mediator.llm.client import LLMClient
from mediator.llm.prompts.safety import (
    ABUSE_ALERT_MESSAGE,
    CRISIS_ALERT_MESSAGE,
    CRISIS_RESOURCES,
    DEESCALATION_MESSAGE,
    ESCALATION_ALERT_MESSAGE,
    get_safety_user_prompt,
    parse_safety_response,
)

log = structlog.get_logger(__name__)


class SafetyClassifier:
    """Stateless crisis / abuse / escalation classifier."""

    def __init__(self, llm_client: LLMClient, config: Optional[SafetyConfig] = None):
        self.llm = llm_client
        self.config = config or mediator_config.safety

    async def classify(self, utterance: str) -> SafetyVerdict:
        """
        Classify a single utterance.

        Raises:
            SafetyCheckUnavailableError: Only when fail_open is disabled
        """
        try:
            response = await self.llm.complete(get_safety_user_prompt(utterance))
            verdict = parse_safety_response(response.content)
        except Exception as e:
            if not self.config.fail_open:
                log.error(
                    "safety_check_unavailable",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise SafetyCheckUnavailableError(
                    "Safety check is temporarily unavailable. Please try again."
                ) from e
            log.warning(
                "safety_check_failed_open",
                error=str(e),
                error_type=type(e).__name__,
            )
            return SafetyVerdict.fail_open()

        if verdict.blocks_conversation:
            log.info(
                "safety_concern_detected",
                crisis=verdict.concerns.crisis,
                abuse=verdict.concerns.abuse,
                escalation=verdict.concerns.escalation,
            )
        return verdict


def short_circuit(verdict: SafetyVerdict) -> Optional[tuple[str, SafetyAlert]]:
    """
    Fixed reply and alert for a blocking verdict.

    Crisis takes precedence over abuse, abuse over escalation.

    Returns:
        (message, alert), or None when the conversation may proceed
    """
    if not verdict.blocks_conversation:
        return None

    concerns = verdict.concerns
    if concerns.crisis:
        return CRISIS_RESOURCES, SafetyAlert(
            type=SafetyAlertType.CRISIS, message=CRISIS_ALERT_MESSAGE
        )
    if concerns.abuse:
        return CRISIS_RESOURCES, SafetyAlert(
            type=SafetyAlertType.ABUSE, message=ABUSE_ALERT_MESSAGE
        )
    return DEESCALATION_MESSAGE, SafetyAlert(
        type=SafetyAlertType.ESCALATION, message=ESCALATION_ALERT_MESSAGE
    )

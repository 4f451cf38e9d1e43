"""
Conversation orchestrator: one mediated turn.

respond() composes the safety classifier, personality composer, stage
instructions, one completion call and the stage machine:

1. Classify the utterance. A blocking verdict returns a fixed message with
   no stage change and no completion call.
2. Map history to completion turns and append the utterance.
3. Build the system instruction for the session mode.
4. Call the generation client once (no local retry).
5. Run the stage machine on the reply.

Nothing is persisted here; SessionService commits the result.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import structlog

from mediator.core.config import HistoryConfig, mediator_config
from mediator.core.exceptions import (
    GenerationError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from mediator.domain.models.message import Message, MessageRole
from mediator.domain.models.personality import DEFAULT_PERSONALITY, PersonalityProfile
from mediator.domain.models.safety import SafetyAlert, SafetyVerdict
from mediator.domain.models.session import SessionMode, SessionStage
from mediator.llm.client import ChatTurn, LLMClient
from mediator.llm.prompts.mediator import (
    FALLBACK_WELCOME,
    get_advance_directive,
    get_stage_prompt,
    get_system_prompt,
    get_welcome_prompt,
)
from mediator.llm.prompts.personality import compose_personality_prompt
from mediator.services.safety_service import SafetyClassifier, short_circuit
from mediator.services.stage_machine import StageMachine, is_terminal

log = structlog.get_logger(__name__)

WELCOME_MAX_TOKENS = 512

# Completion APIs expect the first turn to come from the user
SESSION_OPENER = "[Session started]"


@dataclass
class MediatorReply:
    """Outcome of one turn."""

    message: str
    next_stage: Optional[SessionStage] = None  # set only when different from current
    safety_alert: Optional[SafetyAlert] = None
    verdict: Optional[SafetyVerdict] = None

    @property
    def short_circuited(self) -> bool:
        return self.safety_alert is not None


def format_user_turn(content: str, speaker_name: Optional[str], mode: SessionMode) -> str:
    """Prefix the speaker's name in collaborative mode so the model can tell them apart."""
    if mode == SessionMode.COLLABORATIVE:
        return f"{speaker_name or 'Participant'}: {content}"
    return content


def build_history_turns(history: Sequence[Message], mode: SessionMode) -> List[ChatTurn]:
    """
    Map stored messages to completion turns.

    System messages are skipped and consecutive same-role turns are merged.
    """
    turns: List[ChatTurn] = []
    for msg in history:
        if msg.role == MessageRole.SYSTEM:
            continue
        if msg.role == MessageRole.USER:
            content = format_user_turn(msg.content, msg.author_name, mode)
        else:
            content = msg.content
        role = msg.role.value
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] = f"{turns[-1]['content']}\n\n{content}"
        else:
            turns.append({"role": role, "content": content})

    if turns and turns[0]["role"] != MessageRole.USER.value:
        turns.insert(0, {"role": MessageRole.USER.value, "content": SESSION_OPENER})
    return turns


class ConversationService:
    """Turn-taking function: (history, utterance) -> reply, stage change, alert."""

    def __init__(
        self,
        llm_client: LLMClient,
        safety: SafetyClassifier,
        stage_machine: Optional[StageMachine] = None,
        history_config: Optional[HistoryConfig] = None,
    ):
        self.llm = llm_client
        self.safety = safety
        self.stage_machine = stage_machine or StageMachine()
        self.history_config = history_config or mediator_config.history

    def build_system_instruction(
        self,
        stage: SessionStage,
        profile: PersonalityProfile,
        mode: SessionMode,
    ) -> str:
        parts = [
            get_system_prompt(mode),
            compose_personality_prompt(profile),
            f"Current stage: {stage.value}",
            get_stage_prompt(stage, mode),
        ]
        if self.stage_machine.emits_signal and not is_terminal(stage):
            parts.append(get_advance_directive(self.stage_machine.config.advance_token))
        return "\n\n".join(parts)

    async def respond(
        self,
        history: Sequence[Message],
        stage: SessionStage,
        utterance: str,
        profile: Optional[PersonalityProfile] = None,
        mode: SessionMode = SessionMode.SOLO,
        speaker_name: Optional[str] = None,
    ) -> MediatorReply:
        """
        Produce the mediator's reply to one utterance.

        Args:
            history: Prior messages, oldest first, excluding `utterance`
            stage: Current session stage
            utterance: The new user message
            profile: Personality of the session initiator (defaults if None)
            mode: Solo or collaborative
            speaker_name: Display name of the author (collaborative prefixing)

        Returns:
            MediatorReply

        Raises:
            GenerationError: Completion call failed or returned nothing
            LLMTimeoutError: Completion call timed out
            LLMRateLimitError: Completion provider rate limited the call
            SafetyCheckUnavailableError: Classifier failed under fail-closed policy
        """
        verdict = await self.safety.classify(utterance)
        fixed = short_circuit(verdict)
        if fixed is not None:
            message, alert = fixed
            log.info(
                "turn_short_circuited",
                stage=stage.value,
                alert_type=alert.type.value,
            )
            return MediatorReply(message=message, safety_alert=alert, verdict=verdict)

        recent = list(history)[-self.history_config.max_turns :]
        turns = build_history_turns(recent, mode)
        prompt = format_user_turn(utterance, speaker_name, mode)
        if turns and turns[-1]["role"] == MessageRole.USER.value:
            prompt = f"{turns.pop()['content']}\n\n{prompt}"

        system = self.build_system_instruction(
            stage, profile or DEFAULT_PERSONALITY, mode
        )

        try:
            response = await self.llm.complete(prompt, system=system, history=turns)
        except (LLMTimeoutError, LLMRateLimitError):
            raise
        except Exception as e:
            log.error(
                "generation_failed",
                stage=stage.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise GenerationError(f"Failed to generate response: {e}") from e

        decision = self.stage_machine.next_stage(stage, response.content)
        if not decision.reply.strip():
            raise GenerationError("Failed to generate response: empty reply")

        log.info(
            "turn_generated",
            stage=stage.value,
            next_stage=decision.next_stage.value,
            history_turns=len(turns),
            reply_length=len(decision.reply),
            latency_ms=round(response.latency_ms, 2),
        )

        return MediatorReply(
            message=decision.reply,
            next_stage=decision.next_stage if decision.advanced_from(stage) else None,
            verdict=verdict,
        )

    async def welcome(
        self,
        template_context: Optional[str] = None,
        profile: Optional[PersonalityProfile] = None,
        mode: SessionMode = SessionMode.SOLO,
    ) -> str:
        """
        Opening message for a new session (always at intake, no stage step).

        Never raises: a failed completion falls back to a fixed greeting.
        """
        system = "\n\n".join(
            [get_system_prompt(mode), compose_personality_prompt(profile or DEFAULT_PERSONALITY)]
        )
        try:
            response = await self.llm.complete(
                get_welcome_prompt(mode, template_context),
                system=system,
                max_tokens=WELCOME_MAX_TOKENS,
            )
        except Exception as e:
            log.warning(
                "welcome_generation_failed",
                mode=mode.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FALLBACK_WELCOME[mode]

        text, _ = self.stage_machine.strip_token(response.content)
        if not text.strip():
            log.warning("welcome_generation_empty", mode=mode.value)
            return FALLBACK_WELCOME[mode]
        return text

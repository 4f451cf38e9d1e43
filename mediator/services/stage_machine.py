"""
Stage state machine for the guided conversation protocol.

Decides the stage for the *next* turn from the mediator's freshly generated
reply. Advancement is one step per turn, never skips and never regresses;
COMPLETE is terminal.

Detection modes:
- signal: the reply ends with the control token (e.g. [[ADVANCE]])
- keyword: the reply contains a progress phrase (case-insensitive)
- hybrid: either of the above
"""

from dataclasses import dataclass
from typing import List, Optional

import structlog

from mediator.core.config import StageConfig, mediator_config
from mediator.domain.models.session import SessionStage

log = structlog.get_logger(__name__)

STAGE_ORDER: List[SessionStage] = list(SessionStage)

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


def stage_index(stage: SessionStage) -> int:
    return STAGE_ORDER.index(stage)


def is_terminal(stage: SessionStage) -> bool:
    return stage == STAGE_ORDER[-1]


def stage_progress(stage: SessionStage) -> float:
    """Fraction of the protocol completed, 0.0 at intake and 1.0 at complete."""
    return round(stage_index(stage) / (len(STAGE_ORDER) - 1), 3)


def following_stage(stage: SessionStage) -> SessionStage:
    """The stage after `stage`; COMPLETE maps to itself."""
    if is_terminal(stage):
        return stage
    return STAGE_ORDER[stage_index(stage) + 1]


@dataclass(frozen=True)
class StageDecision:
    """Result of evaluating one reply."""

    next_stage: SessionStage
    reply: str  # control token removed
    reason: Optional[str] = None  # "signal" | "keyword" | None

    def advanced_from(self, current: SessionStage) -> bool:
        return self.next_stage != current


class StageMachine:
    """Evaluates replies against the configured detection mode."""

    def __init__(self, config: Optional[StageConfig] = None):
        self.config = config or mediator_config.stages

    @property
    def emits_signal(self) -> bool:
        """Whether stage instructions should ask the model for the control token."""
        return self.config.detection in ("signal", "hybrid")

    def strip_token(self, reply: str) -> tuple[str, bool]:
        """Remove every occurrence of the control token.

        Returns:
            (cleaned reply, whether the token was present)
        """
        token = self.config.advance_token
        if token not in reply:
            return reply, False
        cleaned = reply.replace(token, "")
        return cleaned.rstrip(), True

    def matched_phrase(self, reply: str) -> Optional[str]:
        text = reply.translate(_APOSTROPHES).lower()
        for phrase in self.config.progress_phrases:
            if phrase.translate(_APOSTROPHES) in text:
                return phrase
        return None

    def next_stage(self, current: SessionStage, reply: str) -> StageDecision:
        """
        Decide the stage for the next turn.

        Args:
            current: Stage the reply was generated in
            reply: Raw reply text from the completion service

        Returns:
            StageDecision with the cleaned reply
        """
        cleaned, signalled = self.strip_token(reply)

        if is_terminal(current):
            return StageDecision(next_stage=current, reply=cleaned)

        detection = self.config.detection
        reason: Optional[str] = None

        if signalled and detection in ("signal", "hybrid"):
            reason = "signal"
        elif detection in ("keyword", "hybrid"):
            phrase = self.matched_phrase(cleaned)
            if phrase is not None:
                reason = "keyword"
                log.debug("stage_progress_phrase_matched", stage=current.value, phrase=phrase)

        if reason is None:
            return StageDecision(next_stage=current, reply=cleaned)

        nxt = following_stage(current)
        log.info(
            "stage_advanced",
            stage=current.value,
            next_stage=nxt.value,
            reason=reason,
        )
        return StageDecision(next_stage=nxt, reply=cleaned, reason=reason)

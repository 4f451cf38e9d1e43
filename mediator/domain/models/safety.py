"""Safety classification models.

SafetyVerdict is transient: produced per utterance by SafetyClassifier and
consumed immediately by ConversationService. It is never persisted.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SafetyConcerns(BaseModel):
    """Independently detectable concern categories."""

    crisis: bool = False  # self-harm / suicide ideation
    abuse: bool = False  # violence, coercive control, fear of partner
    escalation: bool = False  # threats, refusal to engage, extreme hostility

    @property
    def any(self) -> bool:
        return self.crisis or self.abuse or self.escalation


class SafetyVerdict(BaseModel):
    """Risk verdict for a single utterance."""

    safe: bool = True
    concerns: SafetyConcerns = Field(default_factory=SafetyConcerns)
    reason: Optional[str] = None

    @classmethod
    def fail_open(cls) -> "SafetyVerdict":
        """Verdict used when the classifier call or its output fails."""
        return cls(safe=True, concerns=SafetyConcerns())

    @property
    def blocks_conversation(self) -> bool:
        """Only flagged concerns block; a flag overrides a contradictory safe=true.

        safe=false with no concern category proceeds to normal generation.
        """
        return self.concerns.any


class SafetyAlertType(str, Enum):
    CRISIS = "crisis"
    ABUSE = "abuse"
    ESCALATION = "escalation"


class SafetyAlert(BaseModel):
    """Alert attached to a turn that was short-circuited."""

    type: SafetyAlertType
    message: str

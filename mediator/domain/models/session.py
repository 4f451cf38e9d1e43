"""Session domain models for the guided conversation lifecycle.

Core Models:
    - SessionStage: the 14 ordered protocol stages (terminal: COMPLETE)
    - SessionMode: solo or collaborative
    - SessionStatus: active / paused / completed / abandoned
    - Session: top-level conversation entity

Stage Invariant:
    A session's stage only moves forward, one step at a time, and never
    changes again once COMPLETE is reached. The enum's definition order IS
    the protocol order; StageMachine relies on it.

Status Transitions:
    - active -> paused -> active (explicit user actions)
    - active|paused -> abandoned (explicit user action)
    - active -> completed (stage machine reached COMPLETE)
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionStage(str, Enum):
    """Protocol stage, in protocol order."""

    INTAKE = "intake"
    PERSON_A_OBSERVATION = "person_a_observation"
    PERSON_A_FEELING = "person_a_feeling"
    PERSON_A_NEED = "person_a_need"
    PERSON_A_REQUEST = "person_a_request"
    REFLECTION_A = "reflection_a"
    PERSON_B_OBSERVATION = "person_b_observation"
    PERSON_B_FEELING = "person_b_feeling"
    PERSON_B_NEED = "person_b_need"
    PERSON_B_REQUEST = "person_b_request"
    REFLECTION_B = "reflection_b"
    COMMON_GROUND = "common_ground"
    AGREEMENT = "agreement"
    COMPLETE = "complete"


class SessionMode(str, Enum):
    """Whether one or two participants are present in the conversation."""

    SOLO = "solo"
    COLLABORATIVE = "collaborative"


class SessionStatus(str, Enum):
    """Session lifecycle state."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Session(BaseModel):
    """Top-level conversation entity.

    Owned by its initiator. `stage` and `status` are mutated only by the
    turn path (stage advance, completion) and by explicit pause/resume/abandon.
    """

    id: str
    topic: str
    initiator_id: str
    initiator_name: Optional[str] = None
    mode: SessionMode = SessionMode.SOLO
    stage: SessionStage = SessionStage.INTAKE
    status: SessionStatus = SessionStatus.ACTIVE
    current_speaker_id: Optional[str] = None
    invite_code: Optional[str] = None
    invite_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_collaborative(self) -> bool:
        return self.mode == SessionMode.COLLABORATIVE

    def invite_expired(self, now: datetime) -> bool:
        """True when an invite exists and its expiry is in the past."""
        return self.invite_expires_at is not None and now > self.invite_expires_at


class Invite(BaseModel):
    """A freshly generated collaborative invite."""

    code: str
    url: str
    expires_at: datetime


class InvitePreview(BaseModel):
    """What a prospective partner sees before joining. Read-only."""

    id: str
    topic: str
    initiator_name: str = Field(default="Anonymous")
    status: SessionStatus
    created_at: datetime

"""Domain models package."""

from .session import (
    Invite,
    InvitePreview,
    Session,
    SessionMode,
    SessionStage,
    SessionStatus,
)
from .message import Message, MessageRole
from .participant import MAX_PARTICIPANTS, Participant, ParticipantRole
from .safety import SafetyAlert, SafetyAlertType, SafetyConcerns, SafetyVerdict
from .personality import (
    DEFAULT_PERSONALITY,
    MediatorFormality,
    MediatorResponseLength,
    MediatorTone,
    PersonalityProfile,
    PersonalityUpdate,
)
from .events import RealtimeEvent

__all__ = [
    "Invite",
    "InvitePreview",
    "Session",
    "SessionMode",
    "SessionStage",
    "SessionStatus",
    "Message",
    "MessageRole",
    "MAX_PARTICIPANTS",
    "Participant",
    "ParticipantRole",
    "SafetyAlert",
    "SafetyAlertType",
    "SafetyConcerns",
    "SafetyVerdict",
    "DEFAULT_PERSONALITY",
    "MediatorFormality",
    "MediatorResponseLength",
    "MediatorTone",
    "PersonalityProfile",
    "PersonalityUpdate",
    "RealtimeEvent",
]

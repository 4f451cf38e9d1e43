"""Repository implementations."""

from mediator.persistence.repositories.message_repo import MessageRepository
from mediator.persistence.repositories.participant_repo import (
    JoinOutcome,
    ParticipantRepository,
)
from mediator.persistence.repositories.session_repo import SessionRepository
from mediator.persistence.repositories.settings_repo import SettingsRepository

__all__ = [
    "MessageRepository",
    "JoinOutcome",
    "ParticipantRepository",
    "SessionRepository",
    "SettingsRepository",
]

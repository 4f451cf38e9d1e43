"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header

from mediator.core.config import settings
from mediator.core.exceptions import AuthenticationError
from mediator.llm.client import (
    LLMClient,
    get_generation_llm_client,
    get_safety_llm_client,
)
from mediator.persistence.repositories.message_repo import MessageRepository
from mediator.persistence.repositories.participant_repo import ParticipantRepository
from mediator.persistence.repositories.session_repo import SessionRepository
from mediator.persistence.repositories.settings_repo import SettingsRepository
from mediator.services.conversation_service import ConversationService
from mediator.services.locks import SessionLocks
from mediator.services.participant_service import ParticipantService
from mediator.services.realtime import SessionBroker
from mediator.services.safety_service import SafetyClassifier
from mediator.services.session_service import SessionService
from mediator.services.settings_service import SettingsService


class CurrentUser:
    """Identity asserted by the upstream authenticator."""

    def __init__(self, user_id: str, name: Optional[str] = None):
        self.id = user_id
        self.name = name


def get_current_user(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_name: Annotated[Optional[str], Header()] = None,
) -> CurrentUser:
    """Read the caller from X-User-Id / X-User-Name.

    Raises:
        AuthenticationError: Header missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-Id header")
    return CurrentUser(x_user_id.strip(), (x_user_name or "").strip() or None)


# =============================================================================
# Process-wide singletons
# =============================================================================


@lru_cache(maxsize=1)
def get_shared_safety_client() -> LLMClient:
    """Cached LLM client for safety classification.

    Created once per process and reused across requests.
    """
    return get_safety_llm_client()


@lru_cache(maxsize=1)
def get_shared_generation_client() -> LLMClient:
    """Cached LLM client for mediator replies and welcome messages."""
    return get_generation_llm_client()


@lru_cache(maxsize=1)
def get_broker() -> SessionBroker:
    return SessionBroker()


@lru_cache(maxsize=1)
def get_session_locks() -> SessionLocks:
    return SessionLocks()


# =============================================================================
# Per-request wiring
# =============================================================================


def get_session_repository() -> SessionRepository:
    return SessionRepository(str(settings.database_path))


def get_message_repository() -> MessageRepository:
    return MessageRepository(str(settings.database_path))


def get_participant_repository() -> ParticipantRepository:
    return ParticipantRepository(str(settings.database_path))


def get_settings_service() -> SettingsService:
    return SettingsService(SettingsRepository(str(settings.database_path)))


def get_participant_service(
    session_repo: Annotated[SessionRepository, Depends(get_session_repository)],
    participant_repo: Annotated[ParticipantRepository, Depends(get_participant_repository)],
    broker: Annotated[SessionBroker, Depends(get_broker)],
    locks: Annotated[SessionLocks, Depends(get_session_locks)],
) -> ParticipantService:
    return ParticipantService(session_repo, participant_repo, broker, locks)


def get_conversation_service(
    safety_client: Annotated[LLMClient, Depends(get_shared_safety_client)],
    generation_client: Annotated[LLMClient, Depends(get_shared_generation_client)],
) -> ConversationService:
    return ConversationService(
        llm_client=generation_client,
        safety=SafetyClassifier(safety_client),
    )


def get_session_service(
    session_repo: Annotated[SessionRepository, Depends(get_session_repository)],
    message_repo: Annotated[MessageRepository, Depends(get_message_repository)],
    participants: Annotated[ParticipantService, Depends(get_participant_service)],
    conversation: Annotated[ConversationService, Depends(get_conversation_service)],
    settings_service: Annotated[SettingsService, Depends(get_settings_service)],
    broker: Annotated[SessionBroker, Depends(get_broker)],
    locks: Annotated[SessionLocks, Depends(get_session_locks)],
) -> SessionService:
    return SessionService(
        session_repo=session_repo,
        message_repo=message_repo,
        participants=participants,
        conversation=conversation,
        settings_service=settings_service,
        broker=broker,
        locks=locks,
    )


# Type aliases for dependency injection
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
BrokerDep = Annotated[SessionBroker, Depends(get_broker)]
ParticipantServiceDep = Annotated[ParticipantService, Depends(get_participant_service)]
SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
SettingsServiceDep = Annotated[SettingsService, Depends(get_settings_service)]

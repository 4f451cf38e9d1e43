"""
Session orchestration service.

Main entry point for session lifecycle and turn processing. A turn runs
under the session's lock:

    load session -> respond (safety, generation, stage machine)
    -> persist user + assistant messages and stage/status atomically
    -> publish new_message (and session_updated) events

so turn N+1 always observes the committed effects of turn N. A generation
failure commits nothing and publishes nothing.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

import structlog

from mediator.core.config import HistoryConfig, mediator_config
from mediator.core.exceptions import (
    AccessDeniedError,
    InvalidStatusTransitionError,
    SessionNotActiveError,
)
from mediator.domain.models.events import (
    NewMessagePayload,
    RealtimeEvent,
    SessionUpdatedPayload,
    TypingPayload,
)
from mediator.domain.models.message import Message, MessageRole
from mediator.domain.models.safety import SafetyAlert
from mediator.domain.models.session import (
    Session,
    SessionMode,
    SessionStage,
    SessionStatus,
)
from mediator.persistence.database import utcnow
from mediator.persistence.repositories.message_repo import MessageRepository
from mediator.persistence.repositories.session_repo import SessionRepository
from mediator.services.conversation_service import ConversationService
from mediator.services.locks import SessionLocks
from mediator.services.participant_service import ParticipantService
from mediator.services.realtime import SessionBroker
from mediator.services.settings_service import SettingsService
from mediator.services.stage_machine import is_terminal

log = structlog.get_logger(__name__)

DEFAULT_TOPIC = "New Session"

# action -> (allowed source statuses, target status)
STATUS_ACTIONS = {
    "pause": ({SessionStatus.ACTIVE}, SessionStatus.PAUSED),
    "resume": ({SessionStatus.PAUSED}, SessionStatus.ACTIVE),
    "abandon": ({SessionStatus.ACTIVE, SessionStatus.PAUSED}, SessionStatus.ABANDONED),
}


@dataclass
class TurnResult:
    """Committed outcome of one submitted utterance."""

    user_message: Message
    assistant_message: Message
    session: Session
    next_stage: Optional[SessionStage] = None
    safety_alert: Optional[SafetyAlert] = None


class SessionService:
    """Session lifecycle, turns, status actions and typing signals."""

    def __init__(
        self,
        session_repo: SessionRepository,
        message_repo: MessageRepository,
        participants: ParticipantService,
        conversation: ConversationService,
        settings_service: SettingsService,
        broker: SessionBroker,
        locks: SessionLocks,
        history_config: Optional[HistoryConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_repo = session_repo
        self.message_repo = message_repo
        self.participants = participants
        self.conversation = conversation
        self.settings = settings_service
        self.broker = broker
        self.locks = locks
        self.history_config = history_config or mediator_config.history
        self.clock = clock

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def create_session(
        self,
        user_id: str,
        user_name: Optional[str] = None,
        topic: Optional[str] = None,
        mode: SessionMode = SessionMode.SOLO,
        template_context: Optional[str] = None,
    ) -> Tuple[Session, Message]:
        """
        Create a session at intake with its welcome message.

        The welcome call never fails session creation; it falls back to a
        fixed greeting.
        """
        now = self.clock()
        session = Session(
            id=str(uuid4()),
            topic=topic or DEFAULT_TOPIC,
            initiator_id=user_id,
            initiator_name=user_name,
            mode=mode,
            created_at=now,
            updated_at=now,
        )
        await self.session_repo.create(session)

        profile = await self.settings.get(user_id)
        text = await self.conversation.welcome(template_context, profile, mode)
        welcome = Message(
            id=str(uuid4()),
            session_id=session.id,
            role=MessageRole.ASSISTANT,
            content=text,
            stage=SessionStage.INTAKE,
            created_at=self.clock(),
        )
        await self.message_repo.add(welcome)

        log.info("session_created", session_id=session.id, mode=mode.value)
        return session, welcome

    async def list_sessions(self, user_id: str) -> List[Session]:
        return await self.session_repo.list_for_user(user_id)

    async def get_session(self, session_id: str, user_id: str) -> Session:
        return await self.participants.require_participant(session_id, user_id)

    async def get_messages(self, session_id: str, user_id: str) -> List[Message]:
        await self.participants.require_participant(session_id, user_id)
        return await self.message_repo.list_for_session(session_id)

    async def change_status(self, session_id: str, user_id: str, action: str) -> Session:
        """
        Apply pause / resume / abandon.

        Raises:
            AccessDeniedError: Non-initiator tried to abandon
            InvalidStatusTransitionError: Action not allowed from current status
        """
        if action not in STATUS_ACTIONS:
            raise InvalidStatusTransitionError(f"Unknown action '{action}'")
        allowed_from, target = STATUS_ACTIONS[action]

        async with self.locks.hold(session_id):
            session = await self.participants.require_participant(session_id, user_id)
            if target == SessionStatus.ABANDONED and session.initiator_id != user_id:
                raise AccessDeniedError("Only the session initiator can abandon it")
            if session.status not in allowed_from:
                raise InvalidStatusTransitionError(
                    f"Cannot {action} a session that is {session.status.value}"
                )
            await self.session_repo.update_status(session_id, target)
            session = session.model_copy(update={"status": target})

        log.info("session_status_changed", session_id=session_id, status=target.value)
        self._broadcast(
            session_id,
            RealtimeEvent.SESSION_UPDATED,
            SessionUpdatedPayload(
                session_id=session_id,
                stage=session.stage.value,
                status=target.value,
            ).to_wire(),
        )
        return session

    # ==========================================================================
    # Turns
    # ==========================================================================

    async def submit_message(
        self,
        session_id: str,
        user_id: str,
        content: str,
        user_name: Optional[str] = None,
    ) -> TurnResult:
        """
        Process one utterance end to end.

        Raises:
            SessionNotFoundError, AccessDeniedError, SessionNotActiveError,
            GenerationError, LLMTimeoutError, LLMRateLimitError,
            SafetyCheckUnavailableError
        """
        async with self.locks.hold(session_id):
            session = await self.participants.require_participant(session_id, user_id)
            if session.status != SessionStatus.ACTIVE:
                raise SessionNotActiveError(
                    f"Session is {session.status.value}; messages are not accepted"
                )

            submitted_at = self.clock()
            author_name = await self._author_name(session, user_id, user_name)
            history = await self.message_repo.list_for_session(
                session_id, limit=self.history_config.max_turns
            )
            profile = await self.settings.get(session.initiator_id)

            reply = await self.conversation.respond(
                history=history,
                stage=session.stage,
                utterance=content,
                profile=profile,
                mode=session.mode,
                speaker_name=author_name,
            )

            next_stage = reply.next_stage
            new_status = (
                SessionStatus.COMPLETED
                if next_stage is not None and is_terminal(next_stage)
                else None
            )

            user_message = Message(
                id=str(uuid4()),
                session_id=session_id,
                role=MessageRole.USER,
                content=content,
                stage=session.stage,
                user_id=user_id,
                author_name=author_name,
                created_at=submitted_at,
            )
            assistant_message = Message(
                id=str(uuid4()),
                session_id=session_id,
                role=MessageRole.ASSISTANT,
                content=reply.message,
                stage=next_stage or session.stage,
                created_at=max(self.clock(), submitted_at),
            )

            await self.message_repo.commit_turn(
                session_id,
                [user_message, assistant_message],
                stage=next_stage,
                status=new_status,
            )
            await self.participants.participant_repo.touch(session_id, user_id, submitted_at)

            session = session.model_copy(
                update={
                    "stage": next_stage or session.stage,
                    "status": new_status or session.status,
                }
            )

        log.info(
            "turn_completed",
            session_id=session_id,
            stage=user_message.stage.value,
            next_stage=next_stage.value if next_stage else None,
            safety_alert=reply.safety_alert.type.value if reply.safety_alert else None,
            content_length=len(content),
        )

        for message in (user_message, assistant_message):
            self._broadcast(
                session_id,
                RealtimeEvent.NEW_MESSAGE,
                NewMessagePayload.from_message(message).to_wire(),
            )
        if next_stage is not None:
            self._broadcast(
                session_id,
                RealtimeEvent.SESSION_UPDATED,
                SessionUpdatedPayload(
                    session_id=session_id,
                    stage=session.stage.value,
                    status=session.status.value,
                ).to_wire(),
            )

        return TurnResult(
            user_message=user_message,
            assistant_message=assistant_message,
            session=session,
            next_stage=next_stage,
            safety_alert=reply.safety_alert,
        )

    async def set_typing(
        self,
        session_id: str,
        user_id: str,
        is_typing: bool,
        user_name: Optional[str] = None,
    ) -> None:
        """Fire-and-forget typing signal to the other subscribers."""
        await self.participants.require_participant(session_id, user_id)
        self._broadcast(
            session_id,
            RealtimeEvent.TYPING_START if is_typing else RealtimeEvent.TYPING_STOP,
            TypingPayload(
                user_id=user_id, user_name=user_name or "User", is_typing=is_typing
            ).to_wire(),
            exclude_user_id=user_id,
        )

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _author_name(
        self, session: Session, user_id: str, user_name: Optional[str]
    ) -> Optional[str]:
        if user_name:
            return user_name
        if user_id == session.initiator_id and session.initiator_name:
            return session.initiator_name
        participant = await self.participants.participant_repo.get(session.id, user_id)
        return participant.display_name if participant else None

    def _broadcast(
        self,
        session_id: str,
        event: RealtimeEvent,
        data: dict,
        exclude_user_id: Optional[str] = None,
    ) -> None:
        try:
            self.broker.publish(session_id, event, data, exclude_user_id=exclude_user_id)
        except Exception as e:
            log.warning(
                "realtime_publish_failed",
                session_id=session_id,
                event_name=event.value,
                error=str(e),
            )

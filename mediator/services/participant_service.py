"""
Participant and presence registry.

Tracks who has joined a session, their role and liveness, and owns the
collaborative invite lifecycle (generate / revoke / preview / join).

Liveness is computed by readers: a participant is online when their row
is active and was seen within the presence window, or when they hold an
open real-time connection. Rows are never deleted.
"""

import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import structlog
from pydantic import BaseModel

from mediator.core.config import InviteConfig, PresenceConfig, mediator_config, settings
from mediator.core.exceptions import (
    AccessDeniedError,
    AlreadyInitiatorError,
    InvalidInviteError,
    InviteExpiredError,
    InviteSessionNotActiveError,
    ParticipantLimitError,
    SessionNotActiveError,
    SessionNotFoundError,
    ValidationError,
)
from mediator.domain.models.events import PresencePayload, RealtimeEvent
from mediator.domain.models.participant import (
    MAX_PARTICIPANTS,
    Participant,
    ParticipantRole,
)
from mediator.domain.models.session import (
    Invite,
    InvitePreview,
    Session,
    SessionStatus,
)
from mediator.persistence.database import utcnow
from mediator.persistence.repositories.participant_repo import (
    JoinOutcome,
    ParticipantRepository,
)
from mediator.persistence.repositories.session_repo import SessionRepository
from mediator.services.locks import SessionLocks
from mediator.services.realtime import SessionBroker

log = structlog.get_logger(__name__)

INVALID_INVITE = "Invalid invite code"
INVITE_EXPIRED = "This invite has expired"
SESSION_NOT_ACTIVE = "This session is no longer active"
ALREADY_INITIATOR = "You are already the initiator of this session"
SESSION_FULL = "This session already has the maximum number of participants"
NOT_INITIATOR = "Only the session creator can be its initiator"


class ParticipantView(BaseModel):
    """Participant as returned to clients, with computed liveness."""

    user_id: str
    role: ParticipantRole
    display_name: Optional[str] = None
    joined_at: datetime
    last_seen_at: Optional[datetime] = None
    is_active: bool
    is_online: bool


class InviteStatus(BaseModel):
    has_invite: bool
    invite_code: Optional[str] = None
    invite_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_expired: bool = False


def invite_url(code: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.public_base_url).rstrip("/")
    return f"{base}/dashboard/sessions/join?code={code}"


class ParticipantService:
    """Membership, presence and invites for sessions."""

    def __init__(
        self,
        session_repo: SessionRepository,
        participant_repo: ParticipantRepository,
        broker: SessionBroker,
        locks: SessionLocks,
        invite_config: Optional[InviteConfig] = None,
        presence_config: Optional[PresenceConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_repo = session_repo
        self.participant_repo = participant_repo
        self.broker = broker
        self.locks = locks
        self.invite_config = invite_config or mediator_config.invites
        self.presence_config = presence_config or mediator_config.presence
        self.clock = clock

    # ==========================================================================
    # Access checks
    # ==========================================================================

    async def get_session(self, session_id: str) -> Session:
        session = await self.session_repo.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    async def require_participant(self, session_id: str, user_id: str) -> Session:
        """
        Raises:
            SessionNotFoundError: Unknown session
            AccessDeniedError: User is neither initiator nor participant
        """
        session = await self.get_session(session_id)
        if session.initiator_id == user_id:
            return session
        if await self.participant_repo.get(session_id, user_id) is None:
            raise AccessDeniedError("You do not have access to this session")
        return session

    async def require_initiator(self, session_id: str, user_id: str) -> Session:
        session = await self.get_session(session_id)
        if session.initiator_id != user_id:
            raise AccessDeniedError("Only the session initiator can manage invites")
        return session

    # ==========================================================================
    # Membership
    # ==========================================================================

    async def add_participant(
        self,
        session: Session,
        user_id: str,
        role: ParticipantRole = ParticipantRole.PARTNER,
        display_name: Optional[str] = None,
    ) -> Participant:
        """
        Add a participant directly (no invite).

        Raises:
            AlreadyInitiatorError: Adding the initiator as partner
            ValidationError: Adding anyone else as initiator
            ParticipantLimitError: Session already has two participants
        """
        if role == ParticipantRole.PARTNER and user_id == session.initiator_id:
            raise AlreadyInitiatorError(ALREADY_INITIATOR)
        if role == ParticipantRole.INITIATOR and user_id != session.initiator_id:
            raise ValidationError(NOT_INITIATOR)

        async with self.locks.hold(session.id):
            outcome = await self.participant_repo.join_partner(
                session.id, user_id, display_name, self.clock(), role=role
            )
        if outcome == JoinOutcome.FULL:
            raise ParticipantLimitError(SESSION_FULL)

        participant = await self.participant_repo.get(session.id, user_id)
        if outcome == JoinOutcome.JOINED:
            self._announce(session.id, RealtimeEvent.USER_JOINED, user_id, display_name)
        return participant

    async def join_by_invite_code(
        self, code: str, user_id: str, display_name: Optional[str] = None
    ) -> str:
        """
        Join a session as partner using an invite code.

        Returns:
            The session id (also on an idempotent repeat join)

        Raises:
            InvalidInviteError, InviteExpiredError, InviteSessionNotActiveError,
            AlreadyInitiatorError, ParticipantLimitError
        """
        code = code.strip().upper()
        session = await self.session_repo.get_by_invite_code(code)
        if session is None:
            raise InvalidInviteError(INVALID_INVITE)

        async with self.locks.hold(session.id):
            # Re-read under the lock: status or invite may have changed
            session = await self.session_repo.get(session.id)
            if session is None or session.invite_code != code:
                raise InvalidInviteError(INVALID_INVITE)
            if session.invite_expired(self.clock()):
                raise InviteExpiredError(INVITE_EXPIRED)
            if session.status != SessionStatus.ACTIVE:
                raise InviteSessionNotActiveError(SESSION_NOT_ACTIVE)
            if session.initiator_id == user_id:
                raise AlreadyInitiatorError(ALREADY_INITIATOR)

            outcome = await self.participant_repo.join_partner(
                session.id, user_id, display_name, self.clock()
            )

        if outcome == JoinOutcome.FULL:
            log.info("join_rejected_full", session_id=session.id)
            raise ParticipantLimitError(SESSION_FULL)

        if outcome == JoinOutcome.JOINED:
            log.info("participant_joined", session_id=session.id)
            self._announce(session.id, RealtimeEvent.USER_JOINED, user_id, display_name)
        else:
            log.info("participant_rejoined", session_id=session.id)
        return session.id

    # ==========================================================================
    # Invites
    # ==========================================================================

    def _new_code(self) -> str:
        alphabet = self.invite_config.alphabet
        return "".join(secrets.choice(alphabet) for _ in range(self.invite_config.code_length))

    async def generate_invite(
        self, session_id: str, user_id: str, ttl_hours: Optional[int] = None
    ) -> Invite:
        """
        Issue a fresh invite code, overwriting any previous one.

        Switches the session to collaborative mode.

        Raises:
            AccessDeniedError: Caller is not the initiator
            SessionNotActiveError: Session is not active
            ParticipantLimitError: A partner already joined
        """
        session = await self.require_initiator(session_id, user_id)
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActiveError(SESSION_NOT_ACTIVE)
        if await self.participant_repo.count(session_id) >= MAX_PARTICIPANTS:
            raise ParticipantLimitError(SESSION_FULL)

        code = self._new_code()
        for _ in range(5):
            if not await self.session_repo.invite_code_exists(code):
                break
            code = self._new_code()

        expires_at = self.clock() + timedelta(hours=ttl_hours or self.invite_config.ttl_hours)
        await self.session_repo.set_invite(session_id, code, expires_at)
        log.info("invite_generated", session_id=session_id, expires_at=expires_at.isoformat())
        return Invite(code=code, url=invite_url(code), expires_at=expires_at)

    async def revoke_invite(self, session_id: str, user_id: str) -> None:
        await self.require_initiator(session_id, user_id)
        await self.session_repo.clear_invite(session_id)
        log.info("invite_revoked", session_id=session_id)

    async def invite_status(self, session_id: str, user_id: str) -> InviteStatus:
        session = await self.require_initiator(session_id, user_id)
        if not session.invite_code:
            return InviteStatus(has_invite=False)
        return InviteStatus(
            has_invite=True,
            invite_code=session.invite_code,
            invite_url=invite_url(session.invite_code),
            expires_at=session.invite_expires_at,
            is_expired=session.invite_expired(self.clock()),
        )

    async def preview_invite(self, code: str) -> Optional[InvitePreview]:
        """Read-only preview; None for unknown or expired codes."""
        session = await self.session_repo.get_by_invite_code(code.strip().upper())
        if session is None or session.invite_expired(self.clock()):
            return None
        return InvitePreview(
            id=session.id,
            topic=session.topic,
            initiator_name=session.initiator_name or "Anonymous",
            status=session.status,
            created_at=session.created_at,
        )

    # ==========================================================================
    # Presence
    # ==========================================================================

    async def heartbeat(self, session_id: str, user_id: str) -> None:
        await self.require_participant(session_id, user_id)
        await self.participant_repo.touch(session_id, user_id, self.clock())

    async def leave(self, session_id: str, user_id: str) -> None:
        """Mark the caller inactive. The row is kept."""
        await self.require_participant(session_id, user_id)
        participant = await self.participant_repo.get(session_id, user_id)
        await self.participant_repo.deactivate(session_id, user_id)
        log.info("participant_left", session_id=session_id)
        self._announce(
            session_id,
            RealtimeEvent.USER_LEFT,
            user_id,
            participant.display_name if participant else None,
        )

    async def list_participants(self, session_id: str, user_id: str) -> List[ParticipantView]:
        """Participants with computed liveness. Refreshes the caller's heartbeat."""
        await self.require_participant(session_id, user_id)
        await self.participant_repo.touch(session_id, user_id, self.clock())

        now = self.clock()
        connected = self.broker.connected_users(session_id)
        views = []
        for p in await self.participant_repo.list_for_session(session_id):
            online = p.is_live(now, self.presence_config.window_seconds) or (
                p.is_active and p.user_id in connected
            )
            views.append(
                ParticipantView(
                    user_id=p.user_id,
                    role=p.role,
                    display_name=p.display_name,
                    joined_at=p.joined_at,
                    last_seen_at=p.last_seen_at,
                    is_active=p.is_active,
                    is_online=online,
                )
            )
        return views

    def _announce(
        self,
        session_id: str,
        event: RealtimeEvent,
        user_id: str,
        display_name: Optional[str],
    ) -> None:
        self.broker.publish(
            session_id,
            event,
            PresencePayload(user_id=user_id, user_name=display_name).to_wire(),
        )

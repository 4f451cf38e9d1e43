"""Session repository for database operations."""

from datetime import datetime
from typing import List, Optional

import aiosqlite
import structlog

from mediator.domain.models.participant import ParticipantRole
from mediator.domain.models.session import (
    Session,
    SessionMode,
    SessionStage,
    SessionStatus,
)
from mediator.persistence.database import from_db_time, to_db_time, utcnow

log = structlog.get_logger(__name__)


class SessionRepository:
    """Repository for session CRUD operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def create(self, session: Session) -> Session:
        """Insert a session together with its initiator participant row."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("PRAGMA foreign_keys = ON")
            await db.execute(
                "INSERT INTO sessions (id, topic, initiator_id, initiator_name, mode, "
                "stage, status, current_speaker_id, invite_code, invite_expires_at, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.topic,
                    session.initiator_id,
                    session.initiator_name,
                    session.mode.value,
                    session.stage.value,
                    session.status.value,
                    session.current_speaker_id,
                    session.invite_code,
                    to_db_time(session.invite_expires_at),
                    to_db_time(session.created_at),
                    to_db_time(session.updated_at),
                ),
            )
            await db.execute(
                "INSERT INTO participants (session_id, user_id, role, display_name, "
                "joined_at, last_seen_at, is_active) VALUES (?, ?, ?, ?, ?, ?, 1)",
                (
                    session.id,
                    session.initiator_id,
                    ParticipantRole.INITIATOR.value,
                    session.initiator_name,
                    to_db_time(session.created_at),
                    to_db_time(session.created_at),
                ),
            )
            await db.commit()
        return session

    async def get(self, session_id: str) -> Optional[Session]:
        """Get a session by ID."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_session(row)

    async def get_by_invite_code(self, code: str) -> Optional[Session]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE invite_code = ?", (code,)
            )
            row = await cursor.fetchone()
            if not row:
                return None
            return self._row_to_session(row)

    async def list_for_user(self, user_id: str) -> List[Session]:
        """Sessions the user initiated or joined, newest first."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT s.* FROM sessions s "
                "WHERE s.initiator_id = ? OR EXISTS ("
                "  SELECT 1 FROM participants p "
                "  WHERE p.session_id = s.id AND p.user_id = ?"
                ") ORDER BY s.created_at DESC",
                (user_id, user_id),
            )
            rows = await cursor.fetchall()
            return [self._row_to_session(row) for row in rows]

    async def update_status(self, session_id: str, status: SessionStatus) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE sessions SET status = ?, updated_at = ? WHERE id = ?",
                (status.value, to_db_time(utcnow()), session_id),
            )
            await db.commit()

    async def set_invite(
        self, session_id: str, code: str, expires_at: datetime
    ) -> None:
        """Store a fresh invite (overwrites any previous code) and switch to collaborative."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE sessions SET invite_code = ?, invite_expires_at = ?, mode = ?, "
                "updated_at = ? WHERE id = ?",
                (
                    code,
                    to_db_time(expires_at),
                    SessionMode.COLLABORATIVE.value,
                    to_db_time(utcnow()),
                    session_id,
                ),
            )
            await db.commit()

    async def clear_invite(self, session_id: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE sessions SET invite_code = NULL, invite_expires_at = NULL, "
                "updated_at = ? WHERE id = ?",
                (to_db_time(utcnow()), session_id),
            )
            await db.commit()

    async def invite_code_exists(self, code: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT 1 FROM sessions WHERE invite_code = ?", (code,)
            )
            return await cursor.fetchone() is not None

    def _row_to_session(self, row: aiosqlite.Row) -> Session:
        return Session(
            id=row["id"],
            topic=row["topic"],
            initiator_id=row["initiator_id"],
            initiator_name=row["initiator_name"],
            mode=SessionMode(row["mode"]),
            stage=SessionStage(row["stage"]),
            status=SessionStatus(row["status"]),
            current_speaker_id=row["current_speaker_id"],
            invite_code=row["invite_code"],
            invite_expires_at=from_db_time(row["invite_expires_at"]),
            created_at=from_db_time(row["created_at"]),
            updated_at=from_db_time(row["updated_at"]),
        )

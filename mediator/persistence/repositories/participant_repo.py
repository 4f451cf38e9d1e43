"""Participant repository.

Rows are never deleted. join_partner() does its count-and-insert inside a
single BEGIN IMMEDIATE transaction, so concurrent joins for the last slot
cannot both succeed even across processes.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

import aiosqlite
import structlog

from mediator.domain.models.participant import (
    MAX_PARTICIPANTS,
    Participant,
    ParticipantRole,
)
from mediator.persistence.database import from_db_time, to_db_time

log = structlog.get_logger(__name__)


class JoinOutcome(str, Enum):
    JOINED = "joined"
    ALREADY_JOINED = "already_joined"
    FULL = "full"


class ParticipantRepository:
    """Repository for session membership and presence."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def get(self, session_id: str, user_id: str) -> Optional[Participant]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM participants WHERE session_id = ? AND user_id = ?",
                (session_id, user_id),
            )
            row = await cursor.fetchone()
            return self._row_to_participant(row) if row else None

    async def list_for_session(self, session_id: str) -> List[Participant]:
        """Participants ordered by join time (initiator first)."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM participants WHERE session_id = ? "
                "ORDER BY joined_at, rowid",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_participant(row) for row in rows]

    async def count(self, session_id: str) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM participants WHERE session_id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def join_partner(
        self,
        session_id: str,
        user_id: str,
        display_name: Optional[str],
        now: datetime,
        role: ParticipantRole = ParticipantRole.PARTNER,
    ) -> JoinOutcome:
        """
        Add a participant if there is room.

        Returns:
            JOINED on insert, ALREADY_JOINED if a row exists (refreshes
            last_seen_at and reactivates it), FULL at MAX_PARTICIPANTS.
        """
        async with aiosqlite.connect(
            self.db_path, isolation_level=None, timeout=30.0
        ) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    "SELECT 1 FROM participants WHERE session_id = ? AND user_id = ?",
                    (session_id, user_id),
                )
                if await cursor.fetchone() is not None:
                    await db.execute(
                        "UPDATE participants SET is_active = 1, last_seen_at = ? "
                        "WHERE session_id = ? AND user_id = ?",
                        (to_db_time(now), session_id, user_id),
                    )
                    await db.execute("COMMIT")
                    return JoinOutcome.ALREADY_JOINED

                cursor = await db.execute(
                    "SELECT COUNT(*) FROM participants WHERE session_id = ?",
                    (session_id,),
                )
                row = await cursor.fetchone()
                if row[0] >= MAX_PARTICIPANTS:
                    await db.execute("ROLLBACK")
                    return JoinOutcome.FULL

                await db.execute(
                    "INSERT INTO participants (session_id, user_id, role, display_name, "
                    "joined_at, last_seen_at, is_active) VALUES (?, ?, ?, ?, ?, ?, 1)",
                    (
                        session_id,
                        user_id,
                        role.value,
                        display_name,
                        to_db_time(now),
                        to_db_time(now),
                    ),
                )
                await db.execute("COMMIT")
                return JoinOutcome.JOINED
            except Exception:
                await db.execute("ROLLBACK")
                raise

    async def touch(self, session_id: str, user_id: str, now: datetime) -> bool:
        """Refresh last_seen_at. Returns False if the user is not a participant."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE participants SET last_seen_at = ?, is_active = 1 "
                "WHERE session_id = ? AND user_id = ?",
                (to_db_time(now), session_id, user_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def deactivate(self, session_id: str, user_id: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE participants SET is_active = 0 "
                "WHERE session_id = ? AND user_id = ?",
                (session_id, user_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    def _row_to_participant(self, row: aiosqlite.Row) -> Participant:
        return Participant(
            session_id=row["session_id"],
            user_id=row["user_id"],
            role=ParticipantRole(row["role"]),
            display_name=row["display_name"],
            joined_at=from_db_time(row["joined_at"]),
            last_seen_at=from_db_time(row["last_seen_at"]),
            is_active=bool(row["is_active"]),
        )

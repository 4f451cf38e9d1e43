"""Message repository.

Messages are append-only. A turn's messages and the session's resulting
stage/status are written in one transaction by commit_turn().
"""

from typing import List, Optional

import aiosqlite
import structlog

from mediator.domain.models.message import Message, MessageRole
from mediator.domain.models.session import SessionStage, SessionStatus
from mediator.persistence.database import from_db_time, to_db_time, utcnow

log = structlog.get_logger(__name__)

_INSERT = (
    "INSERT INTO messages (id, session_id, role, content, stage, user_id, "
    "author_name, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
)


class MessageRepository:
    """Repository for message storage and ordered retrieval."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def add(self, message: Message) -> Message:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(_INSERT, self._params(message))
            await db.commit()
        return message

    async def commit_turn(
        self,
        session_id: str,
        messages: List[Message],
        stage: Optional[SessionStage] = None,
        status: Optional[SessionStatus] = None,
    ) -> None:
        """
        Persist a turn atomically.

        Args:
            session_id: Session the turn belongs to
            messages: Messages in insertion order (user first)
            stage: New stage, if the turn advanced it
            status: New status, if the turn changed it
        """
        async with aiosqlite.connect(self.db_path, isolation_level=None) as db:
            await db.execute("BEGIN IMMEDIATE")
            try:
                for message in messages:
                    await db.execute(_INSERT, self._params(message))

                if stage is not None or status is not None:
                    await db.execute(
                        "UPDATE sessions SET stage = COALESCE(?, stage), "
                        "status = COALESCE(?, status), updated_at = ? WHERE id = ?",
                        (
                            stage.value if stage else None,
                            status.value if status else None,
                            to_db_time(utcnow()),
                            session_id,
                        ),
                    )
                await db.execute("COMMIT")
            except Exception:
                await db.execute("ROLLBACK")
                raise

        log.debug(
            "turn_persisted",
            session_id=session_id,
            message_count=len(messages),
            stage=stage.value if stage else None,
        )

    async def list_for_session(
        self, session_id: str, limit: Optional[int] = None
    ) -> List[Message]:
        """
        Messages in persisted order.

        Args:
            session_id: Session ID
            limit: If set, only the most recent `limit` messages (still oldest first)
        """
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            if limit is None:
                cursor = await db.execute(
                    "SELECT * FROM messages WHERE session_id = ? "
                    "ORDER BY created_at, seq",
                    (session_id,),
                )
                rows = await cursor.fetchall()
            else:
                cursor = await db.execute(
                    "SELECT * FROM messages WHERE session_id = ? "
                    "ORDER BY created_at DESC, seq DESC LIMIT ?",
                    (session_id, limit),
                )
                rows = list(reversed(await cursor.fetchall()))
            return [self._row_to_message(row) for row in rows]

    @staticmethod
    def _params(message: Message) -> tuple:
        return (
            message.id,
            message.session_id,
            message.role.value,
            message.content,
            message.stage.value,
            message.user_id,
            message.author_name,
            to_db_time(message.created_at),
        )

    def _row_to_message(self, row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            role=MessageRole(row["role"]),
            content=row["content"],
            stage=SessionStage(row["stage"]),
            user_id=row["user_id"],
            author_name=row["author_name"],
            created_at=from_db_time(row["created_at"]),
        )

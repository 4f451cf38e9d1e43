"""Mediator settings (personality profile) repository."""

from typing import Optional

import aiosqlite

from mediator.domain.models.personality import (
    MediatorFormality,
    MediatorResponseLength,
    MediatorTone,
    PersonalityProfile,
)
from mediator.persistence.database import to_db_time, utcnow


class SettingsRepository:
    """One personality row per user. Absent row means defaults."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def get(self, user_id: str) -> Optional[PersonalityProfile]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM mediator_settings WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            if not row:
                return None
            return PersonalityProfile(
                tone=MediatorTone(row["tone"]),
                formality=MediatorFormality(row["formality"]),
                response_length=MediatorResponseLength(row["response_length"]),
                use_emoji=bool(row["use_emoji"]),
                use_metaphors=bool(row["use_metaphors"]),
                cultural_context=row["cultural_context"],
            )

    async def upsert(self, user_id: str, profile: PersonalityProfile) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO mediator_settings (user_id, tone, formality, "
                "response_length, use_emoji, use_metaphors, cultural_context, "
                "updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET tone = excluded.tone, "
                "formality = excluded.formality, "
                "response_length = excluded.response_length, "
                "use_emoji = excluded.use_emoji, "
                "use_metaphors = excluded.use_metaphors, "
                "cultural_context = excluded.cultural_context, "
                "updated_at = excluded.updated_at",
                (
                    user_id,
                    profile.tone.value,
                    profile.formality.value,
                    profile.response_length.value,
                    int(profile.use_emoji),
                    int(profile.use_metaphors),
                    profile.cultural_context,
                    to_db_time(utcnow()),
                ),
            )
            await db.commit()

    async def delete(self, user_id: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "DELETE FROM mediator_settings WHERE user_id = ?", (user_id,)
            )
            await db.commit()
            return cursor.rowcount > 0

"""Participant and presence models.

A session has exactly one initiator and at most one partner. Rows are
never deleted: leaving flips is_active, and staleness is computed by
readers from last_seen_at.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

MAX_PARTICIPANTS = 2


class ParticipantRole(str, Enum):
    INITIATOR = "initiator"
    PARTNER = "partner"


class Participant(BaseModel):
    """A user's membership in one session."""

    session_id: str
    user_id: str
    role: ParticipantRole
    display_name: Optional[str] = None
    joined_at: datetime
    last_seen_at: Optional[datetime] = None
    is_active: bool = True

    def is_live(self, now: datetime, window_seconds: int) -> bool:
        """Active and seen within the presence window."""
        if not self.is_active or self.last_seen_at is None:
            return False
        return now - self.last_seen_at <= timedelta(seconds=window_seconds)

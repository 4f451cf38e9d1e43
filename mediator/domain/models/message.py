"""Message domain model.

Messages are immutable once stored. Order within a session is persisted
creation order: created_at, ties broken by store insertion order.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from mediator.domain.models.session import SessionStage


class MessageRole(str, Enum):
    """Author role of a message.

    Values:
        - USER: a participant's utterance (user_id set)
        - ASSISTANT: mediator reply, including fixed safety messages
        - SYSTEM: service notices (joins, status changes); never sent to the model
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """Single stored conversation message."""

    id: str
    session_id: str
    role: MessageRole
    content: str
    stage: SessionStage
    user_id: Optional[str] = None
    author_name: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True, "frozen": True}

"""Real-time broadcast event payloads.

One logical channel per session. Delivery is best-effort at-most-once, so
payloads carry ids that let clients reconcile against a full refetch.
Payload keys are camelCase on the wire.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from mediator.domain.models.message import Message, MessageRole


class RealtimeEvent(str, Enum):
    NEW_MESSAGE = "new_message"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    SESSION_UPDATED = "session_updated"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class NewMessagePayload(_Payload):
    id: str
    session_id: str
    role: MessageRole
    content: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "NewMessagePayload":
        return cls(
            id=message.id,
            session_id=message.session_id,
            role=message.role,
            content=message.content,
            user_id=message.user_id,
            user_name=message.author_name,
            created_at=message.created_at,
        )


class TypingPayload(_Payload):
    user_id: str
    user_name: str
    is_typing: bool


class SessionUpdatedPayload(_Payload):
    session_id: str
    stage: str
    status: str


class PresencePayload(_Payload):
    user_id: str
    user_name: Optional[str] = None


def channel_name(session_id: str) -> str:
    """Broadcast channel name for a session."""
    return f"session-{session_id}"

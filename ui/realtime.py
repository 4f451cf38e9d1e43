# ui/realtime.py
"""Client-side reducer for a session's broadcast channel.

One ConversationView per open conversation, discarded with it. Dedup
state lives on the view, never at module level, so ids from one session
cannot leak into another and the set does not outlive the view.

Delivery from the server is at-most-once. On (re)connect the view must be
reset from a full history refetch; live events are then applied
incrementally and ignored when their id is already known.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import structlog

log = structlog.get_logger(__name__)

TYPING_TTL_SECONDS = 3.0
TYPING_DEBOUNCE_SECONDS = 0.5


class MessageLog:
    """Ordered messages plus the set of ids already applied."""

    def __init__(self) -> None:
        self.messages: List[Dict[str, Any]] = []
        self._ids: Set[str] = set()

    def apply(self, message: Dict[str, Any]) -> bool:
        """Append a message unless its id was already seen.

        Covers the sender's optimistic local echo followed by the broadcast
        echo of the same message.

        Returns:
            True if appended
        """
        message_id = message.get("id")
        if not message_id or message_id in self._ids:
            return False
        self._ids.add(message_id)
        self.messages.append(message)
        return True

    def reset(self, history: List[Dict[str, Any]]) -> None:
        """Replace state with a full refetch (already in persisted order)."""
        self.messages = []
        self._ids = set()
        for message in history:
            self.apply(message)

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self.messages)


class TypingTracker:
    """Active typers with a per-entry inactivity deadline."""

    def __init__(
        self,
        ttl: float = TYPING_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, tuple[str, float]] = {}

    def start(self, user_id: str, user_name: str) -> None:
        """Record or refresh a typer."""
        self._entries[user_id] = (user_name, self.clock() + self.ttl)

    def stop(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def active(self) -> Dict[str, str]:
        """userId -> userName for unexpired entries. Expired ones are dropped."""
        now = self.clock()
        expired = [uid for uid, (_, deadline) in self._entries.items() if deadline <= now]
        for uid in expired:
            del self._entries[uid]
        return {uid: name for uid, (name, _) in self._entries.items()}


class TypingDebouncer:
    """Coalesces keystrokes into one start and one stop signal.

    `start` goes out on the first keystroke of a burst; `stop` goes out after
    `delay` seconds without keystrokes, or immediately on submit().
    """

    def __init__(
        self,
        send: Callable[[bool], Awaitable[None]],
        delay: float = TYPING_DEBOUNCE_SECONDS,
    ):
        self.send = send
        self.delay = delay
        self.typing = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    def keystroke(self) -> None:
        loop = asyncio.get_running_loop()
        if not self.typing:
            self.typing = True
            self._spawn(True)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay, self._expire)

    def _expire(self) -> None:
        self._timer = None
        if self.typing:
            self.typing = False
            self._spawn(False)

    async def submit(self) -> None:
        """Message sent: stop now instead of waiting for the debounce."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.typing:
            self.typing = False
            await self._safe_send(False)

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn(self, is_typing: bool) -> None:
        # Sends go out in order: a stop never overtakes a start still in flight
        pending = list(self._tasks)
        task = asyncio.get_running_loop().create_task(self._send_after(pending, is_typing))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send_after(self, pending: List[asyncio.Task], is_typing: bool) -> None:
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._safe_send(is_typing)

    async def _safe_send(self, is_typing: bool) -> None:
        # Typing is fire-and-forget; a failed signal must not break the view
        try:
            await self.send(is_typing)
        except Exception as e:
            log.warning("typing_signal_failed", is_typing=is_typing, error=str(e))


class ConversationView:
    """Per-view state: messages, typers, stage/status and online users."""

    def __init__(
        self,
        session_id: str,
        self_user_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_id = session_id
        self.self_user_id = self_user_id
        self.log = MessageLog()
        self.typing = TypingTracker(clock=clock)
        self.stage: Optional[str] = None
        self.status: Optional[str] = None
        self.connected_users: Set[str] = set()
        self.discarded = False

    def handle(self, frame: Dict[str, Any]) -> bool:
        """Apply one {"event", "data"} frame.

        Returns:
            True if state changed
        """
        if self.discarded:
            return False

        event = frame.get("event")
        data = frame.get("data") or {}

        if event == "new_message":
            return self.log.apply(data)

        if event in ("typing_start", "typing_stop"):
            user_id = data.get("userId")
            if not user_id or user_id == self.self_user_id:
                return False
            if event == "typing_start" and data.get("isTyping", True):
                self.typing.start(user_id, data.get("userName") or "User")
            else:
                self.typing.stop(user_id)
            return True

        if event == "session_updated":
            self.stage = data.get("stage", self.stage)
            self.status = data.get("status", self.status)
            return True

        if event in ("user_joined", "user_left"):
            user_id = data.get("userId")
            if not user_id:
                return False
            if event == "user_joined":
                self.connected_users.add(user_id)
            else:
                self.connected_users.discard(user_id)
                self.typing.stop(user_id)
            return True

        log.debug("realtime_unknown_event", event_name=event)
        return False

    def add_local(self, message: Dict[str, Any]) -> bool:
        """Optimistic echo of a message this client just sent."""
        return self.log.apply(message)

    def reconnect(self, history: List[Dict[str, Any]]) -> None:
        """Reconcile after (re)connect: full history replaces live state."""
        self.log.reset(history)
        self.typing.clear()

    def discard(self) -> None:
        """Drop all state when the view closes."""
        self.discarded = True
        self.log = MessageLog()
        self.typing.clear()
        self.connected_users.clear()

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return self.log.messages

    def typing_users(self) -> Dict[str, str]:
        return self.typing.active()

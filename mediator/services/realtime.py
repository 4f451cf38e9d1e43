"""
In-process real-time fan-out.

One logical channel per session ("session-<id>"). Each subscriber owns a
bounded asyncio.Queue; publish() never blocks and never raises into the
caller. When a subscriber's queue is full the event is dropped for that
subscriber only (at-most-once). Clients recover by refetching history on
reconnect.
"""

import asyncio
from collections import defaultdict
from typing import Any, AsyncIterator, Dict, List, Optional, Set

import structlog

from mediator.core.config import RealtimeConfig, mediator_config
from mediator.domain.models.events import RealtimeEvent, channel_name

log = structlog.get_logger(__name__)


class Subscription:
    """A single connected client on one session channel."""

    def __init__(self, broker: "SessionBroker", session_id: str, user_id: str, maxsize: int):
        self.broker = broker
        self.session_id = session_id
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def offer(self, frame: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            return False

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.broker.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self

    async def __anext__(self) -> Dict[str, Any]:
        if self.closed:
            raise StopAsyncIteration
        return await self.queue.get()


class SessionBroker:
    """Per-session publish/subscribe with presence tracking."""

    def __init__(self, config: Optional[RealtimeConfig] = None):
        self.config = config or mediator_config.realtime
        self._subscribers: Dict[str, List[Subscription]] = defaultdict(list)

    def subscribe(self, session_id: str, user_id: str) -> Subscription:
        sub = Subscription(self, session_id, user_id, self.config.subscriber_queue_size)
        self._subscribers[session_id].append(sub)
        log.info(
            "realtime_subscribed",
            channel=channel_name(session_id),
            user_id=user_id,
            subscribers=len(self._subscribers[session_id]),
        )
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        subs = self._subscribers.get(sub.session_id)
        if not subs:
            return
        if sub in subs:
            subs.remove(sub)
        if not subs:
            del self._subscribers[sub.session_id]
        log.info(
            "realtime_unsubscribed",
            channel=channel_name(sub.session_id),
            user_id=sub.user_id,
        )

    def publish(
        self,
        session_id: str,
        event: RealtimeEvent,
        data: Dict[str, Any],
        exclude_user_id: Optional[str] = None,
    ) -> int:
        """
        Fan an event out to every subscriber of the session.

        Args:
            session_id: Session channel
            event: Event name
            data: camelCase payload
            exclude_user_id: Skip subscribers owned by this user (typing echoes)

        Returns:
            Number of subscribers the event was queued for
        """
        frame = {"event": event.value, "data": data}
        delivered = 0
        for sub in list(self._subscribers.get(session_id, ())):
            if exclude_user_id is not None and sub.user_id == exclude_user_id:
                continue
            if sub.offer(frame):
                delivered += 1
            else:
                log.warning(
                    "realtime_event_dropped",
                    channel=channel_name(session_id),
                    event_name=event.value,
                    user_id=sub.user_id,
                )
        return delivered

    def connected_users(self, session_id: str) -> Set[str]:
        return {sub.user_id for sub in self._subscribers.get(session_id, ())}

    def is_connected(self, session_id: str, user_id: str) -> bool:
        return user_id in self.connected_users(session_id)

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

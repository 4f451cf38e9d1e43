"""Per-session asyncio locks serializing turns and joins within one process."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class SessionLocks:
    """Keyed lock registry.

    Locks are created on first use and dropped once no task holds or waits
    on them, so the registry does not grow with the number of sessions.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[session_id] -= 1
            if self._waiters[session_id] == 0:
                del self._waiters[session_id]
                self._locks.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._locks)

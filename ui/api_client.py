# ui/api_client.py
"""API client for the mediator backend.

Supports both synchronous and asynchronous usage patterns:

**Synchronous (scripts, blocking contexts):**
    client = APIClient(user_id="u1", user_name="Alex")
    session = client.create_session(topic="Chores")

**Asynchronous (conversation views, async frameworks):**
    client = APIClient(user_id="u1")
    turn = await client.send_message_async(session_id, "Hi")

Identity is sent as X-User-Id / X-User-Name, the headers the upstream
authenticator sets in production.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx


@dataclass
class SessionInfo:
    """Information about a mediation session."""
    id: str
    topic: str
    stage: str
    status: str
    session_mode: str
    welcome_message: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SessionInfo":
        return cls(
            id=data["id"],
            topic=data["topic"],
            stage=data["stage"],
            status=data["status"],
            session_mode=data.get("sessionMode", "solo"),
            welcome_message=data.get("welcomeMessage"),
            created_at=data.get("createdAt"),
        )


class APIClient:
    """HTTP client for the mediator API.

    Args:
        base_url: API base URL (default: http://localhost:8000)
        user_id: Caller identity sent on every request
        user_name: Optional display name
        timeout: Request timeout in seconds (default: 30.0)
        transport: Optional httpx transport (tests pass an ASGI or mock transport)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: str = "anonymous",
        user_name: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        async_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.user_name = user_name
        self.timeout = timeout
        self.transport = transport
        self.async_transport = async_transport

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"X-User-Id": self.user_id}
        if self.user_name:
            headers["X-User-Name"] = self.user_name
        return headers

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    def _async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.async_transport,
        )

    def events_url(self, session_id: str) -> str:
        """WebSocket URL for a session's broadcast channel."""
        ws_base = self.base_url.replace("https://", "wss://").replace("http://", "ws://")
        return f"{ws_base}/sessions/{session_id}/events?user_id={self.user_id}"

    # ============ SYNC METHODS ============

    def create_session(
        self,
        topic: Optional[str] = None,
        mode: str = "solo",
        template_context: Optional[str] = None,
    ) -> SessionInfo:
        """Create a session and receive its welcome message (synchronous)."""
        payload: Dict[str, Any] = {"mode": mode}
        if topic:
            payload["topic"] = topic
        if template_context:
            payload["templateContext"] = template_context

        with self._client() as client:
            response = client.post("/sessions", json=payload)
            response.raise_for_status()
            return SessionInfo.from_json(response.json())

    def list_sessions(self) -> Dict[str, Any]:
        """Sessions the caller initiated or joined.

        Returns:
            Dict with 'sessions' list and 'total' count
        """
        with self._client() as client:
            response = client.get("/sessions")
            response.raise_for_status()
            return response.json()

    def get_messages(self, session_id: str) -> List[Dict[str, Any]]:
        with self._client() as client:
            response = client.get(f"/sessions/{session_id}/messages")
            response.raise_for_status()
            return response.json()

    def send_message(self, session_id: str, content: str) -> Dict[str, Any]:
        """Submit an utterance (synchronous).

        Returns:
            {userMessage, assistantMessage, nextStage?, safetyAlert?}
        """
        with self._client() as client:
            response = client.post(
                f"/sessions/{session_id}/messages", json={"content": content}
            )
            response.raise_for_status()
            return response.json()

    def generate_invite(self, session_id: str) -> Dict[str, Any]:
        with self._client() as client:
            response = client.post(f"/sessions/{session_id}/invite")
            response.raise_for_status()
            return response.json()

    def preview_invite(self, code: str) -> Optional[Dict[str, Any]]:
        with self._client() as client:
            response = client.get("/sessions/join", params={"code": code})
            response.raise_for_status()
            return response.json()

    def join(self, invite_code: str, display_name: Optional[str] = None) -> str:
        """Join a session by invite code. Returns the session id."""
        payload: Dict[str, Any] = {"inviteCode": invite_code}
        if display_name:
            payload["displayName"] = display_name
        with self._client() as client:
            response = client.post("/sessions/join", json=payload)
            response.raise_for_status()
            return response.json()["sessionId"]

    def get_participants(self, session_id: str) -> Dict[str, Any]:
        with self._client() as client:
            response = client.get(f"/sessions/{session_id}/participants")
            response.raise_for_status()
            return response.json()

    def change_status(self, session_id: str, action: str) -> SessionInfo:
        """Pause, resume or abandon a session."""
        with self._client() as client:
            response = client.post(
                f"/sessions/{session_id}/status", json={"action": action}
            )
            response.raise_for_status()
            return SessionInfo.from_json(response.json())

    # ============ ASYNC METHODS ============

    async def get_messages_async(self, session_id: str) -> List[Dict[str, Any]]:
        """Full ordered history, used to reconcile a view on (re)connect."""
        async with self._async_client() as client:
            response = await client.get(f"/sessions/{session_id}/messages")
            response.raise_for_status()
            return response.json()

    async def send_message_async(self, session_id: str, content: str) -> Dict[str, Any]:
        async with self._async_client() as client:
            response = await client.post(
                f"/sessions/{session_id}/messages", json={"content": content}
            )
            response.raise_for_status()
            return response.json()

    async def set_typing_async(self, session_id: str, is_typing: bool) -> None:
        """Fire-and-forget typing signal."""
        async with self._async_client() as client:
            response = await client.post(
                f"/sessions/{session_id}/typing", json={"isTyping": is_typing}
            )
            response.raise_for_status()

    async def heartbeat_async(self, session_id: str) -> None:
        async with self._async_client() as client:
            response = await client.post(f"/sessions/{session_id}/heartbeat")
            response.raise_for_status()

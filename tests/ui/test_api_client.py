"""Tests for the mediator API client."""

import json

import httpx
import pytest

from ui.api_client import APIClient, SessionInfo

SESSION_JSON = {
    "id": "s1",
    "topic": "Chores",
    "stage": "intake",
    "status": "active",
    "sessionMode": "solo",
    "createdAt": "2026-01-01T00:00:00Z",
    "welcomeMessage": {"id": "m0", "content": "Welcome!"},
}


def recording_transport(responses, calls, transport_cls=httpx.MockTransport):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        status, body = responses[(request.method, request.url.path)]
        return httpx.Response(status, json=body)

    return transport_cls(handler)


class TestSync:
    def test_identity_headers_and_create(self):
        calls = []
        transport = recording_transport({("POST", "/sessions"): (201, SESSION_JSON)}, calls)
        client = APIClient(user_id="u1", user_name="Alex", transport=transport)

        session = client.create_session(topic="Chores", template_context="Dishes")

        assert isinstance(session, SessionInfo)
        assert session.session_mode == "solo"
        assert session.welcome_message["content"] == "Welcome!"
        request = calls[0]
        assert request.headers["X-User-Id"] == "u1"
        assert request.headers["X-User-Name"] == "Alex"
        assert json.loads(request.content) == {
            "mode": "solo",
            "topic": "Chores",
            "templateContext": "Dishes",
        }

    def test_join_returns_session_id(self):
        calls = []
        transport = recording_transport(
            {("POST", "/sessions/join"): (200, {"success": True, "sessionId": "s1"})}, calls
        )
        client = APIClient(user_id="u2", transport=transport)

        assert client.join("abcd2345", display_name="Sam") == "s1"
        assert json.loads(calls[0].content) == {"inviteCode": "abcd2345", "displayName": "Sam"}
        assert "X-User-Name" not in calls[0].headers

    def test_error_status_raises(self):
        transport = recording_transport(
            {("POST", "/sessions/join"): (400, {"error": {"message": "This invite has expired"}})},
            [],
        )
        client = APIClient(user_id="u2", transport=transport)

        with pytest.raises(httpx.HTTPStatusError):
            client.join("OLDCODE1")

    def test_events_url(self):
        client = APIClient(base_url="https://mediator.example.com/", user_id="u1")
        assert client.events_url("s1") == "wss://mediator.example.com/sessions/s1/events?user_id=u1"


class TestAsync:
    async def test_send_message_async(self):
        calls = []
        turn = {"userMessage": {"id": "m1"}, "assistantMessage": {"id": "m2"}}

        async def handler(request):
            calls.append(request)
            return httpx.Response(200, json=turn)

        client = APIClient(user_id="u1", async_transport=httpx.MockTransport(handler))

        result = await client.send_message_async("s1", "Hello")

        assert result["assistantMessage"]["id"] == "m2"
        assert calls[0].url.path == "/sessions/s1/messages"
        assert json.loads(calls[0].content) == {"content": "Hello"}

    async def test_typing_and_heartbeat(self):
        paths = []

        async def handler(request):
            paths.append((request.url.path, request.content))
            return httpx.Response(200, json={"success": True})

        client = APIClient(user_id="u1", async_transport=httpx.MockTransport(handler))

        await client.set_typing_async("s1", True)
        await client.heartbeat_async("s1")

        assert paths[0][0] == "/sessions/s1/typing"
        assert json.loads(paths[0][1]) == {"isTyping": True}
        assert paths[1][0] == "/sessions/s1/heartbeat"

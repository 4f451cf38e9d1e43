"""
Shared test fixtures.

Temp SQLite database per test, repositories bound to it, and LLM clients
replaced by AsyncMocks returning canned LLMResponses.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from mediator.core.config import (
    HistoryConfig,
    InviteConfig,
    PresenceConfig,
    RealtimeConfig,
    SafetyConfig,
    StageConfig,
)
from mediator.llm.client import LLMResponse
from mediator.persistence.database import init_database
from mediator.persistence.repositories.message_repo import MessageRepository
from mediator.persistence.repositories.participant_repo import ParticipantRepository
from mediator.persistence.repositories.session_repo import SessionRepository
from mediator.persistence.repositories.settings_repo import SettingsRepository
from mediator.services.conversation_service import ConversationService
from mediator.services.locks import SessionLocks
from mediator.services.participant_service import ParticipantService
from mediator.services.realtime import SessionBroker
from mediator.services.safety_service import SafetyClassifier
from mediator.services.session_service import SessionService
from mediator.services.settings_service import SettingsService
from mediator.services.stage_machine import StageMachine

SAFE_JSON = json.dumps(
    {"safe": True, "concerns": {"crisis": False, "abuse": False, "escalation": False}}
)


def llm_response(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="test-model", latency_ms=12.5)


def verdict_json(crisis=False, abuse=False, escalation=False, safe=None) -> str:
    if safe is None:
        safe = not (crisis or abuse or escalation)
    return json.dumps(
        {
            "safe": safe,
            "concerns": {"crisis": crisis, "abuse": abuse, "escalation": escalation},
            "reason": None if safe else "flagged",
        }
    )


def mock_llm(*contents: str) -> AsyncMock:
    """LLM client whose complete() returns the given contents in order.

    With one content, every call returns it.
    """
    client = AsyncMock()
    if len(contents) == 1:
        client.complete.return_value = llm_response(contents[0])
    else:
        client.complete.side_effect = [llm_response(c) for c in contents]
    return client


@pytest.fixture
async def test_db():
    """Create and initialize test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from mediator.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        with patch("mediator.persistence.database.settings", config.settings):
            yield db_path

        config.settings.database_path = original_path


@pytest.fixture
def session_repo(test_db):
    return SessionRepository(str(test_db))


@pytest.fixture
def message_repo(test_db):
    return MessageRepository(str(test_db))


@pytest.fixture
def participant_repo(test_db):
    return ParticipantRepository(str(test_db))


@pytest.fixture
def settings_repo(test_db):
    return SettingsRepository(str(test_db))


@pytest.fixture
def broker():
    return SessionBroker(RealtimeConfig(subscriber_queue_size=10))


@pytest.fixture
def locks():
    return SessionLocks()


@pytest.fixture
def safety_llm():
    """Safety client that clears every utterance."""
    return mock_llm(SAFE_JSON)


@pytest.fixture
def generation_llm():
    """Generation client with a plain reply that does not advance the stage."""
    return mock_llm("I hear you. Can you tell me more about what happened?")


@pytest.fixture
def stage_config():
    return StageConfig()


@pytest.fixture
def conversation_service(safety_llm, generation_llm, stage_config):
    return ConversationService(
        llm_client=generation_llm,
        safety=SafetyClassifier(safety_llm, SafetyConfig(fail_open=True)),
        stage_machine=StageMachine(stage_config),
        history_config=HistoryConfig(),
    )


@pytest.fixture
def participant_service(session_repo, participant_repo, broker, locks):
    return ParticipantService(
        session_repo,
        participant_repo,
        broker,
        locks,
        invite_config=InviteConfig(),
        presence_config=PresenceConfig(),
    )


@pytest.fixture
def settings_service(settings_repo):
    return SettingsService(settings_repo)


@pytest.fixture
def session_service(
    session_repo,
    message_repo,
    participant_service,
    conversation_service,
    settings_service,
    broker,
    locks,
):
    return SessionService(
        session_repo=session_repo,
        message_repo=message_repo,
        participants=participant_service,
        conversation=conversation_service,
        settings_service=settings_service,
        broker=broker,
        locks=locks,
        history_config=HistoryConfig(),
    )


@pytest.fixture
def make_llm():
    """Factory for mock LLM clients (see mock_llm)."""
    return mock_llm


@pytest.fixture
def make_verdict():
    """Factory for classifier JSON output."""
    return verdict_json

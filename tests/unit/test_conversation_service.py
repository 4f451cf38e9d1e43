"""Tests for the conversation orchestrator."""

from datetime import datetime, timedelta, timezone

import pytest

from mediator.core.config import HistoryConfig, SafetyConfig, StageConfig
from mediator.core.exceptions import (
    GenerationError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from mediator.domain.models.message import Message, MessageRole
from mediator.domain.models.personality import MediatorTone, PersonalityProfile
from mediator.domain.models.safety import SafetyAlertType
from mediator.domain.models.session import SessionMode, SessionStage
from mediator.llm.prompts.mediator import FALLBACK_WELCOME
from mediator.llm.prompts.personality import TONE_PROMPTS
from mediator.llm.prompts.safety import DEESCALATION_MESSAGE
from mediator.services.conversation_service import (
    SESSION_OPENER,
    ConversationService,
    build_history_turns,
    format_user_turn,
)
from mediator.services.safety_service import SafetyClassifier
from mediator.services.stage_machine import StageMachine

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def msg(role: MessageRole, content: str, n: int, author: str = None) -> Message:
    return Message(
        id=f"m{n}",
        session_id="s1",
        role=role,
        content=content,
        stage=SessionStage.INTAKE,
        user_id="u1" if role == MessageRole.USER else None,
        author_name=author,
        created_at=T0 + timedelta(seconds=n),
    )


def make_service(safety_llm, generation_llm, detection="hybrid", fail_open=True, max_turns=100):
    return ConversationService(
        llm_client=generation_llm,
        safety=SafetyClassifier(safety_llm, SafetyConfig(fail_open=fail_open)),
        stage_machine=StageMachine(StageConfig(detection=detection)),
        history_config=HistoryConfig(max_turns=max_turns),
    )


class TestHistoryMapping:
    def test_solo_user_turns_are_unprefixed(self):
        assert format_user_turn("Hi", "Alex", SessionMode.SOLO) == "Hi"

    def test_collaborative_user_turns_carry_speaker(self):
        assert format_user_turn("Hi", "Alex", SessionMode.COLLABORATIVE) == "Alex: Hi"
        assert format_user_turn("Hi", None, SessionMode.COLLABORATIVE) == "Participant: Hi"

    def test_welcome_first_history_gets_opener(self):
        history = [
            msg(MessageRole.ASSISTANT, "Welcome!", 0),
            msg(MessageRole.USER, "We argue about chores", 1),
        ]
        turns = build_history_turns(history, SessionMode.SOLO)
        assert turns[0] == {"role": "user", "content": SESSION_OPENER}
        assert turns[1] == {"role": "assistant", "content": "Welcome!"}
        assert turns[2] == {"role": "user", "content": "We argue about chores"}

    def test_system_messages_skipped_and_same_roles_merged(self):
        history = [
            msg(MessageRole.USER, "First", 0, author="Alex"),
            msg(MessageRole.SYSTEM, "Sam joined", 1),
            msg(MessageRole.USER, "Second", 2, author="Sam"),
            msg(MessageRole.ASSISTANT, "Thanks both", 3),
        ]
        turns = build_history_turns(history, SessionMode.COLLABORATIVE)
        assert turns == [
            {"role": "user", "content": "Alex: First\n\nSam: Second"},
            {"role": "assistant", "content": "Thanks both"},
        ]


class TestRespond:
    async def test_solo_progress_phrase_advances_from_intake(self, make_llm, make_verdict):
        """Intake reply with a progress phrase moves to person_a_observation."""
        generation = make_llm(
            "Thank you for sharing. Let's start with what you observed."
        )
        service = make_service(make_llm(make_verdict()), generation)

        reply = await service.respond(
            history=[msg(MessageRole.ASSISTANT, "Welcome!", 0)],
            stage=SessionStage.INTAKE,
            utterance="We keep arguing about chores",
        )

        assert reply.next_stage == SessionStage.PERSON_A_OBSERVATION
        assert reply.safety_alert is None
        assert not reply.short_circuited
        assert reply.message.startswith("Thank you for sharing")

    async def test_plain_reply_keeps_stage(self, make_llm, make_verdict):
        service = make_service(make_llm(make_verdict()), make_llm("What happened then?"))

        reply = await service.respond([], SessionStage.PERSON_A_FEELING, "I was upset")

        assert reply.next_stage is None
        assert reply.message == "What happened then?"

    async def test_escalation_short_circuits_without_generation(self, make_llm, make_verdict):
        generation = make_llm("should never be used")
        service = make_service(make_llm(make_verdict(escalation=True)), generation)

        reply = await service.respond([], SessionStage.PERSON_A_NEED, "I'm done talking to you")

        assert reply.message == DEESCALATION_MESSAGE
        assert reply.safety_alert.type == SafetyAlertType.ESCALATION
        assert reply.next_stage is None
        assert reply.short_circuited
        generation.complete.assert_not_awaited()

    async def test_crisis_short_circuits(self, make_llm, make_verdict):
        generation = make_llm("unused")
        service = make_service(make_llm(make_verdict(crisis=True, abuse=True)), generation)

        reply = await service.respond([], SessionStage.INTAKE, "...")

        assert reply.safety_alert.type == SafetyAlertType.CRISIS
        generation.complete.assert_not_awaited()

    async def test_classifier_failure_proceeds_to_generation(self, make_llm):
        safety = make_llm("unused")
        safety.complete.side_effect = RuntimeError("classifier down")
        generation = make_llm("Tell me more.")
        service = make_service(safety, generation)

        reply = await service.respond([], SessionStage.INTAKE, "Hello")

        assert reply.message == "Tell me more."
        generation.complete.assert_awaited_once()

    async def test_completion_request_shape(self, make_llm, make_verdict):
        generation = make_llm("Go on.")
        service = make_service(make_llm(make_verdict()), generation)
        profile = PersonalityProfile(tone=MediatorTone.DIRECT)
        history = [
            msg(MessageRole.ASSISTANT, "Welcome!", 0),
            msg(MessageRole.USER, "Hi", 1, author="Alex"),
            msg(MessageRole.ASSISTANT, "Who goes first?", 2),
        ]

        await service.respond(
            history,
            SessionStage.INTAKE,
            "I will",
            profile=profile,
            mode=SessionMode.COLLABORATIVE,
            speaker_name="Sam",
        )

        call = generation.complete.call_args
        assert call.args[0] == "Sam: I will"
        assert call.kwargs["history"] == [
            {"role": "user", "content": SESSION_OPENER},
            {"role": "assistant", "content": "Welcome!"},
            {"role": "user", "content": "Alex: Hi"},
            {"role": "assistant", "content": "Who goes first?"},
        ]
        system = call.kwargs["system"]
        assert TONE_PROMPTS[MediatorTone.DIRECT] in system
        assert "Current stage: intake" in system
        assert "[[ADVANCE]]" in system

    async def test_trailing_user_turn_merged_into_prompt(self, make_llm, make_verdict):
        generation = make_llm("Okay.")
        service = make_service(make_llm(make_verdict()), generation)

        await service.respond(
            [msg(MessageRole.ASSISTANT, "Welcome!", 0), msg(MessageRole.USER, "Earlier", 1)],
            SessionStage.INTAKE,
            "Now",
        )

        call = generation.complete.call_args
        assert call.args[0] == "Earlier\n\nNow"
        assert call.kwargs["history"][-1]["role"] == "assistant"

    async def test_keyword_mode_omits_advance_directive(self, make_llm, make_verdict):
        generation = make_llm("Okay.")
        service = make_service(make_llm(make_verdict()), generation, detection="keyword")

        await service.respond([], SessionStage.INTAKE, "Hi")

        assert "[[ADVANCE]]" not in generation.complete.call_args.kwargs["system"]

    async def test_history_is_bounded(self, make_llm, make_verdict):
        generation = make_llm("Okay.")
        service = make_service(make_llm(make_verdict()), generation, max_turns=2)
        history = [
            msg(MessageRole.USER if n % 2 else MessageRole.ASSISTANT, f"t{n}", n)
            for n in range(10)
        ]

        await service.respond(history, SessionStage.INTAKE, "latest")

        call = generation.complete.call_args
        assert call.kwargs["history"] == [{"role": "user", "content": SESSION_OPENER}, {"role": "assistant", "content": "t8"}]
        assert call.args[0] == "t9\n\nlatest"

    async def test_control_token_never_reaches_reply(self, make_llm, make_verdict):
        service = make_service(make_llm(make_verdict()), make_llm("Great work.\n[[ADVANCE]]"))

        reply = await service.respond([], SessionStage.PERSON_A_REQUEST, "Could you call?")

        assert reply.message == "Great work."
        assert reply.next_stage == SessionStage.REFLECTION_A

    async def test_generation_failure_is_wrapped(self, make_llm, make_verdict):
        generation = make_llm("unused")
        generation.complete.side_effect = RuntimeError("HTTP 500")
        service = make_service(make_llm(make_verdict()), generation)

        with pytest.raises(GenerationError):
            await service.respond([], SessionStage.INTAKE, "Hi")

    @pytest.mark.parametrize("error", [LLMTimeoutError("slow"), LLMRateLimitError("429")])
    async def test_timeout_and_rate_limit_propagate(self, make_llm, make_verdict, error):
        generation = make_llm("unused")
        generation.complete.side_effect = error
        service = make_service(make_llm(make_verdict()), generation)

        with pytest.raises(type(error)):
            await service.respond([], SessionStage.INTAKE, "Hi")

    async def test_empty_reply_is_a_generation_error(self, make_llm, make_verdict):
        service = make_service(make_llm(make_verdict()), make_llm("  [[ADVANCE]] "))

        with pytest.raises(GenerationError):
            await service.respond([], SessionStage.INTAKE, "Hi")


class TestWelcome:
    async def test_generated_welcome(self, make_llm):
        generation = make_llm("Welcome, Alex!")
        service = make_service(make_llm("unused"), generation)

        text = await service.welcome("Chores at home", mode=SessionMode.SOLO)

        assert text == "Welcome, Alex!"
        prompt = generation.complete.call_args.args[0]
        assert "Chores at home" in prompt
        assert generation.complete.call_args.kwargs["max_tokens"] == 512

    async def test_failure_falls_back(self, make_llm):
        generation = make_llm("unused")
        generation.complete.side_effect = LLMTimeoutError("slow")
        service = make_service(make_llm("unused"), generation)

        text = await service.welcome(mode=SessionMode.COLLABORATIVE)

        assert text == FALLBACK_WELCOME[SessionMode.COLLABORATIVE]

    async def test_empty_welcome_falls_back(self, make_llm):
        service = make_service(make_llm("unused"), make_llm("   "))
        assert await service.welcome() == FALLBACK_WELCOME[SessionMode.SOLO]

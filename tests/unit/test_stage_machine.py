"""Tests for the stage state machine."""

import pytest

from mediator.core.config import StageConfig
from mediator.domain.models.session import SessionStage
from mediator.services.stage_machine import (
    STAGE_ORDER,
    StageMachine,
    following_stage,
    is_terminal,
    stage_progress,
)


class TestStageOrder:
    def test_fourteen_stages_intake_to_complete(self):
        assert len(STAGE_ORDER) == 14
        assert STAGE_ORDER[0] == SessionStage.INTAKE
        assert STAGE_ORDER[-1] == SessionStage.COMPLETE

    def test_following_stage_steps_by_one(self):
        assert following_stage(SessionStage.INTAKE) == SessionStage.PERSON_A_OBSERVATION
        assert following_stage(SessionStage.REFLECTION_A) == SessionStage.PERSON_B_OBSERVATION
        assert following_stage(SessionStage.AGREEMENT) == SessionStage.COMPLETE

    def test_complete_is_terminal(self):
        assert is_terminal(SessionStage.COMPLETE)
        assert following_stage(SessionStage.COMPLETE) == SessionStage.COMPLETE
        assert not is_terminal(SessionStage.AGREEMENT)

    def test_progress_bounds(self):
        assert stage_progress(SessionStage.INTAKE) == 0.0
        assert stage_progress(SessionStage.COMPLETE) == 1.0
        assert 0.0 < stage_progress(SessionStage.COMMON_GROUND) < 1.0


class TestHybridDetection:
    """Default mode: control token or progress phrase."""

    @pytest.fixture
    def machine(self):
        return StageMachine(StageConfig(detection="hybrid"))

    def test_progress_phrase_advances_one_step(self, machine):
        decision = machine.next_stage(
            SessionStage.INTAKE, "Thank you for sharing that with me."
        )
        assert decision.next_stage == SessionStage.PERSON_A_OBSERVATION
        assert decision.reason == "keyword"
        assert decision.advanced_from(SessionStage.INTAKE)

    def test_phrase_match_is_case_insensitive(self, machine):
        decision = machine.next_stage(SessionStage.PERSON_A_NEED, "NOW THAT WE HAVE your need...")
        assert decision.next_stage == SessionStage.PERSON_A_REQUEST

    def test_curly_apostrophe_matches(self, machine):
        decision = machine.next_stage(SessionStage.REFLECTION_A, "Let’s hear from your partner.")
        assert decision.next_stage == SessionStage.PERSON_B_OBSERVATION

    def test_token_advances_and_is_stripped(self, machine):
        decision = machine.next_stage(
            SessionStage.PERSON_A_FEELING, "That makes sense.\n[[ADVANCE]]"
        )
        assert decision.next_stage == SessionStage.PERSON_A_NEED
        assert decision.reason == "signal"
        assert "[[ADVANCE]]" not in decision.reply
        assert decision.reply == "That makes sense."

    def test_no_cue_stays(self, machine):
        decision = machine.next_stage(SessionStage.INTAKE, "What happened next?")
        assert decision.next_stage == SessionStage.INTAKE
        assert decision.reason is None
        assert not decision.advanced_from(SessionStage.INTAKE)

    def test_never_skips_even_with_many_cues(self, machine):
        reply = "Thank you for sharing. Let's move on to the next step. [[ADVANCE]]"
        decision = machine.next_stage(SessionStage.INTAKE, reply)
        assert decision.next_stage == SessionStage.PERSON_A_OBSERVATION

    def test_complete_never_changes(self, machine):
        decision = machine.next_stage(
            SessionStage.COMPLETE, "Let's summarize our agreement. [[ADVANCE]]"
        )
        assert decision.next_stage == SessionStage.COMPLETE
        assert "[[ADVANCE]]" not in decision.reply

    def test_monotonic_over_a_whole_conversation(self, machine):
        stage = SessionStage.INTAKE
        seen = [stage]
        replies = ["Tell me more.", "Thank you for sharing.", "Hmm.", "[[ADVANCE]]"] * 20
        for reply in replies:
            stage = machine.next_stage(stage, reply).next_stage
            assert STAGE_ORDER.index(stage) - STAGE_ORDER.index(seen[-1]) in (0, 1)
            seen.append(stage)
        assert stage == SessionStage.COMPLETE


class TestSignalDetection:
    @pytest.fixture
    def machine(self):
        return StageMachine(StageConfig(detection="signal"))

    def test_phrase_alone_does_not_advance(self, machine):
        decision = machine.next_stage(SessionStage.INTAKE, "Thank you for sharing.")
        assert decision.next_stage == SessionStage.INTAKE

    def test_token_advances(self, machine):
        decision = machine.next_stage(SessionStage.INTAKE, "Okay. [[ADVANCE]]")
        assert decision.next_stage == SessionStage.PERSON_A_OBSERVATION

    def test_emits_signal(self, machine):
        assert machine.emits_signal


class TestKeywordDetection:
    @pytest.fixture
    def machine(self):
        return StageMachine(StageConfig(detection="keyword"))

    def test_token_alone_does_not_advance_but_is_stripped(self, machine):
        decision = machine.next_stage(SessionStage.INTAKE, "Okay. [[ADVANCE]]")
        assert decision.next_stage == SessionStage.INTAKE
        assert decision.reply == "Okay."

    def test_does_not_emit_signal(self, machine):
        assert not machine.emits_signal

    def test_custom_phrases_are_lowercased(self):
        machine = StageMachine(
            StageConfig(detection="keyword", progress_phrases=["  Onward  ", ""])
        )
        assert machine.config.progress_phrases == ["onward"]
        assert machine.next_stage(SessionStage.INTAKE, "ONWARD!").next_stage == (
            SessionStage.PERSON_A_OBSERVATION
        )

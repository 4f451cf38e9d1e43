"""Tests for the safety classifier and its response parsing."""

import pytest

from mediator.core.config import SafetyConfig
from mediator.core.exceptions import (
    LLMResponseParseError,
    LLMTimeoutError,
    SafetyCheckUnavailableError,
)
from mediator.domain.models.safety import SafetyAlertType, SafetyConcerns, SafetyVerdict
from mediator.llm.prompts.safety import (
    CRISIS_RESOURCES,
    DEESCALATION_MESSAGE,
    get_safety_user_prompt,
    parse_safety_response,
)
from mediator.services.safety_service import SafetyClassifier, short_circuit


class TestParseSafetyResponse:
    def test_plain_json(self, make_verdict):
        verdict = parse_safety_response(make_verdict(crisis=True))
        assert verdict.safe is False
        assert verdict.concerns.crisis is True
        assert verdict.reason == "flagged"

    def test_fenced_json_with_prose(self, make_verdict):
        text = f"Here is my analysis:\n```json\n{make_verdict()}\n```\nDone."
        verdict = parse_safety_response(text)
        assert verdict.safe is True
        assert not verdict.concerns.any

    def test_json_surrounded_by_text(self):
        text = 'Result: {"safe": false, "concerns": {"escalation": true}, "reason": "a {b}"} ok'
        verdict = parse_safety_response(text)
        assert verdict.concerns.escalation is True
        assert verdict.concerns.crisis is False
        assert verdict.reason == "a {b}"

    def test_missing_safe_field_raises(self):
        with pytest.raises(LLMResponseParseError):
            parse_safety_response('{"concerns": {"crisis": false}}')

    def test_no_json_raises(self):
        with pytest.raises(LLMResponseParseError):
            parse_safety_response("I cannot help with that.")

    def test_unterminated_json_raises(self):
        with pytest.raises(LLMResponseParseError):
            parse_safety_response('{"safe": true, "concerns": {')

    def test_user_prompt_quotes_utterance(self):
        prompt = get_safety_user_prompt("I feel stuck")
        assert prompt.endswith('Message to analyze: "I feel stuck"')


class TestVerdict:
    def test_any_concern_blocks(self):
        verdict = SafetyVerdict(safe=True, concerns=SafetyConcerns(escalation=True))
        assert verdict.blocks_conversation

    def test_unsafe_without_concern_proceeds(self):
        assert not SafetyVerdict(safe=False).blocks_conversation

    def test_fail_open_is_all_clear(self):
        verdict = SafetyVerdict.fail_open()
        assert verdict.safe is True
        assert not verdict.concerns.any


class TestShortCircuit:
    def test_clear_verdict_proceeds(self):
        assert short_circuit(SafetyVerdict()) is None

    def test_crisis_returns_resources(self):
        message, alert = short_circuit(
            SafetyVerdict(safe=False, concerns=SafetyConcerns(crisis=True))
        )
        assert message == CRISIS_RESOURCES
        assert alert.type == SafetyAlertType.CRISIS

    def test_abuse_returns_resources(self):
        message, alert = short_circuit(
            SafetyVerdict(safe=False, concerns=SafetyConcerns(abuse=True))
        )
        assert message == CRISIS_RESOURCES
        assert alert.type == SafetyAlertType.ABUSE

    def test_escalation_returns_deescalation(self):
        message, alert = short_circuit(
            SafetyVerdict(safe=False, concerns=SafetyConcerns(escalation=True))
        )
        assert message == DEESCALATION_MESSAGE
        assert alert.type == SafetyAlertType.ESCALATION

    def test_crisis_beats_abuse_beats_escalation(self):
        all_flags = SafetyConcerns(crisis=True, abuse=True, escalation=True)
        _, alert = short_circuit(SafetyVerdict(safe=False, concerns=all_flags))
        assert alert.type == SafetyAlertType.CRISIS

        abuse_and_escalation = SafetyConcerns(abuse=True, escalation=True)
        _, alert = short_circuit(SafetyVerdict(safe=False, concerns=abuse_and_escalation))
        assert alert.type == SafetyAlertType.ABUSE


class TestSafetyClassifier:
    async def test_classifies_with_one_call(self, make_llm, make_verdict):
        llm = make_llm(make_verdict(abuse=True))
        classifier = SafetyClassifier(llm, SafetyConfig(fail_open=True))

        verdict = await classifier.classify("He scares me")

        assert verdict.concerns.abuse is True
        llm.complete.assert_awaited_once()
        prompt = llm.complete.call_args.args[0]
        assert '"He scares me"' in prompt

    @pytest.mark.parametrize(
        "failure",
        [
            LLMTimeoutError("timed out"),
            RuntimeError("connection reset"),
        ],
    )
    async def test_client_failure_fails_open(self, make_llm, failure):
        llm = make_llm("unused")
        llm.complete.side_effect = failure
        classifier = SafetyClassifier(llm, SafetyConfig(fail_open=True))

        verdict = await classifier.classify("anything")

        assert verdict == SafetyVerdict.fail_open()

    @pytest.mark.parametrize(
        "output",
        ["", "not json at all", '{"concerns": {}}', "```json\n{broken\n```"],
    )
    async def test_unusable_output_fails_open(self, make_llm, output):
        classifier = SafetyClassifier(make_llm(output), SafetyConfig(fail_open=True))

        verdict = await classifier.classify("anything")

        assert verdict.safe is True
        assert not verdict.blocks_conversation

    async def test_fail_closed_raises(self, make_llm):
        classifier = SafetyClassifier(make_llm("garbage"), SafetyConfig(fail_open=False))

        with pytest.raises(SafetyCheckUnavailableError):
            await classifier.classify("anything")

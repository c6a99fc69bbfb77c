"""Tests for the sentiment classifier: retries and response parsing."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from classifier import (
    Classifier,
    FAILED_SUMMARY,
    build_prompt,
    parse_classification,
)
from schemas import Sentiment


@pytest.fixture
def delays():
    return []


@pytest.fixture
def fake_sleep(delays):
    async def _sleep(seconds):
        delays.append(seconds)
    return _sleep


def openai_response(text):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=text))]
    return response


# ============================================================================
# UNIT TESTS - RETRY POLICY
# ============================================================================

class TestClassifierRetries:
    """Retry and fallback behavior around the model invocation."""

    @pytest.mark.asyncio
    async def test_all_attempts_fail_returns_sentinel(self, fake_sleep, delays):
        invoke = AsyncMock(side_effect=RuntimeError("connection reset"))
        classifier = Classifier(invoke=invoke, base_delay=0.5, sleep=fake_sleep)

        result = await classifier.classify("The dashboard is slow")

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.confidence == 0.0
        assert result.summary == FAILED_SUMMARY
        assert invoke.await_count == 3
        # No wait after the final attempt
        assert delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, fake_sleep, delays):
        invoke = AsyncMock(side_effect=[
            TimeoutError("timed out"),
            '{"sentiment": "Negative", "confidence": 0.9, "summary": "Deploys fail"}'
        ])
        classifier = Classifier(invoke=invoke, base_delay=0.5, sleep=fake_sleep)

        result = await classifier.classify("Deploys keep failing")

        assert result.sentiment == Sentiment.NEGATIVE
        assert result.confidence == pytest.approx(0.9)
        assert invoke.await_count == 2
        assert delays == [0.5]

    @pytest.mark.asyncio
    async def test_unparsable_response_is_not_retried(self, fake_sleep, delays):
        invoke = AsyncMock(return_value="I cannot help with that.")
        classifier = Classifier(invoke=invoke, sleep=fake_sleep)

        result = await classifier.classify("???")

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.confidence == 0.0
        assert result.summary == "I cannot help with that."
        assert invoke.await_count == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_oversized_confidence_does_not_raise(self, fake_sleep, delays):
        invoke = AsyncMock(return_value=(
            '{"sentiment": "Positive", "confidence": 1' + "0" * 400 + ', "summary": "s"}'
        ))
        classifier = Classifier(invoke=invoke, sleep=fake_sleep)

        result = await classifier.classify("x")

        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence == 1.0
        assert invoke.await_count == 1

    @pytest.mark.asyncio
    async def test_zero_base_delay(self, fake_sleep, delays):
        invoke = AsyncMock(side_effect=ValueError("bad"))
        classifier = Classifier(invoke=invoke, base_delay=0, sleep=fake_sleep)

        await classifier.classify("text")

        assert delays == [0, 0]

    @pytest.mark.asyncio
    async def test_configurable_attempts(self, fake_sleep, delays):
        invoke = AsyncMock(side_effect=RuntimeError("down"))
        classifier = Classifier(invoke=invoke, max_attempts=5, base_delay=0.1, sleep=fake_sleep)

        await classifier.classify("text")

        assert invoke.await_count == 5
        assert delays == pytest.approx([0.1, 0.2, 0.4, 0.8])

    @pytest.mark.asyncio
    async def test_missing_api_key_degrades_to_sentinel(self, fake_sleep):
        classifier = Classifier(sleep=fake_sleep)
        classifier.client = None

        result = await classifier.classify("Anything")

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.summary == FAILED_SUMMARY

    @pytest.mark.asyncio
    async def test_openai_invocation(self, fake_sleep):
        classifier = Classifier(sleep=fake_sleep)
        classifier.client = MagicMock()
        classifier.client.chat.completions.create = AsyncMock(return_value=openai_response(
            'Here you go: {"sentiment": "Positive", "confidence": 0.95, "summary": "Happy user"}'
        ))

        result = await classifier.classify("Workers AI is great")

        assert result.sentiment == Sentiment.POSITIVE
        assert result.summary == "Happy user"
        kwargs = classifier.client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == classifier.model
        assert "Workers AI is great" in kwargs["messages"][0]["content"]


# ============================================================================
# UNIT TESTS - RESPONSE PARSING
# ============================================================================

class TestResponseParsing:
    """Defensive parsing of untrusted model output."""

    def test_percentage_string_with_surrounding_text(self):
        result = parse_classification(
            'Sure! {"sentiment": "Positive", "confidence": "85", "summary": "Loves the product"}'
        )

        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence == pytest.approx(0.85)
        assert result.summary == "Loves the product"

    @pytest.mark.parametrize("raw, expected", [
        (0.42, 0.42),
        (1.7, 1.0),
        (-0.3, 0.0),
        (1, 1.0),
        (0, 0.0),
    ])
    def test_numeric_confidence_is_clamped(self, raw, expected):
        result = parse_classification(
            f'{{"sentiment": "Neutral", "confidence": {raw}, "summary": "s"}}'
        )
        assert result.confidence == pytest.approx(expected)

    @pytest.mark.parametrize("raw, expected", [
        ("0.7", 0.7),
        ("1", 1.0),
        ("150", 1.0),
        ("-5", 0.0),
        ("85%", 0.85),
        ("0.9 (high)", 0.9),
        (" 72 percent", 0.72),
        ("abc", 0.5),
        ("", 0.5),
        ("%85", 0.5),
    ])
    def test_string_confidence(self, raw, expected):
        result = parse_classification(
            f'{{"sentiment": "Neutral", "confidence": "{raw}", "summary": "s"}}'
        )
        assert result.confidence == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["null", "true", "[0.9]", '{"value": 0.9}'])
    def test_non_numeric_confidence_defaults(self, raw):
        result = parse_classification(
            f'{{"sentiment": "Neutral", "confidence": {raw}, "summary": "s"}}'
        )
        assert result.confidence == 0.5

    @pytest.mark.parametrize("digits, expected", [("1" + "0" * 400, 1.0), ("-1" + "0" * 400, 0.0)])
    def test_huge_integer_confidence(self, digits, expected):
        result = parse_classification(
            f'{{"sentiment": "Positive", "confidence": {digits}, "summary": "s"}}'
        )
        assert result.sentiment == Sentiment.POSITIVE
        assert result.confidence == expected

    def test_missing_confidence_defaults(self):
        result = parse_classification('{"sentiment": "Negative", "summary": "s"}')
        assert result.sentiment == Sentiment.NEGATIVE
        assert result.confidence == 0.5

    @pytest.mark.parametrize("raw", ['"positive"', '"Unknown"', '"Mixed"', '" Positive"', "3", "null"])
    def test_unexpected_sentiment_collapses_to_unknown(self, raw):
        result = parse_classification(
            f'{{"sentiment": {raw}, "confidence": 0.8, "summary": "s"}}'
        )
        assert result.sentiment == Sentiment.UNKNOWN
        # Only sentiment is affected; confidence is still taken from the model
        assert result.confidence == pytest.approx(0.8)

    def test_no_json_falls_back_to_raw_text(self):
        result = parse_classification("   The user seems upset about billing.   ")

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.confidence == 0.0
        assert result.summary == "The user seems upset about billing."

    def test_raw_fallback_is_truncated(self):
        result = parse_classification("x" * 500)
        assert result.summary == "x" * 200

    def test_invalid_json_falls_back_to_raw_text(self):
        raw = '{"sentiment": "Positive", "confidence": 0.9,}'
        result = parse_classification(raw)

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.confidence == 0.0
        assert result.summary == raw

    def test_greedy_match_over_two_objects_fails_closed(self):
        raw = '{"sentiment": "Positive"} and {"sentiment": "Negative"}'
        result = parse_classification(raw)

        assert result.sentiment == Sentiment.UNKNOWN
        assert result.confidence == 0.0

    def test_markdown_wrapped_json(self):
        result = parse_classification(
            '```json\n{"sentiment": "Negative", "confidence": 0.66, "summary": "D1 outage"}\n```'
        )

        assert result.sentiment == Sentiment.NEGATIVE
        assert result.summary == "D1 outage"

    @pytest.mark.parametrize("raw", ['""', "null", "42"])
    def test_unusable_summary(self, raw):
        result = parse_classification(
            f'{{"sentiment": "Positive", "confidence": 0.9, "summary": {raw}}}'
        )
        assert result.summary == "Unable to summarize"

    def test_prompt_embeds_feedback_and_offers_three_labels(self):
        prompt = build_prompt('It said "error 1101" again')

        assert 'It said "error 1101" again' in prompt
        assert "Negative, Neutral, or Positive" in prompt
        assert "Unknown" not in prompt

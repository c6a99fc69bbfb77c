"""AI-powered sentiment classifier using OpenAI."""
import json
import asyncio
import logging
import math
import re
from typing import Any, Awaitable, Callable, Optional

from openai import AsyncOpenAI
from config import config
from schemas import ClassificationResult, MODEL_SENTIMENTS, Sentiment

logger = logging.getLogger(__name__)

FAILED_SUMMARY = "AI analysis failed after multiple attempts"
DEFAULT_SUMMARY = "Unable to summarize"
DEFAULT_CONFIDENCE = 0.5
RAW_SUMMARY_LIMIT = 200
LEADING_NUMBER = re.compile(r"\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")

Invoker = Callable[[str], Awaitable[str]]


def build_prompt(feedback_text: str) -> str:
    """Build the classification prompt.

    The model is only offered Negative, Neutral and Positive. Unknown is
    reserved for responses we cannot use.
    """
    return f"""Analyze the following user feedback and provide:
1. Sentiment: Classify as exactly one of: Negative, Neutral, or Positive
2. Confidence: A number between 0.0 and 1.0 indicating how confident you are in the sentiment classification
3. Summary: Summarize the problem or feedback in 1 sentence

Feedback: "{feedback_text}"

Respond in this exact JSON format only, on a single line, no other text:
{{"sentiment": "Negative|Neutral|Positive", "confidence": 0.85, "summary": "one sentence summary"}}"""


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _parse_confidence(value: Any) -> float:
    """Normalize the model's confidence into [0, 1].

    Strings are read by their leading number and values above 1 are taken
    as percentages ("85%" -> 0.85). Anything missing or unusable gets the
    neutral default of 0.5.
    """
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # Integers too large for a float
            return 1.0 if value > 0 else 0.0
        if math.isnan(number):
            return DEFAULT_CONFIDENCE
        return _clamp(number)
    if isinstance(value, str):
        match = LEADING_NUMBER.match(value)
        if not match:
            return DEFAULT_CONFIDENCE
        number = float(match.group(0))
        if number > 1:
            number = number / 100
        return _clamp(number)
    return DEFAULT_CONFIDENCE


def parse_classification(response_text: str) -> ClassificationResult:
    """Parse and validate a raw model response.

    Handles common AI output issues:
    - Extra text around the JSON object
    - Missing or mistyped fields
    - Sentiment values outside the allowed set
    """
    start = response_text.find("{")
    end = response_text.rfind("}") + 1
    parsed = None
    if start != -1 and end > start:
        try:
            parsed = json.loads(response_text[start:end])
        except ValueError:
            parsed = None

    if not isinstance(parsed, dict):
        return ClassificationResult(
            sentiment=Sentiment.UNKNOWN,
            confidence=0.0,
            summary=response_text.strip()[:RAW_SUMMARY_LIMIT]
        )

    sentiment = parsed.get("sentiment")
    if sentiment not in MODEL_SENTIMENTS:
        sentiment = Sentiment.UNKNOWN.value

    summary = parsed.get("summary")
    if not isinstance(summary, str) or not summary:
        summary = DEFAULT_SUMMARY

    return ClassificationResult(
        sentiment=Sentiment(sentiment),
        confidence=_parse_confidence(parsed.get("confidence")),
        summary=summary
    )


class Classifier:
    """Classifies feedback sentiment with bounded retries.

    ``classify`` never raises. Invocation errors are retried with
    exponential backoff; the first response that comes back is parsed and
    returned, even if it turns out to be unusable.
    """

    def __init__(
        self,
        invoke: Optional[Invoker] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """Initialize the classifier.

        Args:
            invoke: Coroutine function taking a prompt and returning raw model
                text. Defaults to an OpenAI chat completion.
            max_attempts: Total invocation attempts (default from config)
            base_delay: Backoff base in seconds (default from config)
            sleep: Coroutine function used to wait between attempts
        """
        self.client = AsyncOpenAI(api_key=config.OPENAI_API_KEY) if config.OPENAI_API_KEY else None
        self.model = config.AI_MODEL
        self.timeout = config.AI_TIMEOUT_SECONDS
        self.invoke = invoke or self._invoke_openai
        self.max_attempts = max_attempts if max_attempts is not None else config.AI_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else config.AI_BASE_DELAY_SECONDS
        self.sleep = sleep

    async def _invoke_openai(self, prompt: str) -> str:
        if not self.client:
            raise RuntimeError("OpenAI client not configured")

        async with asyncio.timeout(self.timeout):
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.2,
                max_tokens=200
            )

        return response.choices[0].message.content or ""

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt after ``attempt`` (0-based)."""
        return self.base_delay * (2 ** attempt)

    async def classify(self, content: str) -> ClassificationResult:
        """Classify a piece of feedback.

        Args:
            content: The feedback text

        Returns:
            ClassificationResult; the Unknown/0.0 sentinel if every attempt failed
        """
        prompt = build_prompt(content)
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_attempts):
            try:
                response_text = await self.invoke(prompt)
            except Exception as e:
                last_error = e
                if attempt < self.max_attempts - 1:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"AI invocation failed (attempt {attempt + 1}/{self.max_attempts}): "
                        f"{e}. Retrying in {delay:.2f}s"
                    )
                    await self.sleep(delay)
                continue

            return parse_classification(response_text)

        logger.error(f"AI analysis failed after retries: {last_error!r}")
        return ClassificationResult(
            sentiment=Sentiment.UNKNOWN,
            confidence=0.0,
            summary=FAILED_SUMMARY
        )

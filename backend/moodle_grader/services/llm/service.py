"""Grading service with pluggable providers."""

import re
import asyncio
import logging
from typing import Optional
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    wait_combine,
    wait_fixed
)
import httpx
import anthropic
import openai

from moodle_grader.core.config import settings
from moodle_grader.core.exceptions import GradingServiceError
from moodle_grader.models import AssignmentConfig, GradingResult, SubmissionFile
from .factory import LLMProviderFactory
from .base_provider import BaseLLMProvider


logger = logging.getLogger(__name__)

TRUNCATION_NOTICE = "\n\n[Content truncated due to length]"

_NUMBER = r"(\d+(?:\.\d+)?)"
_GRADE_LINE = re.compile(rf"Grade:\s*{_NUMBER}(?:\s*/\s*{_NUMBER})?", re.IGNORECASE)
_FRACTION = re.compile(rf"{_NUMBER}\s*/\s*{_NUMBER}")
_LEADING_NUMBER = re.compile(rf"^\s*{_NUMBER}")
_FEEDBACK_LABEL = re.compile(r"Feedback:\s*", re.IGNORECASE)
_POINTS_PREFIX = re.compile(r"^/\d+(?:\.\d+)?\s*")


def is_retryable_error(exception: BaseException) -> bool:
    """Determine if an exception should be retried."""

    # Hard per-call timeout and network-level errors
    if isinstance(exception, (asyncio.TimeoutError, TimeoutError)):
        logger.warning("Grading call timed out after %ss", settings.llm_timeout)
        return True

    if isinstance(exception, (httpx.TimeoutException, httpx.ConnectError, httpx.ReadError)):
        return True

    # HTTP status code errors
    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        # Retry on rate limiting and server errors
        if status_code in (429, 500, 502, 503, 504):
            logger.warning("Retryable HTTP %s error: %s", status_code, exception)
            return True

    if isinstance(exception, (anthropic.RateLimitError, openai.RateLimitError)):
        logger.warning("Rate limited by provider: %s", exception)
        return True

    if isinstance(exception, (
        anthropic.InternalServerError, anthropic.APITimeoutError,
        openai.InternalServerError, openai.APITimeoutError,
    )):
        logger.warning("Provider server/timeout error: %s", exception)
        return True

    # Generic API connection errors
    if isinstance(exception, (openai.APIConnectionError, anthropic.APIConnectionError)):
        logger.warning("API connection error: %s", exception)
        return True

    logger.info("Non-retryable error: %s: %s", type(exception).__name__, exception)
    return False


def truncate_submission(text: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.max_submission_chars
    if len(text) <= limit:
        return text
    logger.warning("Large submission (%d chars), truncating to %d", len(text), limit)
    return text[:limit] + TRUNCATION_NOTICE


def parse_grading_response(content: str, grading_scale: float) -> GradingResult:
    """
    Extract the grade and feedback from a model reply.

    Tries a ``Grade: n`` line, then an ``x / y`` fraction, then a leading
    number. The grade is clamped to ``[0, grading_scale]``.

    Raises:
        GradingServiceError: If no grade can be found in the reply
    """
    match = _GRADE_LINE.search(content)
    if match:
        grade = float(match.group(1))
        if match.group(2) and float(match.group(2)) > 0:
            grade = grade / float(match.group(2)) * grading_scale
        remainder = content[:match.start()] + content[match.end():]
        label = _FEEDBACK_LABEL.search(remainder)
        feedback = remainder[label.end():] if label else remainder
    else:
        fraction = _FRACTION.search(content)
        leading = _LEADING_NUMBER.match(content)
        if fraction and float(fraction.group(2)) > 0:
            grade = float(fraction.group(1)) / float(fraction.group(2)) * grading_scale
            feedback = content[:fraction.start()] + content[fraction.end():]
        elif leading:
            grade = float(leading.group(1))
            if grade > grading_scale:
                # percentage reply
                grade = grade / 100 * grading_scale
            feedback = content[leading.end():]
        else:
            raise GradingServiceError("Could not find a grade in the grading response")
        feedback = _FEEDBACK_LABEL.sub("", feedback.strip(), count=1)

    feedback = _POINTS_PREFIX.sub("", feedback.strip()).strip()
    grade = round(min(max(0.0, grade), grading_scale), 2)
    return GradingResult(grade=grade, feedback=feedback)


class GradingLLMService:
    """Grades submissions through a pluggable LLM provider."""

    def __init__(self, provider: Optional[BaseLLMProvider] = None):
        """
        Initialize the grading service.

        Args:
            provider: Optional provider instance. If None, uses factory to create default.
        """
        self._provider = provider
        self._initialized = False

    async def _ensure_provider(self) -> BaseLLMProvider:
        """Ensure provider is initialized."""
        if not self._provider:
            self._provider = LLMProviderFactory.create_provider()

        if not self._initialized:
            await self._provider.initialize()
            self._initialized = True
            logger.info(
                "Initialized %s provider with model %s",
                self._provider.provider_name, self._provider.model
            )

        return self._provider

    @retry(
        stop=stop_after_attempt(settings.llm_max_retries),
        wait=wait_combine(
            wait_exponential(multiplier=1, min=settings.llm_retry_min_wait, max=settings.llm_retry_max_wait),
            wait_fixed(1)
        ),
        retry=retry_if_exception(is_retryable_error),
        reraise=True
    )
    async def _complete(self, prompt: str, image: Optional[SubmissionFile] = None) -> str:
        provider = await self._ensure_provider()
        return await asyncio.wait_for(provider.call_llm(prompt, image), timeout=settings.llm_timeout)

    async def grade_submission(
        self,
        text: str,
        assignment: AssignmentConfig,
        image: Optional[SubmissionFile] = None
    ) -> GradingResult:
        """
        Grade one submission.

        Text submissions are truncated to ``max_submission_chars``. Image
        submissions are sent to the provider's vision input.

        Raises:
            GradingServiceError: If the provider keeps failing or the reply has no grade
        """
        if image is None and not text.strip():
            raise GradingServiceError("Refusing to grade an empty submission")

        provider = await self._ensure_provider_or_raise()
        prompt = provider.build_grading_prompt(
            truncate_submission(text), assignment, is_image=image is not None
        )

        try:
            content = await self._complete(prompt, image)
        except Exception as e:
            raise GradingServiceError(f"Grading failed: {type(e).__name__}: {e}") from e

        result = parse_grading_response(content, assignment.grading_scale)
        logger.debug("Graded submission: %s/%g", result.grade, assignment.grading_scale)
        return result

    async def _ensure_provider_or_raise(self) -> BaseLLMProvider:
        try:
            return await self._ensure_provider()
        except ValueError as e:
            raise GradingServiceError(str(e)) from e

    @property
    def provider_name(self) -> str:
        """Get the current provider name."""
        if self._provider:
            return self._provider.provider_name
        return settings.llm_provider

    @property
    def model_name(self) -> str:
        """Get the current model name."""
        if self._provider:
            return self._provider.model
        return settings.llm_model

"""Tests for the grading service, reply parsing and provider factory."""

import asyncio

import httpx
import pytest

from conftest import StubProvider, make_file
from moodle_grader.core.config import settings
from moodle_grader.core.exceptions import GradingServiceError
from moodle_grader.models import AssignmentConfig
from moodle_grader.services.llm import AnthropicProvider, GradingLLMService, LLMProviderFactory
from moodle_grader.services.llm.service import (
    TRUNCATION_NOTICE, is_retryable_error, parse_grading_response, truncate_submission
)


class FlakyProvider(StubProvider):
    """Fails a fixed number of times before answering."""

    def __init__(self, error, failures=1):
        super().__init__()
        self.error = error
        self.remaining = failures

    async def call_llm(self, prompt, image=None):
        self.calls.append((prompt, image))
        if self.remaining:
            self.remaining -= 1
            raise self.error
        return self.reply


@pytest.mark.parametrize("reply, scale, grade, feedback", [
    ("Grade: 85\nFeedback: Good work.", 100, 85.0, "Good work."),
    ("Grade: 8/10\nFeedback: Nearly there.", 100, 80.0, "Nearly there."),
    ("Grade: 90\nFeedback: /100 Great essay", 100, 90.0, "Great essay"),
    ("Grade: 120\nFeedback: Generous.", 100, 100.0, "Generous."),
    ("72 Nice job", 100, 72.0, "Nice job"),
    ("85", 10, 8.5, ""),
    ("Grade: 7.333", 10, 7.33, ""),
])
def test_parse_grading_response(reply, scale, grade, feedback):
    result = parse_grading_response(reply, scale)

    assert result.grade == grade
    assert result.feedback == feedback


def test_parse_fraction_is_rescaled():
    assert parse_grading_response("I would give this 45 / 50 overall.", 100).grade == 90.0


def test_parse_reply_without_grade_raises():
    with pytest.raises(GradingServiceError):
        parse_grading_response("This essay is lovely.", 100)


def test_truncate_submission():
    assert truncate_submission("short", limit=10) == "short"
    assert truncate_submission("a" * 20, limit=10) == "a" * 10 + TRUNCATION_NOTICE


def test_grade_submission_builds_prompt_from_assignment(grading_service, stub_provider):
    assignment = AssignmentConfig(
        assignment_name="Reflective Essay",
        course_name="ENG 101",
        grading_scale=100,
        strictness=9,
        feedback_length=2,
        feedback_formality=5,
        rubric="Thesis, evidence, style",
    )

    result = asyncio.run(grading_service.grade_submission("My essay text", assignment))

    assert result.grade == 85.0
    assert result.feedback == "Clear argument with a well organised structure."
    prompt, image = stub_provider.calls[0]
    assert image is None
    assert '"Reflective Essay"' in prompt
    assert "out of 100 points" in prompt
    assert "very strict" in prompt
    assert "concise" in prompt
    assert "moderately formal" in prompt
    assert "Thesis, evidence, style" in prompt
    assert "My essay text" in prompt


def test_long_submissions_are_truncated(monkeypatch, grading_service, stub_provider):
    monkeypatch.setattr(settings, "max_submission_chars", 50)

    asyncio.run(grading_service.grade_submission("x" * 100, AssignmentConfig()))

    prompt = stub_provider.calls[0][0]
    assert TRUNCATION_NOTICE.strip() in prompt
    assert "x" * 51 not in prompt


def test_image_submission_is_sent_to_provider(grading_service, stub_provider):
    photo = make_file("photo.png", b"\x89PNG")

    asyncio.run(grading_service.grade_submission("", AssignmentConfig(), image=photo))

    prompt, image = stub_provider.calls[0]
    assert image is photo
    assert "attached image" in prompt


def test_empty_text_is_never_sent(grading_service, stub_provider):
    with pytest.raises(GradingServiceError):
        asyncio.run(grading_service.grade_submission("  \n", AssignmentConfig()))
    assert stub_provider.calls == []


def test_transient_errors_are_retried():
    provider = FlakyProvider(httpx.ConnectError("connection refused"))
    service = GradingLLMService(provider=provider)

    result = asyncio.run(service.grade_submission("Essay", AssignmentConfig()))

    assert result.grade == 85.0
    assert len(provider.calls) == 2


def test_permanent_errors_are_not_retried():
    provider = FlakyProvider(ValueError("bad request"), failures=5)
    service = GradingLLMService(provider=provider)

    with pytest.raises(GradingServiceError, match="ValueError"):
        asyncio.run(service.grade_submission("Essay", AssignmentConfig()))
    assert len(provider.calls) == 1


def test_slow_provider_times_out_after_all_attempts(monkeypatch):
    monkeypatch.setattr(settings, "llm_timeout", 0.01)
    provider = StubProvider(delay=0.5)
    service = GradingLLMService(provider=provider)

    with pytest.raises(GradingServiceError):
        asyncio.run(service.grade_submission("Essay", AssignmentConfig()))
    assert len(provider.calls) == settings.llm_max_retries


def test_retryable_status_codes():
    request = httpx.Request("POST", "https://llm.test/v1")

    def status_error(code):
        return httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))

    assert is_retryable_error(status_error(503))
    assert is_retryable_error(status_error(429))
    assert not is_retryable_error(status_error(400))
    assert is_retryable_error(asyncio.TimeoutError())
    assert not is_retryable_error(ValueError("nope"))


def test_missing_credentials_surface_as_grading_errors(monkeypatch):
    monkeypatch.setattr(settings, "llm_provider", "openai")
    monkeypatch.setattr(settings, "openai_api_key", None)
    service = GradingLLMService()

    with pytest.raises(GradingServiceError, match="No API key"):
        asyncio.run(service.grade_submission("Essay", AssignmentConfig()))


def test_factory_creates_and_rejects_providers():
    provider = LLMProviderFactory.create_provider("anthropic", model="claude-test", api_key="key")

    assert isinstance(provider, AnthropicProvider)
    assert provider.model == "claude-test"
    assert provider.timeout == settings.llm_timeout

    with pytest.raises(ValueError, match="Unknown LLM provider"):
        LLMProviderFactory.create_provider("nope", api_key="key")
    with pytest.raises(ValueError, match="No API key"):
        LLMProviderFactory.create_provider("openai", api_key="")
    assert set(LLMProviderFactory.get_available_providers()) >= {"openai", "anthropic"}

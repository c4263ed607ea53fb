"""Base LLM provider interface."""

import base64
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from moodle_grader.models import AssignmentConfig, SubmissionFile


SYSTEM_PROMPT = "You are an AI grading assistant helping an instructor grade student work."


def _band(value: int, low: str, mid: str, high: str) -> str:
    if value <= 3:
        return low
    if value <= 7:
        return mid
    return high


def encode_image(file: SubmissionFile) -> Tuple[str, str]:
    """Return the media type and base64 payload of an image submission."""
    media_type = file.content_type or "image/png"
    if file.extension in ("jpg", "jpeg"):
        media_type = "image/jpeg"
    elif file.extension in ("png", "gif", "webp"):
        media_type = f"image/{file.extension}"
    return media_type, base64.b64encode(file.data).decode("ascii")


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, api_key: str, model: str, temperature: float = 0.7,
                 max_tokens: int = 2048, timeout: int = 60):
        """Initialize the provider with common parameters."""
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = None

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider's client."""
        pass

    @abstractmethod
    async def call_llm(self, prompt: str, image: Optional[SubmissionFile] = None) -> str:
        """Make a call to the LLM with the given prompt and optional image."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of this provider."""
        pass

    def build_grading_prompt(
        self,
        submission_text: str,
        assignment: AssignmentConfig,
        is_image: bool = False
    ) -> str:
        """Build the grading prompt for one submission."""
        scale = f"{assignment.grading_scale:g}"
        course = assignment.course_name or "this course"

        prompt = (
            f"You are an AI grading assistant for {course} at the {assignment.academic_level} level. "
            f'Your task is to grade student submissions for the assignment "{assignment.assignment_name}" '
            f"out of {scale} points. "
        )
        if assignment.instructions:
            prompt += f"Follow these instructions: {assignment.instructions}. "
        if assignment.rubric:
            prompt += f"Use this rubric to guide your grading: {assignment.rubric}. "

        strictness = _band(assignment.strictness, "lenient", "moderately strict", "very strict")
        length = _band(assignment.feedback_length, "concise", "moderately detailed", "very detailed")
        formality = _band(assignment.feedback_formality, "casual", "moderately formal", "very formal")
        prompt += (
            f"Be {strictness} in your grading. "
            f"Provide feedback that is {length}. "
            f"The tone of your feedback should be {formality}. "
            f'DO NOT begin your feedback with a grade or score like "/{scale}" - '
            "just provide the actual feedback directly. "
        )

        if assignment.instructor_tone:
            prompt += f"Adopt this tone as if you were the instructor: {assignment.instructor_tone}. "
        if assignment.additional_instructions:
            prompt += f"Adhere to these additional instructions: {assignment.additional_instructions}. "

        if is_image:
            submission = "The submission is the attached image."
        else:
            submission = submission_text

        return f"""{prompt}
Now, grade the following submission:

{submission}

Provide your response in this format:
Grade: [numeric grade out of {scale}]
Feedback: [your detailed feedback without any score or "/{scale}" prefix]
"""

"""OpenAI LLM provider implementation."""

import logging
import openai
from typing import Optional

from moodle_grader.models import SubmissionFile
from .base_provider import BaseLLMProvider, SYSTEM_PROMPT, encode_image


logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI LLM provider implementation."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", **kwargs):
        """Initialize OpenAI provider."""
        super().__init__(api_key, model, **kwargs)
        if not api_key:
            raise ValueError("OpenAI API key not configured")

    async def initialize(self) -> None:
        """Initialize the OpenAI client."""
        self._client = openai.AsyncOpenAI(api_key=self.api_key)

    async def call_llm(self, prompt: str, image: Optional[SubmissionFile] = None) -> str:
        """Make a call to OpenAI's API."""
        if not self._client:
            await self.initialize()

        if image is not None:
            media_type, payload = encode_image(image)
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{media_type};base64,{payload}"}},
            ]
        else:
            user_content = prompt

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_content}
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout
            )

            content = response.choices[0].message.content
            if not content:
                raise ValueError("OpenAI returned empty response")

            return content

        except Exception as e:
            logger.warning("OpenAI API call failed: %s: %s", type(e).__name__, e)
            if hasattr(e, 'status_code'):
                logger.debug("HTTP status: %s", e.status_code)
            raise

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "openai"

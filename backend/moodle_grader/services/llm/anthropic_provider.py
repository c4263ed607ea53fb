"""Anthropic LLM provider implementation."""

import logging
import anthropic
from typing import Optional

from moodle_grader.models import SubmissionFile
from .base_provider import BaseLLMProvider, SYSTEM_PROMPT, encode_image


logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic LLM provider implementation."""

    def __init__(self, api_key: str, model: str = "claude-3-5-sonnet-20241022", **kwargs):
        """Initialize Anthropic provider."""
        super().__init__(api_key, model, **kwargs)
        if not api_key:
            raise ValueError("Anthropic API key not configured")

    async def initialize(self) -> None:
        """Initialize the Anthropic client."""
        self._client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def call_llm(self, prompt: str, image: Optional[SubmissionFile] = None) -> str:
        """Make a call to Anthropic's API."""
        if not self._client:
            await self.initialize()

        content = [{"type": "text", "text": prompt}]
        if image is not None:
            media_type, payload = encode_image(image)
            content.insert(0, {
                "type": "image",
                "source": {"type": "base64", "media_type": media_type, "data": payload},
            })

        try:
            response = await self._client.messages.create(
                model=self.model,
                messages=[{"role": "user", "content": content}],
                system=SYSTEM_PROMPT,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout
            )

            # Anthropic returns content as a list of content blocks
            if not response.content or len(response.content) == 0:
                raise ValueError("Anthropic returned empty response")

            return response.content[0].text

        except Exception as e:
            logger.warning("Anthropic API call failed: %s: %s", type(e).__name__, e)
            if hasattr(e, 'status_code'):
                logger.debug("HTTP status: %s", e.status_code)
            raise

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "anthropic"

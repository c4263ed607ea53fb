"""Grading provider services."""

from .base_provider import BaseLLMProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider
from .factory import LLMProviderFactory
from .service import GradingLLMService, parse_grading_response

__all__ = [
    "BaseLLMProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "LLMProviderFactory",
    "GradingLLMService",
    "parse_grading_response"
]

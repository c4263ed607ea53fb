"""LLM provider factory."""

import logging
from typing import Dict, Type, Optional

from moodle_grader.core.config import settings
from .base_provider import BaseLLMProvider
from .openai_provider import OpenAIProvider
from .anthropic_provider import AnthropicProvider


logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating grading providers."""

    # Registry of available providers
    _providers: Dict[str, Type[BaseLLMProvider]] = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
    }

    # Settings attribute holding each provider's credential
    _api_key_settings: Dict[str, str] = {
        "openai": "openai_api_key",
        "anthropic": "anthropic_api_key",
    }

    @classmethod
    def create_provider(
        cls,
        provider_name: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        **kwargs
    ) -> BaseLLMProvider:
        """
        Create a provider instance.

        Args:
            provider_name: Provider to use (defaults to settings.llm_provider)
            model: Model to use (defaults to settings.llm_model)
            api_key: Credential override; read from settings when omitted
            **kwargs: Overrides for temperature, max_tokens or timeout

        Raises:
            ValueError: If the provider is unknown or has no credential
        """
        provider_name = provider_name or settings.llm_provider
        model = model or settings.llm_model

        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown LLM provider: {provider_name}. Available: {available}")

        if api_key is None:
            setting = cls._api_key_settings.get(provider_name)
            api_key = getattr(settings, setting, None) if setting else None
        if not api_key:
            raise ValueError(f"No API key configured for provider {provider_name}")

        provider_kwargs = {
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_tokens,
            "timeout": settings.llm_timeout,
            **kwargs
        }
        logger.debug("Creating %s provider with model %s", provider_name, model)
        return cls._providers[provider_name](api_key=api_key, model=model, **provider_kwargs)

    @classmethod
    def register_provider(
        cls,
        name: str,
        provider_class: Type[BaseLLMProvider],
        api_key_setting: Optional[str] = None
    ) -> None:
        """Register a new provider type."""
        if not issubclass(provider_class, BaseLLMProvider):
            raise ValueError("Provider class must inherit from BaseLLMProvider")

        cls._providers[name] = provider_class
        if api_key_setting:
            cls._api_key_settings[name] = api_key_setting
        logger.info("Registered LLM provider: %s", name)

    @classmethod
    def get_available_providers(cls) -> Dict[str, Type[BaseLLMProvider]]:
        """Get all available providers."""
        return cls._providers.copy()

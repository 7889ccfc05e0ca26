"""
LLM Provider Factory

Creates provider instances from LLMSettings.
"""

import logging
from typing import Literal

from sqlagent.config import LLMSettings
from sqlagent.llm.anthropic import AnthropicProvider
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.local import LocalProvider
from sqlagent.llm.openai import OpenAIProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["openai", "anthropic", "local"]


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    PROVIDERS = {
        "openai": OpenAIProvider,
        "anthropic": AnthropicProvider,
        "local": LocalProvider,
    }

    @staticmethod
    def create_provider(
        provider_type: ProviderType,
        config: LLMSettings,
        model_type: Literal["main", "mini"] = "main",
    ) -> BaseLLMProvider:
        """
        Create an LLM provider instance.

        Args:
            provider_type: Type of provider to create
            config: LLM configuration settings
            model_type: Use main model or mini model (default: main)

        Raises:
            ValueError: If provider type is unknown or required config is missing
        """
        if provider_type not in LLMProviderFactory.PROVIDERS:
            raise ValueError(
                f"Unknown provider type: {provider_type}. "
                f"Available providers: {list(LLMProviderFactory.PROVIDERS.keys())}"
            )

        logger.info(
            f"Creating {provider_type} provider with {model_type} model",
            extra={"provider": provider_type, "model_type": model_type},
        )

        if provider_type == "openai":
            return LLMProviderFactory._create_openai(config, model_type)
        if provider_type == "anthropic":
            return LLMProviderFactory._create_anthropic(config, model_type)
        return LLMProviderFactory._create_local(config)

    @staticmethod
    def create_default_provider(
        config: LLMSettings,
        model_type: Literal["main", "mini"] = "main",
    ) -> BaseLLMProvider:
        """Create provider using default_provider from config."""
        return LLMProviderFactory.create_provider(config.default_provider, config, model_type)

    @staticmethod
    def create_build_provider(config: LLMSettings) -> BaseLLMProvider:
        """Create the provider used for knowledge-base builds."""
        provider_type = config.build_provider or config.default_provider
        return LLMProviderFactory.create_provider(provider_type, config, "main")

    @staticmethod
    def _create_openai(
        config: LLMSettings,
        model_type: Literal["main", "mini"],
    ) -> OpenAIProvider:
        if not config.openai_api_key:
            raise ValueError("OpenAI API key is required but not configured")

        model = config.openai_model if model_type == "main" else config.openai_model_mini

        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
            base_url=config.openai_base_url,
        )

    @staticmethod
    def _create_anthropic(
        config: LLMSettings,
        model_type: Literal["main", "mini"],
    ) -> AnthropicProvider:
        if not config.anthropic_api_key:
            raise ValueError("Anthropic API key is required but not configured")

        model = config.anthropic_model if model_type == "main" else config.anthropic_model_mini

        return AnthropicProvider(
            api_key=config.anthropic_api_key,
            model=model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_local(config: LLMSettings) -> LocalProvider:
        # Local servers expose a single model regardless of main/mini
        return LocalProvider(
            base_url=config.local_base_url,
            model=config.local_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )

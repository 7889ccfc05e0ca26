"""Tests for LLM provider factory."""

import pytest

from sqlagent.config import LLMSettings
from sqlagent.llm.anthropic import AnthropicProvider
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.llm.local import LocalProvider
from sqlagent.llm.openai import OpenAIProvider


@pytest.fixture
def llm_config():
    return LLMSettings(
        default_provider="openai",
        openai_api_key="sk-test-key-1234567890abcdefghij",
        openai_model="gpt-4o",
        openai_model_mini="gpt-4o-mini",
        anthropic_api_key="sk-ant-test-key",
        local_model="llama-test",
    )


class TestCreateProvider:
    def test_openai_main_and_mini(self, llm_config):
        main = LLMProviderFactory.create_provider("openai", llm_config)
        mini = LLMProviderFactory.create_provider("openai", llm_config, "mini")

        assert isinstance(main, OpenAIProvider)
        assert main.model == "gpt-4o"
        assert mini.model == "gpt-4o-mini"

    def test_anthropic(self, llm_config):
        provider = LLMProviderFactory.create_provider("anthropic", llm_config)
        assert isinstance(provider, AnthropicProvider)

    def test_local_ignores_model_type(self, llm_config):
        provider = LLMProviderFactory.create_provider("local", llm_config, "mini")
        assert isinstance(provider, LocalProvider)
        assert provider.model == "llama-test"

    def test_unknown_provider(self, llm_config):
        with pytest.raises(ValueError, match="Unknown provider type"):
            LLMProviderFactory.create_provider("gemini", llm_config)

    def test_missing_key(self, llm_config):
        llm_config.anthropic_api_key = None
        with pytest.raises(ValueError, match="Anthropic API key is required"):
            LLMProviderFactory.create_provider("anthropic", llm_config)


class TestDefaultProviders:
    def test_default_provider(self, llm_config):
        assert isinstance(LLMProviderFactory.create_default_provider(llm_config), OpenAIProvider)

    def test_build_provider_overrides_default(self, llm_config):
        llm_config.build_provider = "anthropic"
        provider = LLMProviderFactory.create_build_provider(llm_config)
        assert isinstance(provider, AnthropicProvider)

    def test_build_provider_falls_back_to_default(self, llm_config):
        provider = LLMProviderFactory.create_build_provider(llm_config)
        assert isinstance(provider, OpenAIProvider)

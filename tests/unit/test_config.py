"""
Tests for configuration management.

Covers environment loading, nested settings, validation and caching.
"""

import pytest
from pydantic import ValidationError

from sqlagent.config import (
    AskSettings,
    ChromaSettings,
    LLMSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestLLMSettings:
    def test_defaults(self):
        settings = LLMSettings(openai_api_key="sk-test-key-1234567890")
        assert settings.default_provider == "openai"
        assert settings.build_provider is None
        assert settings.openai_model == "gpt-4o"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("LLM_OPENAI_MODEL", "gpt-4.1")
        settings = LLMSettings()
        assert settings.openai_model == "gpt-4.1"

    def test_openai_key_format(self):
        with pytest.raises(ValidationError, match="must start with 'sk-'"):
            LLMSettings(openai_api_key="not-a-key")

    def test_anthropic_key_format(self):
        with pytest.raises(ValidationError, match="must start with 'sk-ant-'"):
            LLMSettings(anthropic_api_key="sk-wrong")

    def test_selected_provider_requires_key(self, monkeypatch):
        monkeypatch.delenv("LLM_OPENAI_API_KEY", raising=False)
        with pytest.raises(ValidationError, match="API key required for anthropic"):
            LLMSettings(default_provider="openai", openai_api_key="sk-x", build_provider="anthropic")

    def test_local_provider_needs_no_key(self, monkeypatch):
        monkeypatch.delenv("LLM_OPENAI_API_KEY", raising=False)
        settings = LLMSettings(default_provider="local")
        assert settings.local_base_url.startswith("http")


class TestAskSettings:
    def test_defaults(self):
        settings = AskSettings()
        assert settings.default_top_k == 8
        assert settings.max_rows == 100
        assert settings.cache_ttl_seconds == 600
        assert settings.repair_enabled is True

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ASK_CACHE_ENABLED", "false")
        monkeypatch.setenv("ASK_MAX_TOOL_ROUNDS", "3")
        settings = AskSettings()
        assert settings.cache_enabled is False
        assert settings.max_tool_rounds == 3

    def test_top_k_bounds(self):
        with pytest.raises(ValidationError):
            AskSettings(default_top_k=0)


class TestChromaSettings:
    def test_disabled_from_env(self):
        assert ChromaSettings().enabled is False


class TestSettingsCache:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("ASK_MAX_ROWS", "25")
        clear_settings_cache()
        second = get_settings()
        assert second is not first
        assert second.ask.max_rows == 25

    def test_nested_settings(self):
        settings = Settings()
        assert settings.app_name == "sqlagent"
        assert settings.llm.default_provider == "openai"
        assert settings.is_production is False

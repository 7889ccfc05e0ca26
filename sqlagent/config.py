"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from sqlagent.config import get_settings

    settings = get_settings()
    print(settings.llm.default_provider)
    print(settings.ask.max_rows)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    default_provider: Literal["openai", "anthropic", "local"] = Field(
        default="openai", description="Default LLM provider"
    )
    build_provider: Literal["openai", "anthropic", "local"] | None = Field(
        None, description="Provider for knowledge-base builds (defaults to default_provider)"
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(
        None,
        description="OpenAI API key",
        min_length=20,
    )
    openai_base_url: str | None = Field(
        None,
        description="Override for OpenAI-compatible endpoints (Azure proxies, gateways)",
    )
    openai_model: str = Field(default="gpt-4o", description="OpenAI model for SQL generation")
    openai_model_mini: str = Field(default="gpt-4o-mini", description="OpenAI lightweight model")

    # Anthropic configuration
    anthropic_api_key: str | None = Field(
        None,
        description="Anthropic API key",
        min_length=20,
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022", description="Anthropic model for SQL generation"
    )
    anthropic_model_mini: str = Field(
        default="claude-3-5-haiku-20241022", description="Anthropic lightweight model"
    )

    # Local model configuration
    local_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL for an OpenAI-compatible local server (Ollama, vLLM, etc.)",
    )
    local_model: str = Field(default="llama3.1:8b", description="Local model name")

    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses (0.0 = deterministic)",
    )
    max_tokens: int = Field(
        default=2000,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=60,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v

    @model_validator(mode="after")
    def validate_provider_keys(self) -> "LLMSettings":
        """Ensure API key is set for selected providers."""
        provider_key_map = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
        }
        for provider in {self.default_provider, self.build_provider}:
            if provider in provider_key_map and not provider_key_map[provider]:
                raise ValueError(
                    f"API key required for {provider} provider. Set LLM_{provider.upper()}_API_KEY"
                )
        return self


class ChromaSettings(BaseSettings):
    """Chroma vector store configuration for table embeddings."""

    enabled: bool = Field(
        default=False,
        description="Use vector retrieval for schema context (keyword retrieval otherwise)",
    )
    persist_dir: Path = Field(
        default=Path("./chroma_data"),
        description="Directory for Chroma vector store persistence",
    )
    collection_name: str = Field(
        default="sqlagent_tables",
        description="Name of the Chroma collection",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model",
    )
    top_k: int = Field(
        default=8,
        gt=0,
        le=50,
        description="Number of tables to retrieve by similarity",
    )

    model_config = SettingsConfigDict(
        env_prefix="CHROMA_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class AskSettings(BaseSettings):
    """Ask pipeline behavior."""

    default_top_k: int = Field(
        default=8,
        ge=1,
        le=100,
        description="Default number of tables placed in the schema context.",
    )
    max_rows: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum rows returned by the executor sandbox.",
    )
    cache_enabled: bool = Field(default=True, description="Enable the semantic result cache.")
    cache_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="Lifetime of a cached ask result in seconds.",
    )
    repair_enabled: bool = Field(
        default=True,
        description="Attempt one regeneration when validation fails.",
    )
    max_tool_rounds: int = Field(
        default=8,
        ge=1,
        le=50,
        description="Maximum model round-trips before the terminal tool must be called.",
    )
    sql_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Temperature for SQL generation.",
    )
    chart_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Temperature for chart option generation.",
    )

    model_config = SettingsConfigDict(
        env_prefix="ASK_",
        env_file=".env",
        extra="ignore",
    )


class BuildSettings(BaseSettings):
    """Knowledge-base build workflow settings."""

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for knowledge-base document generation.",
    )
    max_tool_rounds: int = Field(
        default=12,
        ge=1,
        le=100,
        description="Maximum model round-trips while writing the document.",
    )
    max_tokens: int = Field(
        default=8000,
        gt=0,
        le=32000,
        description="Maximum tokens for the generated document.",
    )

    model_config = SettingsConfigDict(
        env_prefix="BUILD_",
        env_file=".env",
        extra="ignore",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, chroma, logging, ask, build).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        DEBUG: Enable debug mode
        LLM_*: LLM provider configuration (see LLMSettings)
        CHROMA_*: Vector store configuration (see ChromaSettings)
        LOG_*: Logging configuration (see LoggingSettings)
        ASK_*: Ask pipeline configuration (see AskSettings)
        BUILD_*: Knowledge-base build configuration (see BuildSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.llm.default_provider
        'openai'
        >>> settings.ask.cache_ttl_seconds
        600
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="sqlagent",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    chroma: ChromaSettings = Field(default_factory=ChromaSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ask: AskSettings = Field(default_factory=AskSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.default_provider,
                "vector_retrieval": self.chroma.enabled,
                "cache_ttl_seconds": self.ask.cache_ttl_seconds,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("SQLAGENT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (used by tests that patch environment variables)."""
    get_settings.cache_clear()

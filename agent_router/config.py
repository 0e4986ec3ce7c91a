"""Configuration management for the agent router."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-02-15-preview"
    deployment_name: str = "gpt-4"
    max_concurrent: int = 50
    timeout: float = 60.0


@dataclass(frozen=True)
class OpenAIConfig:
    """OpenAI (or OpenAI-compatible gateway) configuration."""

    api_key: str
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    max_concurrent: int = 50
    timeout: float = 60.0


@dataclass(frozen=True)
class ContextStoreConfig:
    """Expiry policy for the shared context store, in seconds."""

    default_expiration: float = 3600.0
    cleanup_interval: float = 300.0


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    openai: Optional[OpenAIConfig] = None
    azure_openai: Optional[AzureOpenAIConfig] = None
    context_store: ContextStoreConfig = ContextStoreConfig()
    max_tool_rounds: int = 5
    temperature: float = 0.7
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def default_model(self) -> Optional[str]:
        """Name under which the preferred model is registered in the LLM pool."""
        if self.azure_openai:
            return self.azure_openai.deployment_name
        if self.openai:
            return self.openai.model
        return None

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        timeout = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

        openai_config = None
        openai_key = os.getenv("OPENAI_API_KEY")
        if openai_key:
            openai_config = OpenAIConfig(
                api_key=openai_key,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                max_concurrent=int(os.getenv("OPENAI_MAX_CONCURRENT", "50")),
                timeout=timeout,
            )

        azure_config = None
        azure_key = os.getenv("AZURE_OPENAI_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                deployment_name=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4"),
                max_concurrent=int(os.getenv("AZURE_OPENAI_MAX_CONCURRENT", "50")),
                timeout=timeout,
            )

        return cls(
            openai=openai_config,
            azure_openai=azure_config,
            context_store=ContextStoreConfig(
                default_expiration=float(os.getenv("CONTEXT_TTL_SECONDS", "3600")),
                cleanup_interval=float(os.getenv("CONTEXT_CLEANUP_INTERVAL_SECONDS", "300")),
            ),
            max_tool_rounds=int(os.getenv("AGENT_MAX_TOOL_ROUNDS", "5")),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


# Global config instance
config = Config.from_env()

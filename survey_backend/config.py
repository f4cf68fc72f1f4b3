"""
Configuration and settings for the survey backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from llm.base import AIServiceConfig


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Database (Postgres expected, SQLite works for local runs)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Knowledge base
    knowledge_default_partition: str = Field(default="knowledge_base")

    # LLM provider
    ai_provider: str = Field(default="openai")
    ai_model: str = Field(default="gpt-3.5-turbo")
    ai_temperature: float = Field(default=0.7)
    ai_max_tokens: int = Field(default=2000)
    openai_api_key: Optional[str] = Field(default=None)
    openai_organization_id: Optional[str] = Field(default=None)
    gemini_api_key: Optional[str] = Field(default=None)

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"

    def ai_service_config(self) -> AIServiceConfig:
        """Build the adapter configuration for the selected provider."""
        provider = self.ai_provider.lower()
        if provider == "gemini":
            api_key = self.gemini_api_key
            organization_id = None
        else:
            api_key = self.openai_api_key
            organization_id = self.openai_organization_id
        return AIServiceConfig(
            provider=provider,
            api_key=api_key or "",
            organization_id=organization_id,
            model=self.ai_model,
            temperature=self.ai_temperature,
            max_tokens=self.ai_max_tokens,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

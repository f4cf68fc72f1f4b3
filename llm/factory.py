"""
Provider selection for AIService adapters.
"""

from __future__ import annotations

from typing import Any, Optional

from llm.base import AIService, AIServiceConfig, ConfigurationError
from llm.gemini_service import GeminiService
from llm.openai_service import OpenAIService

PROVIDERS = {
    "openai": OpenAIService,
    "gemini": GeminiService,
}


def create_ai_service(config: AIServiceConfig, client: Optional[Any] = None) -> AIService:
    """Build the adapter for ``config.provider``, optionally around a shared client."""
    service_cls = PROVIDERS.get(config.provider.lower())
    if service_cls is None:
        raise ConfigurationError(
            f"Unsupported AI service provider: {config.provider}"
        )
    return service_cls(config, client=client)

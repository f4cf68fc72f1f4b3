"""
Language-model provider adapters implementing the ``AIService`` contract.
"""

from llm.base import (
    AIService,
    AIServiceConfig,
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResponse,
    ChatMessage,
    ConfigurationError,
    ServiceStatus,
    UnavailableAIService,
)
from llm.factory import create_ai_service

__all__ = [
    "AIService",
    "AIServiceConfig",
    "AnalysisMetadata",
    "AnalysisRequest",
    "AnalysisResponse",
    "ChatMessage",
    "ConfigurationError",
    "ServiceStatus",
    "UnavailableAIService",
    "create_ai_service",
]

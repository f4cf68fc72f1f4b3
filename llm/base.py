"""
Provider-neutral request/response types and the AIService contract.
"""

from __future__ import annotations

from typing import Literal, Optional, Protocol

from pydantic import BaseModel, Field

REDACTED_API_KEY = "***"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
NO_RESPONSE_MESSAGE = "No response from provider."
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class AnalysisRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(..., min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    def resolved_temperature(self) -> float:
        if self.temperature is None:
            return DEFAULT_TEMPERATURE
        return self.temperature

    def resolved_max_tokens(self) -> int:
        if self.max_tokens is None:
            return DEFAULT_MAX_TOKENS
        return self.max_tokens


class AnalysisMetadata(BaseModel):
    model: str
    tokens_used: Optional[int] = None
    finish_reason: Optional[str] = None


class AnalysisResponse(BaseModel):
    """Normalized provider result; ``result`` or ``error`` depending on ``success``."""

    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    metadata: Optional[AnalysisMetadata] = None

    @classmethod
    def ok(cls, result: str, metadata: AnalysisMetadata) -> "AnalysisResponse":
        return cls(success=True, result=result, metadata=metadata)

    @classmethod
    def failed(cls, error: str) -> "AnalysisResponse":
        return cls(success=False, error=error)


class ServiceStatus(BaseModel):
    status: Literal["available", "unavailable"]
    message: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.status == "available"


class AIServiceConfig(BaseModel):
    provider: str
    api_key: str
    organization_id: Optional[str] = None
    model: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


class ConfigurationError(Exception):
    """Raised when a component is built without the configuration it needs."""


class InvalidProviderResponse(Exception):
    pass


class AIService(Protocol):
    """Interface every language-model adapter implements."""

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        ...

    def get_status(self) -> ServiceStatus:
        ...

    def get_config(self) -> dict:
        ...

    def validate_config(self) -> bool:
        ...


def redact_config(config: AIServiceConfig) -> dict:
    data = config.model_dump()
    data["api_key"] = REDACTED_API_KEY
    return data


def error_message(exc: BaseException) -> str:
    return str(exc) or UNKNOWN_ERROR_MESSAGE


class UnavailableAIService:
    """
    Stand-in used while the configured provider cannot be built. Reports the
    configuration problem through the status calls instead of raising.
    """

    def __init__(self, config: AIServiceConfig, reason: str):
        self.config = config
        self.reason = reason

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        return AnalysisResponse.failed(self.reason)

    def get_status(self) -> ServiceStatus:
        return ServiceStatus(status="unavailable", message=self.reason)

    def get_config(self) -> dict:
        return redact_config(self.config)

    def validate_config(self) -> bool:
        return False

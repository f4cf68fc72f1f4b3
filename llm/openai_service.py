"""
AIService adapter for the OpenAI chat-completions API.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from openai import OpenAI

from llm.base import (
    AIServiceConfig,
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResponse,
    ConfigurationError,
    InvalidProviderResponse,
    NO_RESPONSE_MESSAGE,
    ServiceStatus,
    error_message,
    redact_config,
)

logger = logging.getLogger(__name__)


class OpenAIService:
    """Chat-completion analysis through a shared ``openai.OpenAI`` client."""

    provider = "openai"

    def __init__(self, config: AIServiceConfig, client: Optional[OpenAI] = None):
        if not config.api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for OpenAIService")
        self.config = config
        self._client = client or OpenAI(
            api_key=config.api_key,
            organization=config.organization_id,
        )

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        start_time = time.time()
        logger.info(
            "Calling OpenAI chat completion",
            extra={"model": request.model, "message_count": len(request.messages)},
        )
        try:
            completion = self._client.chat.completions.create(
                model=request.model,
                messages=[message.model_dump() for message in request.messages],
                temperature=request.resolved_temperature(),
                max_tokens=request.resolved_max_tokens(),
            )
            choice = completion.choices[0] if completion.choices else None
            content = choice.message.content if choice and choice.message else None
            if not content:
                raise InvalidProviderResponse(NO_RESPONSE_MESSAGE)

            usage = getattr(completion, "usage", None)
            metadata = AnalysisMetadata(
                model=request.model,
                tokens_used=usage.total_tokens if usage else None,
                finish_reason=choice.finish_reason,
            )
        except Exception as e:
            logger.error(
                "OpenAI analysis failed",
                extra={"model": request.model, "error": error_message(e)},
            )
            return AnalysisResponse.failed(error_message(e))

        logger.info(
            "OpenAI analysis completed",
            extra={
                "model": request.model,
                "tokens_used": metadata.tokens_used,
                "elapsed_s": round(time.time() - start_time, 2),
            },
        )
        return AnalysisResponse.ok(content, metadata)

    def get_status(self) -> ServiceStatus:
        try:
            self._client.models.list()
        except Exception as e:
            logger.warning("OpenAI status check failed", extra={"error": error_message(e)})
            return ServiceStatus(status="unavailable", message=error_message(e))
        return ServiceStatus(status="available")

    def get_config(self) -> dict:
        return redact_config(self.config)

    def validate_config(self) -> bool:
        try:
            return self.get_status().available
        except Exception:
            return False

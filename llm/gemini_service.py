"""
AIService adapter for Gemini through the google-genai SDK.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from google import genai
from google.genai import types

from llm.base import (
    AIServiceConfig,
    AnalysisMetadata,
    AnalysisRequest,
    AnalysisResponse,
    ChatMessage,
    ConfigurationError,
    InvalidProviderResponse,
    NO_RESPONSE_MESSAGE,
    ServiceStatus,
    error_message,
    redact_config,
)

logger = logging.getLogger(__name__)

# Gemini has no "assistant" role; prior model turns are tagged "model".
ROLE_MAP = {"user": "user", "assistant": "model"}


def to_gemini_contents(
    messages: list[ChatMessage],
) -> tuple[Optional[str], list[types.Content]]:
    """Split chat messages into a system instruction and Gemini contents."""
    system_parts = [m.content for m in messages if m.role == "system"]
    contents = [
        types.Content(
            role=ROLE_MAP[m.role],
            parts=[types.Part.from_text(text=m.content)],
        )
        for m in messages
        if m.role != "system"
    ]
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


def _finish_reason(response) -> Optional[str]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].finish_reason is None:
        return None
    reason = candidates[0].finish_reason
    return str(getattr(reason, "value", reason))


class GeminiService:
    """Chat analysis through a shared ``genai.Client``."""

    provider = "gemini"

    def __init__(self, config: AIServiceConfig, client: Optional[genai.Client] = None):
        if not config.api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for GeminiService")
        self.config = config
        self._client = client or genai.Client(api_key=config.api_key)

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        start_time = time.time()
        system_instruction, contents = to_gemini_contents(request.messages)
        logger.info(
            "Calling Gemini generate_content",
            extra={"model": request.model, "message_count": len(request.messages)},
        )
        try:
            response = self._client.models.generate_content(
                model=request.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=request.resolved_temperature(),
                    max_output_tokens=request.resolved_max_tokens(),
                ),
            )
            if not response.text:
                raise InvalidProviderResponse(NO_RESPONSE_MESSAGE)

            usage = getattr(response, "usage_metadata", None)
            metadata = AnalysisMetadata(
                model=request.model,
                tokens_used=usage.total_token_count if usage else None,
                finish_reason=_finish_reason(response),
            )
        except Exception as e:
            logger.error(
                "Gemini analysis failed",
                extra={"model": request.model, "error": error_message(e)},
            )
            return AnalysisResponse.failed(error_message(e))

        logger.info(
            "Gemini analysis completed",
            extra={
                "model": request.model,
                "tokens_used": metadata.tokens_used,
                "elapsed_s": round(time.time() - start_time, 2),
            },
        )
        return AnalysisResponse.ok(response.text, metadata)

    def get_status(self) -> ServiceStatus:
        try:
            self._client.models.list(config={"page_size": 1})
        except Exception as e:
            logger.warning("Gemini status check failed", extra={"error": error_message(e)})
            return ServiceStatus(status="unavailable", message=error_message(e))
        return ServiceStatus(status="available")

    def get_config(self) -> dict:
        return redact_config(self.config)

    def validate_config(self) -> bool:
        try:
            return self.get_status().available
        except Exception:
            return False

"""
Analysis orchestration: ground a prompt in knowledge-base entries and hand
it to the configured AIService.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from llm.base import AIService, AnalysisRequest, AnalysisResponse, ChatMessage
from survey_backend.errors import KnowledgeBaseError
from survey_backend.knowledge import KnowledgeBase, KnowledgeEntry

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LIMIT = 5
SUMMARY_MAX_LENGTH = 200

SYSTEM_PROMPT = (
    "You are an experienced career and personality assessment analyst. "
    "Interpret the respondent's survey answers and write a structured report "
    "covering personality insights, strengths, areas for improvement and "
    "career recommendations. Base your reasoning on the reference material "
    "when it is relevant and do not invent test scores."
)


@dataclass
class AnalysisOutcome:
    response: AnalysisResponse
    knowledge_sources: list[str] = field(default_factory=list)
    processing_time_ms: int = 0


class AnalysisService:
    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        ai_service: AIService,
        *,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
    ):
        self.knowledge_base = knowledge_base
        self.ai_service = ai_service
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.context_limit = context_limit

    def knowledge_context(
        self, partition: str, focus: Optional[str] = None
    ) -> list[KnowledgeEntry]:
        """Reference entries for the prompt; a failing knowledge base yields none."""
        try:
            return self.knowledge_base.search(
                focus or "", partition, limit=self.context_limit
            )
        except KnowledgeBaseError as e:
            logger.warning(
                "Knowledge context unavailable, analysing without it",
                extra={"partition": partition, "error": e.detail},
            )
            return []

    def build_messages(
        self,
        user_answers: dict[str, Any],
        context: list[KnowledgeEntry],
        language: str = "en",
    ) -> list[ChatMessage]:
        system = f"{SYSTEM_PROMPT}\nRespond in language: {language}."
        if context:
            reference = "\n\n---\n\n".join(entry.content for entry in context)
            system = f"{system}\n\nReference material:\n{reference}"
        answers = json.dumps(user_answers, ensure_ascii=False, indent=2, default=str)
        return [
            ChatMessage(role="system", content=system),
            ChatMessage(
                role="user",
                content=f"Survey answers by test:\n{answers}\n\nPlease write the analysis.",
            ),
        ]

    def generate(
        self,
        user_answers: dict[str, Any],
        *,
        partition: str,
        focus: Optional[str] = None,
        language: str = "en",
    ) -> AnalysisOutcome:
        start_time = time.time()
        context = self.knowledge_context(partition, focus)
        request = AnalysisRequest(
            model=self.model,
            messages=self.build_messages(user_answers, context, language),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        logger.info(
            "Generating analysis",
            extra={
                "partition": partition,
                "test_count": len(user_answers),
                "context_entries": len(context),
            },
        )
        response = self.ai_service.analyze(request)
        return AnalysisOutcome(
            response=response,
            knowledge_sources=[entry.id for entry in context],
            processing_time_ms=int((time.time() - start_time) * 1000),
        )


def summarize(text: str, max_length: int = SUMMARY_MAX_LENGTH) -> str:
    """First non-empty line of a report, without markdown heading marks."""
    for line in text.splitlines():
        line = line.strip().lstrip("#").strip()
        if line:
            return line if len(line) <= max_length else line[: max_length - 3] + "..."
    return ""


def result_record(outcome: AnalysisOutcome) -> dict:
    """JSON body stored for a successful analysis."""
    response = outcome.response
    return {
        "analysis": response.result,
        "metadata": response.metadata.model_dump() if response.metadata else None,
        "knowledge_sources": outcome.knowledge_sources,
        "processing_time_ms": outcome.processing_time_ms,
    }


def system_health(knowledge_base: KnowledgeBase, ai_service: AIService) -> dict:
    """Combined provider and knowledge-base health; never raises."""
    ai_status = ai_service.get_status()
    kb_status = knowledge_base.get_status()
    ai_config = ai_service.get_config()
    healthy = ai_status.available and kb_status.status == "available"
    return {
        "status": "healthy" if healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "ai": {
                "status": ai_status.status,
                "provider": ai_config.get("provider"),
                "model": ai_config.get("model"),
                "message": ai_status.message,
            },
            "knowledge_base": {
                "status": kb_status.status,
                "entry_count": kb_status.entry_count,
                "message": kb_status.message,
            },
        },
        "capabilities": {
            "ai_analysis": ai_status.available,
            "knowledge_base": kb_status.status == "available",
        },
    }

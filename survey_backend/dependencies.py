"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from llm import AIService, UnavailableAIService, create_ai_service
from survey_backend.analysis import AnalysisService
from survey_backend.config import Settings, get_settings
from survey_backend.db import InMemorySurveyStore, SqlSurveyStore, SurveyStore
from survey_backend.errors import ConfigurationError
from survey_backend.knowledge import (
    InMemoryKnowledgeBase,
    KnowledgeBase,
    SqlKnowledgeBase,
)

logger = logging.getLogger(__name__)

USER_INFO_PARTITION = "user_info"
COMPANY_VALUES_PARTITION = "company_values"

_engine: Engine | None = None
_knowledge_base: KnowledgeBase | None = None
_survey_store: SurveyStore | None = None
_ai_service: AIService | None = None


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not settings.database_url


def standard_partitions(settings: Settings) -> tuple[str, ...]:
    return (
        settings.knowledge_default_partition,
        USER_INFO_PARTITION,
        COMPANY_VALUES_PARTITION,
    )


def get_engine() -> Engine:
    """
    Return the process-wide SQLAlchemy engine shared by every SQL adapter.
    """
    global _engine
    if _engine:
        return _engine

    settings = get_settings()
    _engine = create_engine(
        settings.database_url,
        future=True,
        pool_pre_ping=True,
        pool_recycle=1800,
    )
    return _engine


def get_knowledge_base() -> KnowledgeBase:
    global _knowledge_base
    if _knowledge_base:
        return _knowledge_base

    settings = get_settings()
    partitions = standard_partitions(settings)
    if _use_in_memory(settings):
        _knowledge_base = InMemoryKnowledgeBase(
            default_partition=settings.knowledge_default_partition,
            partitions=partitions,
        )
    else:
        knowledge_base = SqlKnowledgeBase(
            get_engine(), default_partition=settings.knowledge_default_partition
        )
        for name in partitions:
            knowledge_base.create_partition(name)
        _knowledge_base = knowledge_base
    return _knowledge_base


def get_survey_store() -> SurveyStore:
    global _survey_store
    if _survey_store:
        return _survey_store

    settings = get_settings()
    if _use_in_memory(settings):
        _survey_store = InMemorySurveyStore()
    else:
        _survey_store = SqlSurveyStore(get_engine())
    return _survey_store


def get_ai_service() -> AIService:
    """
    Return the configured AI adapter. Raises ConfigurationError (and caches
    nothing) while the provider credential is missing.
    """
    global _ai_service
    if _ai_service:
        return _ai_service

    _ai_service = create_ai_service(get_settings().ai_service_config())
    return _ai_service


def get_ai_service_for_status() -> AIService:
    """
    Like get_ai_service, but a provider that cannot be built is reported as
    unavailable instead of failing the request.
    """
    try:
        return get_ai_service()
    except ConfigurationError as e:
        logger.warning("AI service not configured", extra={"error": str(e)})
        return UnavailableAIService(get_settings().ai_service_config(), str(e))


def get_analysis_service(
    knowledge_base: KnowledgeBase = Depends(get_knowledge_base),
    ai_service: AIService = Depends(get_ai_service),
    settings: Settings = Depends(get_settings),
) -> AnalysisService:
    return AnalysisService(
        knowledge_base,
        ai_service,
        model=settings.ai_model,
        temperature=settings.ai_temperature,
        max_tokens=settings.ai_max_tokens,
    )


def reset_dependencies() -> None:
    """Drop cached singletons and settings (useful in tests)."""
    global _engine, _knowledge_base, _survey_store, _ai_service
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _knowledge_base = None
    _survey_store = None
    _ai_service = None
    get_settings.cache_clear()

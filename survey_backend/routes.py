"""
HTTP routes for the survey backend API.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from llm import AIService
from survey_backend.analysis import (
    AnalysisService,
    result_record,
    summarize,
    system_health,
)
from survey_backend.config import Settings, get_settings
from survey_backend.db import AnalysisResult, SurveyModel, SurveyStore
from survey_backend.dependencies import (
    COMPANY_VALUES_PARTITION,
    USER_INFO_PARTITION,
    get_ai_service_for_status,
    get_analysis_service,
    get_knowledge_base,
    get_survey_store,
)
from survey_backend.knowledge import (
    DEFAULT_SEARCH_LIMIT,
    KnowledgeBase,
    KnowledgeEntry,
    KnowledgeEntryUpdate,
    NewEntryMetadata,
    NewKnowledgeEntry,
)
from survey_backend.schemas import (
    AIStatusResponse,
    AnalysisGenerateRequest,
    AnalysisGenerateResponse,
    AnalysisHistoryItem,
    AnalysisHistoryResponse,
    AnalysisOverview,
    AnalysisResultOut,
    AnalysisSummaryResponse,
    CompanyValue,
    CompanyValuesRequest,
    CompanyValuesResponse,
    ConfigCheckResponse,
    DeleteResponse,
    EntryListResponse,
    KnowledgeStatsResponse,
    LatestAnalysisResponse,
    Pagination,
    SearchResponse,
    SubmissionPayload,
    SubmitTestResponse,
    SurveyModelOut,
    SurveyModelsResponse,
    SurveyQuestionOut,
    SurveyQuestionsResponse,
    UserInfoResponse,
    UserProfile,
)
from survey_backend.submissions import submit_test

logger = logging.getLogger(__name__)

router = APIRouter()


def _format_company_value(company_name: str, value: CompanyValue) -> str:
    return (
        f"# {company_name} - {value.title}\n\n"
        f"## Description\n{value.description}\n\n"
        f"## What it is\n{value.what_is}\n\n"
        f"## Why it matters\n{value.why_important}\n\n"
        f"## How to practise it\n{value.how_to_do}\n"
    )


def _user_info_data(entry: KnowledgeEntry) -> Optional[dict]:
    """Profile stored in a user_info entry, or None when the content is not one."""
    try:
        profile = json.loads(entry.content)
    except json.JSONDecodeError:
        profile = None
    if not isinstance(profile, dict):
        logger.warning(
            "Ignoring malformed user info entry", extra={"entry_id": entry.id}
        )
        return None
    return {
        **profile,
        "id": entry.id,
        "created_at": entry.metadata.created_at.isoformat(),
    }


def _analysis_out(record: AnalysisResult) -> AnalysisResultOut:
    return AnalysisResultOut(
        id=record.id,
        user_id=record.user_id,
        model_code=record.model_code,
        summary=record.summary,
        analysis=record.result.get("analysis"),
        metadata=record.result.get("metadata"),
        knowledge_sources=record.result.get("knowledge_sources") or [],
        processing_time_ms=record.result.get("processing_time_ms") or 0,
        completed_at=record.completed_at,
    )


def _survey_questions(
    store: SurveyStore, model: SurveyModel
) -> SurveyQuestionsResponse:
    questions = store.list_questions(model.id)
    if not questions:
        raise HTTPException(
            status_code=404, detail="No questions found for this model"
        )
    return SurveyQuestionsResponse(
        model=SurveyModelOut(**model.as_dict()),
        questions=[SurveyQuestionOut(**q.as_dict()) for q in questions],
    )


# Knowledge base


@router.post("/knowledge/entries", response_model=KnowledgeEntry, status_code=201)
def add_knowledge_entry(
    payload: NewKnowledgeEntry,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    return kb.add_entry(payload)


@router.get("/knowledge/model/{partition}", response_model=EntryListResponse)
def get_knowledge_by_model(
    partition: str, kb: KnowledgeBase = Depends(get_knowledge_base)
):
    entries = kb.get_entries(partition)
    return EntryListResponse(partition=partition, entries=entries, count=len(entries))


@router.get("/knowledge/search", response_model=SearchResponse)
def search_knowledge(
    query: str = Query(..., min_length=1),
    partition: str | None = Query(None),
    limit: int = Query(DEFAULT_SEARCH_LIMIT, ge=1, le=100),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    partition = partition or kb.default_partition
    results = kb.search(query, partition, limit=limit)
    return SearchResponse(
        query=query, partition=partition, results=results, count=len(results)
    )


@router.patch("/knowledge/item/{entry_id}", response_model=KnowledgeEntry)
def update_knowledge_item(
    entry_id: str,
    payload: KnowledgeEntryUpdate,
    partition: str | None = Query(None),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    if not payload.changes():
        raise HTTPException(status_code=400, detail="No fields to update")
    return kb.update_entry(entry_id, payload, partition=partition)


@router.delete("/knowledge/item/{entry_id}", response_model=DeleteResponse)
def delete_knowledge_item(
    entry_id: str,
    partition: str | None = Query(None),
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    success = kb.delete_entry(entry_id, partition=partition)
    return DeleteResponse(success=success, entry_id=entry_id)


@router.get("/knowledge/stats", response_model=KnowledgeStatsResponse)
def knowledge_stats(kb: KnowledgeBase = Depends(get_knowledge_base)):
    return KnowledgeStatsResponse(status=kb.get_status(), config=kb.get_config())


@router.post(
    "/knowledge/company-values", response_model=CompanyValuesResponse, status_code=201
)
def add_company_values(
    payload: CompanyValuesRequest,
    kb: KnowledgeBase = Depends(get_knowledge_base),
):
    ids = []
    for value in payload.values:
        entry = kb.add_entry(
            NewKnowledgeEntry(
                content=_format_company_value(payload.company_name, value),
                metadata=NewEntryMetadata(
                    source=f"company_values:{payload.company_name}",
                    table=COMPANY_VALUES_PARTITION,
                ),
            )
        )
        ids.append(entry.id)
    logger.info(
        "Company values added",
        extra={"company": payload.company_name, "count": len(ids)},
    )
    return CompanyValuesResponse(
        company_name=payload.company_name, added_count=len(ids), ids=ids
    )


# AI provider


@router.get("/ai/status", response_model=AIStatusResponse)
def ai_status(ai: AIService = Depends(get_ai_service_for_status)):
    return AIStatusResponse(status=ai.get_status(), config=ai.get_config())


@router.get("/ai/health")
def ai_health(
    kb: KnowledgeBase = Depends(get_knowledge_base),
    ai: AIService = Depends(get_ai_service_for_status),
):
    return system_health(kb, ai)


# Analysis


@router.post("/analysis/generate", response_model=AnalysisGenerateResponse)
def generate_analysis(
    payload: AnalysisGenerateRequest,
    analysis: AnalysisService = Depends(get_analysis_service),
    store: SurveyStore = Depends(get_survey_store),
):
    partition = payload.model_tag or analysis.knowledge_base.default_partition
    outcome = analysis.generate(
        payload.user_answers,
        partition=partition,
        focus=payload.focus,
        language=payload.language,
    )
    if not outcome.response.success:
        raise HTTPException(
            status_code=502,
            detail=f"Analysis provider error: {outcome.response.error}",
        )
    record = store.save_analysis_result(
        payload.user_id,
        partition,
        summarize(outcome.response.result),
        result_record(outcome),
    )
    logger.info(
        "Analysis stored",
        extra={"analysis_id": record.id, "user_id": payload.user_id},
    )
    return AnalysisGenerateResponse(
        analysis_id=record.id,
        analysis=outcome.response.result,
        metadata=outcome.response.metadata,
        knowledge_sources=outcome.knowledge_sources,
    )


@router.get("/analysis/user/{user_id}", response_model=LatestAnalysisResponse)
def latest_analysis(user_id: str, store: SurveyStore = Depends(get_survey_store)):
    results = store.list_analysis_results(user_id, limit=1)
    if results:
        return LatestAnalysisResponse(
            status="completed", analysis=_analysis_out(results[0])
        )
    survey = store.get_user_survey(user_id)
    if survey is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return LatestAnalysisResponse(status="processing", submitted_at=survey.created_at)


@router.get(
    "/analysis/user/{user_id}/history", response_model=AnalysisHistoryResponse
)
def analysis_history(
    user_id: str,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    store: SurveyStore = Depends(get_survey_store),
):
    results = store.list_analysis_results(user_id, limit=limit, offset=offset)
    total = store.count_analysis_results(user_id)
    return AnalysisHistoryResponse(
        history=[
            AnalysisHistoryItem(
                id=r.id,
                summary=r.summary,
                model_code=r.model_code,
                processing_time_ms=r.result.get("processing_time_ms") or 0,
                completed_at=r.completed_at,
            )
            for r in results
        ],
        pagination=Pagination(
            total=total, limit=limit, offset=offset, has_more=total > offset + limit
        ),
    )


@router.get(
    "/analysis/user/{user_id}/summary", response_model=AnalysisSummaryResponse
)
def analysis_summary(user_id: str, store: SurveyStore = Depends(get_survey_store)):
    results = store.list_analysis_results(user_id, limit=1)
    if not results:
        return AnalysisSummaryResponse(status="no_analysis")
    latest = _analysis_out(results[0])
    survey = store.get_user_survey(user_id)
    return AnalysisSummaryResponse(
        status="completed",
        user_info=survey.profile if survey else None,
        overview=AnalysisOverview(
            summary=latest.summary,
            knowledge_sources_count=len(latest.knowledge_sources),
            processing_time_ms=latest.processing_time_ms,
            completed_at=latest.completed_at,
        ),
    )


@router.get("/analysis/{analysis_id}", response_model=AnalysisResultOut)
def get_analysis(analysis_id: str, store: SurveyStore = Depends(get_survey_store)):
    record = store.get_analysis_result(analysis_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return _analysis_out(record)


# Surveys


@router.get("/survey/models", response_model=SurveyModelsResponse)
def list_survey_models(store: SurveyStore = Depends(get_survey_store)):
    models = store.list_models()
    if not models:
        raise HTTPException(status_code=404, detail="No models found")
    return SurveyModelsResponse(models=[SurveyModelOut(**m.as_dict()) for m in models])


@router.get("/survey/model", response_model=SurveyQuestionsResponse)
def get_survey_model(
    code: str = Query(..., min_length=1),
    store: SurveyStore = Depends(get_survey_store),
):
    model = store.get_model_by_code(code)
    if model is None:
        raise HTTPException(status_code=404, detail="Model not found")
    return _survey_questions(store, model)


@router.get("/survey-questions", response_model=SurveyQuestionsResponse)
def get_survey_questions(
    model_code: str = Query(..., alias="model", min_length=1),
    store: SurveyStore = Depends(get_survey_store),
):
    model = store.get_model_by_code(model_code)
    if model is None:
        raise HTTPException(status_code=404, detail="Model not found")
    return _survey_questions(store, model)


@router.post("/submit-test", response_model=SubmitTestResponse)
def submit_test_results(
    payload: SubmissionPayload,
    store: SurveyStore = Depends(get_survey_store),
):
    result = submit_test(store, payload)
    return SubmitTestResponse(
        message="Test results saved",
        user_survey_id=result.user_survey_id,
        saved_answers=result.saved_answers,
    )


# Users


@router.post("/user/info", response_model=UserInfoResponse)
def save_user_info(
    payload: UserProfile, kb: KnowledgeBase = Depends(get_knowledge_base)
):
    profile = payload.model_dump()
    profile["submit_time"] = datetime.now(timezone.utc).isoformat()
    entry = kb.add_entry(
        NewKnowledgeEntry(
            content=json.dumps(profile, ensure_ascii=False),
            metadata=NewEntryMetadata(source="user_survey", table=USER_INFO_PARTITION),
        )
    )
    return UserInfoResponse(data=_user_info_data(entry))


@router.get("/user/info/{user_id}", response_model=UserInfoResponse)
def get_user_info(user_id: str, kb: KnowledgeBase = Depends(get_knowledge_base)):
    for entry in kb.get_entries(USER_INFO_PARTITION):
        if entry.id == user_id:
            data = _user_info_data(entry)
            if data is not None:
                return UserInfoResponse(data=data)
            break
    raise HTTPException(status_code=404, detail="User info not found")


# Diagnostics


@router.get("/config/check", response_model=ConfigCheckResponse)
def config_check(settings: Settings = Depends(get_settings)):
    if not settings.is_development:
        raise HTTPException(status_code=404, detail="Not Found")

    def state(value: str | None) -> str:
        return "configured" if value else "missing"

    return ConfigCheckResponse(
        env=settings.app_env,
        database={
            "database_url": state(settings.database_url),
            "in_memory": str(
                settings.use_in_memory_backends or not settings.database_url
            ).lower(),
        },
        ai={
            "provider": settings.ai_provider,
            "openai_api_key": state(settings.openai_api_key),
            "openai_organization_id": state(settings.openai_organization_id),
            "gemini_api_key": state(settings.gemini_api_key),
        },
    )


@router.get("/test/db")
def test_db(kb: KnowledgeBase = Depends(get_knowledge_base)):
    status = kb.get_status()
    if status.status != "available":
        raise HTTPException(
            status_code=503, detail=status.message or "Database unavailable"
        )
    return {"status": "success", "data": status.model_dump()}

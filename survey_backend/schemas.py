"""
Pydantic schemas for the survey backend HTTP API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from llm.base import AnalysisMetadata, ServiceStatus
from survey_backend.knowledge import KnowledgeEntry, KnowledgeStatus

GENDER_ALIASES = {
    "male": "male",
    "m": "male",
    "男": "male",
    "female": "female",
    "f": "female",
    "女": "female",
}


def normalize_gender(value: str) -> str:
    return GENDER_ALIASES.get(value.strip().lower(), "unknown")


class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: datetime
    environment: str
    version: str


class EntryListResponse(BaseModel):
    partition: str
    entries: list[KnowledgeEntry]
    count: int


class SearchResponse(BaseModel):
    query: str
    partition: str
    results: list[KnowledgeEntry]
    count: int


class DeleteResponse(BaseModel):
    success: bool
    entry_id: str


class KnowledgeStatsResponse(BaseModel):
    status: KnowledgeStatus
    config: dict


class CompanyValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    what_is: str = Field(..., min_length=1, alias="whatIs")
    why_important: str = Field(..., min_length=1, alias="whyImportant")
    how_to_do: str = Field(..., min_length=1, alias="howToDo")


class CompanyValuesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company_name: str = Field(..., min_length=1, alias="companyName")
    values: list[CompanyValue] = Field(..., min_length=1)


class CompanyValuesResponse(BaseModel):
    company_name: str
    added_count: int
    ids: list[str]


class AIStatusResponse(BaseModel):
    status: ServiceStatus
    config: dict


class AnalysisGenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    user_id: Optional[str] = Field(default=None, alias="userId")
    user_answers: dict[str, Any] = Field(..., min_length=1, alias="userAnswers")
    model_tag: Optional[str] = Field(default=None, alias="modelTag")
    focus: Optional[str] = None
    language: str = Field(default="en", max_length=16)


class AnalysisGenerateResponse(BaseModel):
    analysis_id: str
    analysis: str
    metadata: Optional[AnalysisMetadata] = None
    knowledge_sources: list[str]


class AnalysisResultOut(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    user_id: Optional[str] = None
    model_code: str
    summary: str
    analysis: Optional[str] = None
    metadata: Optional[AnalysisMetadata] = None
    knowledge_sources: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0
    completed_at: datetime


class LatestAnalysisResponse(BaseModel):
    status: Literal["completed", "processing"]
    analysis: Optional[AnalysisResultOut] = None
    submitted_at: Optional[datetime] = None


class AnalysisHistoryItem(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    id: str
    summary: str
    model_code: str
    processing_time_ms: int = 0
    completed_at: datetime


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AnalysisHistoryResponse(BaseModel):
    history: list[AnalysisHistoryItem]
    pagination: Pagination


class AnalysisOverview(BaseModel):
    summary: str
    knowledge_sources_count: int
    processing_time_ms: int
    completed_at: datetime


class AnalysisSummaryResponse(BaseModel):
    status: Literal["completed", "no_analysis"]
    user_info: Optional[dict[str, Any]] = None
    overview: Optional[AnalysisOverview] = None


class SurveyModelOut(BaseModel):
    id: str
    code: str
    name: str
    description: str = ""


class SurveyQuestionOut(BaseModel):
    id: str
    question_code: str
    content: str
    options: Any = None
    type: str
    sort_order: int
    required: bool


class SurveyModelsResponse(BaseModel):
    models: list[SurveyModelOut]


class SurveyQuestionsResponse(BaseModel):
    model: SurveyModelOut
    questions: list[SurveyQuestionOut]


class UserProfile(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    gender: str = Field(..., min_length=1)
    age: Optional[int] = Field(default=None, ge=0, le=150)
    city: Optional[str] = None
    occupation: Optional[str] = None
    education: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("gender")
    @classmethod
    def _normalize_gender(cls, value: str) -> str:
        return normalize_gender(value)


class SubmissionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_info: UserProfile = Field(..., alias="userInfo")
    five_questions: Optional[dict[str, Any]] = Field(default=None, alias="fiveQuestions")
    mbti: Optional[dict[str, Any]] = None
    big_five: Optional[dict[str, Any]] = Field(default=None, alias="bigFive")
    disc: Optional[dict[str, Any]] = None
    holland: Optional[dict[str, Any]] = None
    values: Optional[dict[str, Any]] = None


class SubmitTestResponse(BaseModel):
    message: str
    user_survey_id: str
    saved_answers: dict[str, int]


class UserInfoResponse(BaseModel):
    data: dict[str, Any]


class ConfigCheckResponse(BaseModel):
    env: str
    database: dict[str, str]
    ai: dict[str, str]

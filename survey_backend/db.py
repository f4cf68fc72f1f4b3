"""
Survey store for models, questions, respondents, raw answers and analysis
results, with a SQLAlchemy implementation and an in-memory test
implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker


class SurveyStore(Protocol):
    """Interface for survey data access."""

    def list_models(self) -> list["SurveyModel"]:
        ...

    def get_model_by_code(self, code: str) -> Optional["SurveyModel"]:
        ...

    def add_model(
        self, code: str, name: str, description: str = ""
    ) -> "SurveyModel":
        ...

    def list_questions(self, model_id: str) -> list["SurveyQuestion"]:
        ...

    def add_question(
        self,
        model_id: str,
        question_code: str,
        content: str,
        *,
        options: Any = None,
        type: str = "single",
        sort_order: int = 0,
        required: bool = True,
    ) -> "SurveyQuestion":
        ...

    def create_user_survey(self, profile: dict) -> "UserSurvey":
        ...

    def get_user_survey(self, survey_id: str) -> Optional["UserSurvey"]:
        ...

    def save_answers(
        self, user_survey_id: str, model_id: str, answers: dict[str, tuple[str, Any]]
    ) -> int:
        ...

    def list_answers(self, user_survey_id: str) -> list["RawAnswer"]:
        ...

    def save_analysis_result(
        self,
        user_id: Optional[str],
        model_code: str,
        summary: str,
        result: dict,
    ) -> "AnalysisResult":
        ...

    def get_analysis_result(self, analysis_id: str) -> Optional["AnalysisResult"]:
        ...

    def list_analysis_results(
        self, user_id: str, limit: int = 10, offset: int = 0
    ) -> list["AnalysisResult"]:
        """Results for ``user_id``, newest first."""
        ...

    def count_analysis_results(self, user_id: str) -> int:
        ...


@dataclass
class SurveyModel:
    id: str
    code: str
    name: str
    description: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
        }


@dataclass
class SurveyQuestion:
    id: str
    model_id: str
    question_code: str
    content: str
    options: Any = None
    type: str = "single"
    sort_order: int = 0
    required: bool = True

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "question_code": self.question_code,
            "content": self.content,
            "options": self.options,
            "type": self.type,
            "sort_order": self.sort_order,
            "required": self.required,
        }


@dataclass
class UserSurvey:
    id: str
    profile: dict
    status: str = "pending"
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class RawAnswer:
    id: str
    user_survey_id: str
    question_id: str
    model_id: str
    answer: Any
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class AnalysisResult:
    id: str
    user_id: Optional[str]
    model_code: str
    summary: str
    result: dict
    completed_at: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "model_code": self.model_code,
            "summary": self.summary,
            "result": self.result,
            "completed_at": self.completed_at,
        }


class InMemorySurveyStore:
    """Simple in-memory survey store for development and tests."""

    def __init__(self):
        self.models: Dict[str, SurveyModel] = {}
        self.questions: Dict[str, SurveyQuestion] = {}
        self.user_surveys: Dict[str, UserSurvey] = {}
        self.answers: Dict[str, RawAnswer] = {}
        self.analysis_results: Dict[str, AnalysisResult] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.models.clear()
        self.questions.clear()
        self.user_surveys.clear()
        self.answers.clear()
        self.analysis_results.clear()

    def list_models(self) -> list[SurveyModel]:
        return sorted(self.models.values(), key=lambda m: m.name)

    def get_model_by_code(self, code: str) -> Optional[SurveyModel]:
        for model in self.models.values():
            if model.code == code:
                return model
        return None

    def add_model(self, code: str, name: str, description: str = "") -> SurveyModel:
        model = SurveyModel(
            id=uuid.uuid4().hex, code=code, name=name, description=description
        )
        self.models[model.id] = model
        return model

    def list_questions(self, model_id: str) -> list[SurveyQuestion]:
        questions = [q for q in self.questions.values() if q.model_id == model_id]
        return sorted(questions, key=lambda q: q.sort_order)

    def add_question(
        self,
        model_id: str,
        question_code: str,
        content: str,
        *,
        options: Any = None,
        type: str = "single",
        sort_order: int = 0,
        required: bool = True,
    ) -> SurveyQuestion:
        question = SurveyQuestion(
            id=uuid.uuid4().hex,
            model_id=model_id,
            question_code=question_code,
            content=content,
            options=options,
            type=type,
            sort_order=sort_order,
            required=required,
        )
        self.questions[question.id] = question
        return question

    def create_user_survey(self, profile: dict) -> UserSurvey:
        survey = UserSurvey(id=uuid.uuid4().hex, profile=dict(profile))
        self.user_surveys[survey.id] = survey
        return survey

    def get_user_survey(self, survey_id: str) -> Optional[UserSurvey]:
        return self.user_surveys.get(survey_id)

    def save_answers(
        self, user_survey_id: str, model_id: str, answers: dict[str, tuple[str, Any]]
    ) -> int:
        for question_id, answer in answers.values():
            record = RawAnswer(
                id=uuid.uuid4().hex,
                user_survey_id=user_survey_id,
                question_id=question_id,
                model_id=model_id,
                answer=answer,
            )
            self.answers[record.id] = record
        return len(answers)

    def list_answers(self, user_survey_id: str) -> list[RawAnswer]:
        return [a for a in self.answers.values() if a.user_survey_id == user_survey_id]

    def save_analysis_result(
        self,
        user_id: Optional[str],
        model_code: str,
        summary: str,
        result: dict,
    ) -> AnalysisResult:
        record = AnalysisResult(
            id=uuid.uuid4().hex,
            user_id=user_id,
            model_code=model_code,
            summary=summary,
            result=dict(result),
            completed_at=time.time(),
        )
        self.analysis_results[record.id] = record
        return record

    def get_analysis_result(self, analysis_id: str) -> Optional[AnalysisResult]:
        return self.analysis_results.get(analysis_id)

    def _results_for(self, user_id: str) -> list[AnalysisResult]:
        # Newest first; equal timestamps fall back to reverse insertion order.
        results = [r for r in self.analysis_results.values() if r.user_id == user_id]
        return sorted(reversed(results), key=lambda r: r.completed_at, reverse=True)

    def list_analysis_results(
        self, user_id: str, limit: int = 10, offset: int = 0
    ) -> list[AnalysisResult]:
        return self._results_for(user_id)[offset : offset + limit]

    def count_analysis_results(self, user_id: str) -> int:
        return len(self._results_for(user_id))


class SqlSurveyStore:
    """
    SQLAlchemy-backed implementation sharing the process-wide engine.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _to_model(row: "SurveyModelRow") -> SurveyModel:
        return SurveyModel(
            id=row.id, code=row.code, name=row.name, description=row.description or ""
        )

    @staticmethod
    def _to_question(row: "SurveyQuestionRow") -> SurveyQuestion:
        return SurveyQuestion(
            id=row.id,
            model_id=row.model_id,
            question_code=row.question_code,
            content=row.content,
            options=row.options,
            type=row.type,
            sort_order=row.sort_order,
            required=row.required,
        )

    def list_models(self) -> list[SurveyModel]:
        with self.Session() as session:
            rows = session.execute(
                select(SurveyModelRow).order_by(SurveyModelRow.name.asc())
            ).scalars()
            return [self._to_model(row) for row in rows]

    def get_model_by_code(self, code: str) -> Optional[SurveyModel]:
        with self.Session() as session:
            row = session.execute(
                select(SurveyModelRow).where(SurveyModelRow.code == code)
            ).scalar_one_or_none()
            return self._to_model(row) if row else None

    def add_model(self, code: str, name: str, description: str = "") -> SurveyModel:
        with self.Session() as session:
            row = SurveyModelRow(
                id=uuid.uuid4().hex, code=code, name=name, description=description
            )
            session.add(row)
            session.commit()
            return self._to_model(row)

    def list_questions(self, model_id: str) -> list[SurveyQuestion]:
        with self.Session() as session:
            rows = session.execute(
                select(SurveyQuestionRow)
                .where(SurveyQuestionRow.model_id == model_id)
                .order_by(SurveyQuestionRow.sort_order.asc())
            ).scalars()
            return [self._to_question(row) for row in rows]

    def add_question(
        self,
        model_id: str,
        question_code: str,
        content: str,
        *,
        options: Any = None,
        type: str = "single",
        sort_order: int = 0,
        required: bool = True,
    ) -> SurveyQuestion:
        with self.Session() as session:
            row = SurveyQuestionRow(
                id=uuid.uuid4().hex,
                model_id=model_id,
                question_code=question_code,
                content=content,
                options=options,
                type=type,
                sort_order=sort_order,
                required=required,
            )
            session.add(row)
            session.commit()
            return self._to_question(row)

    def create_user_survey(self, profile: dict) -> UserSurvey:
        now = time.time()
        with self.Session() as session:
            row = UserSurveyRow(
                id=uuid.uuid4().hex, profile=profile, status="pending", created_at=now
            )
            session.add(row)
            session.commit()
            return UserSurvey(
                id=row.id, profile=row.profile, status=row.status, created_at=now
            )

    def get_user_survey(self, survey_id: str) -> Optional[UserSurvey]:
        with self.Session() as session:
            row = session.get(UserSurveyRow, survey_id)
            if not row:
                return None
            return UserSurvey(
                id=row.id,
                profile=row.profile,
                status=row.status,
                created_at=row.created_at,
            )

    def save_answers(
        self, user_survey_id: str, model_id: str, answers: dict[str, tuple[str, Any]]
    ) -> int:
        now = time.time()
        with self.Session() as session:
            session.add_all(
                UserSurveyAnswerRow(
                    id=uuid.uuid4().hex,
                    user_survey_id=user_survey_id,
                    question_id=question_id,
                    model_id=model_id,
                    answer=answer,
                    created_at=now,
                )
                for question_id, answer in answers.values()
            )
            session.commit()
        return len(answers)

    def list_answers(self, user_survey_id: str) -> list[RawAnswer]:
        with self.Session() as session:
            rows = session.execute(
                select(UserSurveyAnswerRow)
                .where(UserSurveyAnswerRow.user_survey_id == user_survey_id)
                .order_by(UserSurveyAnswerRow.created_at.asc())
            ).scalars()
            return [
                RawAnswer(
                    id=row.id,
                    user_survey_id=row.user_survey_id,
                    question_id=row.question_id,
                    model_id=row.model_id,
                    answer=row.answer,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    @staticmethod
    def _to_analysis_result(row: "AnalysisResultRow") -> AnalysisResult:
        return AnalysisResult(
            id=row.id,
            user_id=row.user_id,
            model_code=row.model_code,
            summary=row.summary,
            result=row.result or {},
            completed_at=row.completed_at,
        )

    def save_analysis_result(
        self,
        user_id: Optional[str],
        model_code: str,
        summary: str,
        result: dict,
    ) -> AnalysisResult:
        with self.Session() as session:
            row = AnalysisResultRow(
                id=uuid.uuid4().hex,
                user_id=user_id,
                model_code=model_code,
                summary=summary,
                result=result,
                completed_at=time.time(),
            )
            session.add(row)
            session.commit()
            return self._to_analysis_result(row)

    def get_analysis_result(self, analysis_id: str) -> Optional[AnalysisResult]:
        with self.Session() as session:
            row = session.get(AnalysisResultRow, analysis_id)
            return self._to_analysis_result(row) if row else None

    def list_analysis_results(
        self, user_id: str, limit: int = 10, offset: int = 0
    ) -> list[AnalysisResult]:
        with self.Session() as session:
            rows = session.execute(
                select(AnalysisResultRow)
                .where(AnalysisResultRow.user_id == user_id)
                .order_by(AnalysisResultRow.completed_at.desc())
                .offset(offset)
                .limit(limit)
            ).scalars()
            return [self._to_analysis_result(row) for row in rows]

    def count_analysis_results(self, user_id: str) -> int:
        with self.Session() as session:
            return session.execute(
                select(func.count())
                .select_from(AnalysisResultRow)
                .where(AnalysisResultRow.user_id == user_id)
            ).scalar_one()


Base = declarative_base()


class SurveyModelRow(Base):
    __tablename__ = "survey_model"

    id = Column(String, primary_key=True)
    code = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)


class SurveyQuestionRow(Base):
    __tablename__ = "survey_question"

    id = Column(String, primary_key=True)
    model_id = Column(String, nullable=False, index=True)
    question_code = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    options = Column(JSON, nullable=True)
    type = Column(String, nullable=False, default="single")
    sort_order = Column(Integer, nullable=False, default=0)
    required = Column(Boolean, nullable=False, default=True)


class UserSurveyRow(Base):
    __tablename__ = "user_survey"

    id = Column(String, primary_key=True)
    profile = Column(JSON, nullable=False)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(Float, nullable=False)


class UserSurveyAnswerRow(Base):
    __tablename__ = "user_survey_answer"

    id = Column(String, primary_key=True)
    user_survey_id = Column(String, nullable=False, index=True)
    question_id = Column(String, nullable=False)
    model_id = Column(String, nullable=False, index=True)
    answer = Column(JSON, nullable=True)
    created_at = Column(Float, nullable=False)


class AnalysisResultRow(Base):
    __tablename__ = "analysis_results"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    model_code = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    result = Column(JSON, nullable=False)
    completed_at = Column(Float, nullable=False, index=True)

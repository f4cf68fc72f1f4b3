"""
Test submission: store a respondent profile and the raw answers per survey model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from survey_backend.db import SurveyStore
from survey_backend.schemas import SubmissionPayload

logger = logging.getLogger(__name__)

# Submission field -> survey model code.
ANSWER_SET_MODELS = {
    "five_questions": "fiveq",
    "mbti": "mbti",
    "big_five": "big5",
    "disc": "disc",
    "holland": "holland",
    "values": "motivation",
}


@dataclass
class SubmissionResult:
    user_survey_id: str
    saved_answers: dict[str, int] = field(default_factory=dict)
    skipped_questions: list[str] = field(default_factory=list)


def submit_test(
    store: SurveyStore, submission: SubmissionPayload
) -> SubmissionResult:
    """
    Persist the respondent and every answer whose question code is known.

    Answer sets for models that do not exist are ignored, as are answers for
    unknown question codes.
    """
    survey = store.create_user_survey(submission.user_info.model_dump())
    result = SubmissionResult(user_survey_id=survey.id)
    logger.info("User survey created", extra={"user_survey_id": survey.id})

    for attr, model_code in ANSWER_SET_MODELS.items():
        answer_set: dict[str, Any] | None = getattr(submission, attr)
        if not answer_set:
            continue
        model = store.get_model_by_code(model_code)
        if model is None:
            logger.warning("Survey model missing", extra={"model_code": model_code})
            continue

        questions = {q.question_code: q for q in store.list_questions(model.id)}
        resolved: dict[str, tuple[str, Any]] = {}
        for question_code, answer in answer_set.items():
            question = questions.get(question_code)
            if question is None:
                result.skipped_questions.append(question_code)
                continue
            resolved[question_code] = (question.id, answer)

        result.saved_answers[model_code] = store.save_answers(
            survey.id, model.id, resolved
        )
        logger.info(
            "Saved answers",
            extra={"model_code": model_code, "count": len(resolved)},
        )
    return result

"""Quiz attempt submission and history.

Answers arrive keyed by question id.  A plain string is a text answer
(single choice, true/false, short answer); a list is a set of selected
choices.  A passing attempt completes the quiz's linked lesson, which
can in turn complete the module and the enrollment.
"""

from __future__ import annotations

import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from progress_engine.api.dependencies import EngineDep, IdempotencyKeyDep
from progress_engine.api.schemas import QuizAttemptOut, attempt_out
from progress_engine.models.quiz import Answer, ChoiceListAnswer, TextAnswer

router = APIRouter(prefix="/v1/enrollments", tags=["quizzes"])


class QuizAttemptIn(BaseModel):
    answers: dict[str, str | list[str]] = Field(default_factory=dict)
    time_spent_seconds: int = Field(default=0, ge=0)
    started_at: datetime.datetime | None = None


class QuizAttemptsOut(BaseModel):
    attempts: list[QuizAttemptOut]
    best_attempt_id: str | None


def to_answer(raw: str | list[str]) -> Answer:
    if isinstance(raw, list):
        return ChoiceListAnswer(values=tuple(raw))
    return TextAnswer(value=raw)


@router.post(
    "/{enrollment_id}/quizzes/{quiz_id}/attempts",
    response_model=QuizAttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_quiz_attempt(
    enrollment_id: str,
    quiz_id: str,
    body: QuizAttemptIn,
    engine: EngineDep,
    idempotency_key: IdempotencyKeyDep,
) -> QuizAttemptOut:
    attempt = await engine.submit_quiz_attempt(
        enrollment_id,
        quiz_id,
        {qid: to_answer(raw) for qid, raw in body.answers.items()},
        body.time_spent_seconds,
        started_at=body.started_at,
        idempotency_key=idempotency_key,
    )
    return attempt_out(attempt)


@router.get(
    "/{enrollment_id}/quizzes/{quiz_id}/attempts",
    response_model=QuizAttemptsOut,
)
async def list_quiz_attempts(
    enrollment_id: str, quiz_id: str, engine: EngineDep
) -> QuizAttemptsOut:
    attempts = await engine.list_quiz_attempts(enrollment_id, quiz_id)
    best = await engine.best_quiz_attempt(enrollment_id, quiz_id)
    return QuizAttemptsOut(
        attempts=[attempt_out(a) for a in attempts],
        best_attempt_id=str(best.id) if best else None,
    )

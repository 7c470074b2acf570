from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    type: QuestionType
    correct_answer: str
    points: int = 1
    text: str = ""


@dataclass(frozen=True, slots=True)
class QuizDefinition:
    id: str
    questions: tuple[Question, ...]
    passing_score: int = 60  # percentage
    time_limit_seconds: int | None = None
    lesson_id: str | None = None  # passing the quiz completes this lesson
    title: str = ""


# --- Answers: a tagged union resolved against the question type ---


@dataclass(frozen=True, slots=True)
class TextAnswer:
    value: str


@dataclass(frozen=True, slots=True)
class ChoiceListAnswer:
    values: tuple[str, ...]


Answer = TextAnswer | ChoiceListAnswer


@dataclass(frozen=True, slots=True)
class QuizSubmission:
    answers: dict[str, Answer]
    time_spent_seconds: int = 0


@dataclass(frozen=True, slots=True)
class QuestionResult:
    question_id: str
    correct: bool
    points_awarded: int
    student_answer: Answer | None


@dataclass(frozen=True, slots=True)
class GradedQuiz:
    """Pure grading output; no identity, no timestamps."""

    score: int
    max_score: int
    percentage: int
    passed: bool
    grade_letter: str
    time_limit_exceeded: bool
    results: tuple[QuestionResult, ...]


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """An immutable, graded submission."""

    id: UUID
    quiz_id: str
    enrollment_id: str
    learner_id: str
    attempt_number: int
    started_at: datetime.datetime
    submitted_at: datetime.datetime
    time_spent_seconds: int
    score: int
    max_score: int
    percentage: int
    passed: bool
    grade_letter: str
    time_limit_exceeded: bool = False
    answers: dict[str, Answer] = field(default_factory=dict)
    results: tuple[QuestionResult, ...] = ()

    @staticmethod
    def new(
        *,
        quiz_id: str,
        enrollment_id: str,
        learner_id: str,
        attempt_number: int,
        submission: QuizSubmission,
        graded: GradedQuiz,
        started_at: datetime.datetime,
        submitted_at: datetime.datetime,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            quiz_id=quiz_id,
            enrollment_id=enrollment_id,
            learner_id=learner_id,
            attempt_number=attempt_number,
            started_at=started_at,
            submitted_at=submitted_at,
            time_spent_seconds=submission.time_spent_seconds,
            score=graded.score,
            max_score=graded.max_score,
            percentage=graded.percentage,
            passed=graded.passed,
            grade_letter=graded.grade_letter,
            time_limit_exceeded=graded.time_limit_exceeded,
            answers=dict(submission.answers),
            results=graded.results,
        )

"""Quiz grading.

grade_quiz is a pure function of (definition, submission): the same
inputs always produce the same GradedQuiz.  Retake limits, persistence
and attempt numbering belong to the caller.

Matching rules:
  MULTIPLE_CHOICE / TRUE_FALSE  exact, case-sensitive string match.
      A single-element choice list counts as that choice; any other
      list is ambiguous and scores zero.  No partial credit.
  SHORT_ANSWER  match after stripping surrounding whitespace and
      casefolding both sides.  No fuzzy matching.

Late submissions are graded normally; the overrun is only flagged.
"""

from __future__ import annotations

from collections.abc import Iterable

from progress_engine.core.errors import ValidationError
from progress_engine.core.rounding import percent
from progress_engine.models.quiz import (
    Answer,
    ChoiceListAnswer,
    GradedQuiz,
    Question,
    QuestionResult,
    QuestionType,
    QuizAttempt,
    QuizDefinition,
    QuizSubmission,
    TextAnswer,
)

# (minimum percentage, letter), checked top-down
_GRADE_BANDS: tuple[tuple[int, str], ...] = ((90, "A"), (80, "B"), (70, "C"), (60, "D"))


def grade_letter(percentage: int) -> str:
    for floor, letter in _GRADE_BANDS:
        if percentage >= floor:
            return letter
    return "F"


def _as_single_text(answer: Answer) -> str | None:
    if isinstance(answer, TextAnswer):
        return answer.value
    if isinstance(answer, ChoiceListAnswer) and len(answer.values) == 1:
        return answer.values[0]
    return None


def is_correct(question: Question, answer: Answer | None) -> bool:
    if answer is None:
        return False
    given = _as_single_text(answer)
    if given is None:
        return False
    if question.type is QuestionType.SHORT_ANSWER:
        return given.strip().casefold() == question.correct_answer.strip().casefold()
    return given == question.correct_answer


def grade_quiz(quiz: QuizDefinition, submission: QuizSubmission) -> GradedQuiz:
    known_ids = {q.id for q in quiz.questions}
    unknown = sorted(qid for qid in submission.answers if qid not in known_ids)
    if unknown:
        raise ValidationError(
            f"quiz {quiz.id!r} has no question(s): {', '.join(unknown)}"
        )
    if submission.time_spent_seconds < 0:
        raise ValidationError("time_spent_seconds must be >= 0")

    results: list[QuestionResult] = []
    score = 0
    max_score = 0
    for question in quiz.questions:
        answer = submission.answers.get(question.id)
        correct = is_correct(question, answer)
        awarded = question.points if correct else 0
        score += awarded
        max_score += question.points
        results.append(
            QuestionResult(
                question_id=question.id,
                correct=correct,
                points_awarded=awarded,
                student_answer=answer,
            )
        )

    percentage = percent(score, max_score)
    time_limit_exceeded = (
        quiz.time_limit_seconds is not None
        and submission.time_spent_seconds > quiz.time_limit_seconds
    )
    return GradedQuiz(
        score=score,
        max_score=max_score,
        percentage=percentage,
        passed=percentage >= quiz.passing_score,
        grade_letter=grade_letter(percentage),
        time_limit_exceeded=time_limit_exceeded,
        results=tuple(results),
    )


def best_attempt(attempts: Iterable[QuizAttempt]) -> QuizAttempt | None:
    """Highest score, then highest percentage, then most recent submission."""
    return max(
        attempts,
        key=lambda a: (a.score, a.percentage, a.submitted_at),
        default=None,
    )

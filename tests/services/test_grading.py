from __future__ import annotations

import datetime
import uuid

import pytest

from progress_engine.core.errors import ValidationError
from progress_engine.models.quiz import (
    ChoiceListAnswer,
    Question,
    QuestionType,
    QuizAttempt,
    QuizDefinition,
    QuizSubmission,
    TextAnswer,
)
from progress_engine.services.grading import best_attempt, grade_letter, grade_quiz, is_correct
from tests.conftest import make_quiz


def _submit(**answers: str) -> QuizSubmission:
    return QuizSubmission(answers={qid: TextAnswer(v) for qid, v in answers.items()})


# ---- pass/fail boundary ----


def test_half_correct_meets_passing_score_of_fifty() -> None:
    graded = grade_quiz(make_quiz(passing_score=50), _submit(q1="B", q2="False"))
    assert graded.score == 10
    assert graded.max_score == 20
    assert graded.percentage == 50
    assert graded.passed is True


def test_nothing_correct_fails() -> None:
    graded = grade_quiz(make_quiz(passing_score=50), _submit(q1="A", q2="False"))
    assert graded.percentage == 0
    assert graded.passed is False
    assert graded.grade_letter == "F"


def test_unanswered_questions_score_zero() -> None:
    graded = grade_quiz(make_quiz(), _submit(q1="B"))
    assert [r.correct for r in graded.results] == [True, False]
    assert graded.results[1].student_answer is None


def test_grading_is_deterministic() -> None:
    quiz = make_quiz()
    submission = _submit(q1="B", q2="True")
    first = grade_quiz(quiz, submission)
    for _ in range(3):
        assert grade_quiz(quiz, submission) == first
    assert first.percentage == 100
    assert first.grade_letter == "A"


# ---- matching rules ----


def test_multiple_choice_is_case_sensitive() -> None:
    q = Question(id="q", type=QuestionType.MULTIPLE_CHOICE, correct_answer="B")
    assert is_correct(q, TextAnswer("B")) is True
    assert is_correct(q, TextAnswer("b")) is False


def test_short_answer_ignores_case_and_surrounding_whitespace() -> None:
    q = Question(id="q", type=QuestionType.SHORT_ANSWER, correct_answer="Photosynthesis")
    assert is_correct(q, TextAnswer("  photosynthesis ")) is True
    assert is_correct(q, TextAnswer("photosynthesys")) is False


def test_single_element_choice_list_counts_as_that_choice() -> None:
    q = Question(id="q", type=QuestionType.MULTIPLE_CHOICE, correct_answer="C")
    assert is_correct(q, ChoiceListAnswer(("C",))) is True
    assert is_correct(q, ChoiceListAnswer(("C", "D"))) is False
    assert is_correct(q, ChoiceListAnswer(())) is False


def test_answer_for_unknown_question_is_rejected() -> None:
    with pytest.raises(ValidationError, match="has no question"):
        grade_quiz(make_quiz(), _submit(q1="B", q9="x"))


def test_negative_time_spent_is_rejected() -> None:
    with pytest.raises(ValidationError):
        grade_quiz(make_quiz(), QuizSubmission(answers={}, time_spent_seconds=-1))


def test_time_limit_overrun_is_flagged_not_failed() -> None:
    quiz = make_quiz(time_limit_seconds=60)
    graded = grade_quiz(
        quiz,
        QuizSubmission(
            answers={"q1": TextAnswer("B"), "q2": TextAnswer("True")},
            time_spent_seconds=90,
        ),
    )
    assert graded.time_limit_exceeded is True
    assert graded.passed is True


def test_empty_quiz_scores_zero_percent() -> None:
    graded = grade_quiz(QuizDefinition(id="empty", questions=()), QuizSubmission(answers={}))
    assert graded.max_score == 0
    assert graded.percentage == 0
    assert graded.passed is False


@pytest.mark.parametrize(
    ("pct", "letter"),
    [(100, "A"), (90, "A"), (89, "B"), (80, "B"), (70, "C"), (60, "D"), (59, "F")],
)
def test_grade_letter_bands(pct: int, letter: str) -> None:
    assert grade_letter(pct) == letter


# ---- best attempt ----


def _attempt(score: int, minute: int) -> QuizAttempt:
    ts = datetime.datetime(2026, 1, 1, 12, minute, tzinfo=datetime.UTC)
    return QuizAttempt(
        id=uuid.uuid4(),
        quiz_id="quiz-1",
        enrollment_id="enr-1",
        learner_id="learner-1",
        attempt_number=minute + 1,
        started_at=ts,
        submitted_at=ts,
        time_spent_seconds=0,
        score=score,
        max_score=20,
        percentage=score * 5,
        passed=score >= 10,
        grade_letter=grade_letter(score * 5),
    )


def test_best_attempt_prefers_score_then_recency() -> None:
    early_high = _attempt(20, 0)
    low = _attempt(10, 1)
    late_high = _attempt(20, 2)
    assert best_attempt([early_high, low, late_high]) is late_high
    assert best_attempt([low]) is low
    assert best_attempt([]) is None

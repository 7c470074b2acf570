from __future__ import annotations

import asyncio
import datetime
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from progress_engine.core.clock import FixedClock
from progress_engine.main import app
from progress_engine.models.course import CourseMetadata, ModuleOutline
from progress_engine.models.enrollment import Enrollment
from progress_engine.models.quiz import Question, QuestionType, QuizDefinition
from progress_engine.services.cache import cache_service
from progress_engine.services.locks import lock_manager
from progress_engine.services.reconciliation import course_catalog, reconciler, state_store

# Ensure repo root is on sys.path so `import progress_engine` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

NOW = datetime.datetime(2026, 3, 16, 12, 0, tzinfo=datetime.UTC)


@pytest.fixture(autouse=True)
def reset_state_store() -> None:
    """Clear enrollments, progress, streaks and profiles between tests."""
    if hasattr(state_store, "clear"):
        state_store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_course_catalog() -> None:
    if hasattr(course_catalog, "clear"):
        course_catalog.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_locks() -> None:
    if hasattr(lock_manager, "clear"):
        lock_manager.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def clock() -> Iterator[FixedClock]:
    """Pin the process-wide engine to NOW; restored afterwards."""
    original = reconciler.clock
    fixed = FixedClock(NOW)
    reconciler.clock = fixed
    yield fixed
    reconciler.clock = original


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


def make_course(
    course_id: str = "course-1",
    *,
    modules: dict[str, list[str]] | None = None,
    duration_days: int | None = 30,
) -> CourseMetadata:
    """Course with modules m1 (l1, l2) and m2 (l3, l4) unless given."""
    layout = modules if modules is not None else {"m1": ["l1", "l2"], "m2": ["l3", "l4"]}
    return CourseMetadata.from_outline(
        course_id,
        tuple(
            ModuleOutline(module_id=mid, title=mid.upper(), lesson_ids=tuple(lessons))
            for mid, lessons in layout.items()
        ),
        duration_days=duration_days,
    )


def make_quiz(
    quiz_id: str = "quiz-1",
    *,
    lesson_id: str | None = None,
    passing_score: int = 50,
    time_limit_seconds: int | None = None,
) -> QuizDefinition:
    """Two 10-point questions: q1 answer "B", q2 answer "True"."""
    return QuizDefinition(
        id=quiz_id,
        questions=(
            Question(id="q1", type=QuestionType.MULTIPLE_CHOICE, correct_answer="B", points=10),
            Question(id="q2", type=QuestionType.TRUE_FALSE, correct_answer="True", points=10),
        ),
        passing_score=passing_score,
        time_limit_seconds=time_limit_seconds,
        lesson_id=lesson_id,
    )


def seed_course(course: CourseMetadata | None = None) -> CourseMetadata:
    course = course or make_course()
    course_catalog.add_course(course)  # type: ignore[union-attr]
    return course


def seed_quiz(quiz: QuizDefinition | None = None) -> QuizDefinition:
    quiz = quiz or make_quiz()
    course_catalog.add_quiz(quiz)  # type: ignore[union-attr]
    return quiz


def seed_enrollment(
    learner_id: str = "learner-1",
    course_id: str = "course-1",
    *,
    enrolled_days_ago: int = 0,
    duration_days: int | None = None,
    enrollment_id: str | None = None,
) -> Enrollment:
    enrollment = Enrollment.new(
        learner_id=learner_id,
        course_id=course_id,
        enrollment_date=NOW - datetime.timedelta(days=enrolled_days_ago),
        duration_days=duration_days,
    )
    if enrollment_id is not None:
        enrollment = Enrollment(
            id=enrollment_id,
            learner_id=learner_id,
            course_id=course_id,
            enrollment_date=enrollment.enrollment_date,
            duration_days=duration_days,
        )
    asyncio.run(state_store.add_enrollment(enrollment))
    return enrollment

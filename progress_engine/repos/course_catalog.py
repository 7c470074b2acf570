"""Read access to course shape and quiz definitions.

Both are owned by the content subsystem.  The in-memory catalog is
seeded directly (tests, local dev); the HTTP catalog reads the content
service's JSON API.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from progress_engine.core.errors import DependencyUnavailable, ValidationError
from progress_engine.models.course import CourseMetadata, ModuleOutline
from progress_engine.models.quiz import Question, QuestionType, QuizDefinition

logger = logging.getLogger(__name__)


class CourseCatalog(Protocol):
    async def get_course(self, course_id: str) -> CourseMetadata | None: ...
    async def get_quiz(self, quiz_id: str) -> QuizDefinition | None: ...


class InMemoryCourseCatalog:
    def __init__(self) -> None:
        self._courses: dict[str, CourseMetadata] = {}
        self._quizzes: dict[str, QuizDefinition] = {}

    def add_course(self, course: CourseMetadata) -> None:
        self._courses[course.course_id] = course

    def add_quiz(self, quiz: QuizDefinition) -> None:
        self._quizzes[quiz.id] = quiz

    def clear(self) -> None:
        self._courses.clear()
        self._quizzes.clear()

    async def get_course(self, course_id: str) -> CourseMetadata | None:
        return self._courses.get(course_id)

    async def get_quiz(self, quiz_id: str) -> QuizDefinition | None:
        return self._quizzes.get(quiz_id)


def course_from_json(data: dict[str, Any]) -> CourseMetadata:
    modules = tuple(
        ModuleOutline(
            module_id=str(m["id"]),
            title=m.get("title", ""),
            lesson_ids=tuple(str(lid) for lid in m.get("lesson_ids", ())),
        )
        for m in data.get("modules", ())
    )
    outline_lessons = sum(len(m.lesson_ids) for m in modules)
    return CourseMetadata(
        course_id=str(data["id"]),
        total_lessons=int(data.get("total_lessons", outline_lessons)),
        total_modules=int(data.get("total_modules", len(modules))),
        duration_days=data.get("duration_days"),
        modules=modules,
    )


def quiz_from_json(data: dict[str, Any]) -> QuizDefinition:
    try:
        questions = tuple(
            Question(
                id=str(q["id"]),
                type=QuestionType(q["type"]),
                correct_answer=str(q["correct_answer"]),
                points=int(q.get("points", 1)),
                text=q.get("text", ""),
            )
            for q in data.get("questions", ())
        )
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"malformed quiz definition {data.get('id')!r}: {exc}") from exc
    return QuizDefinition(
        id=str(data["id"]),
        questions=questions,
        passing_score=int(data.get("passing_score", 60)),
        time_limit_seconds=data.get("time_limit_seconds"),
        lesson_id=data.get("lesson_id"),
        title=data.get("title", ""),
    )


class HttpCourseCatalog:
    """Content-service client.

    404 means "no such course/quiz".  Any other failure, transport errors
    included, raises DependencyUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": "progress-engine"},
            transport=transport,
        )

    async def _get_json(self, path: str) -> dict[str, Any] | None:
        try:
            resp = await self._client.get(path)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Content service request failed  path=%s error=%s", path, exc)
            raise DependencyUnavailable("content service", str(exc)) from exc
        return resp.json()

    async def get_course(self, course_id: str) -> CourseMetadata | None:
        data = await self._get_json(f"/v1/courses/{course_id}")
        return course_from_json(data) if data is not None else None

    async def get_quiz(self, quiz_id: str) -> QuizDefinition | None:
        data = await self._get_json(f"/v1/quizzes/{quiz_id}")
        return quiz_from_json(data) if data is not None else None

    async def aclose(self) -> None:
        await self._client.aclose()

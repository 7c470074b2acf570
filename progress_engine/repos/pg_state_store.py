"""PostgreSQL implementation of StateStore.

commit() runs in one transaction.  Versioned records are written with
`UPDATE ... WHERE version = :expected` (or INSERT when the record is
new); zero matched rows, or a unique-key violation from a concurrent
insert, rolls the whole transaction back and raises ConcurrencyConflict.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import replace
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from progress_engine.core.clock import as_utc
from progress_engine.core.errors import ConcurrencyConflict, ValidationError
from progress_engine.db.engine import session_scope
from progress_engine.db.tables import (
    EnrollmentRow,
    GamificationProfileRow,
    PointAwardRow,
    ProcessedEventRow,
    ProgressRecordRow,
    QuizAttemptRow,
    StreakStateRow,
)
from progress_engine.models.enrollment import Enrollment, EnrollmentStatus
from progress_engine.models.gamification import BadgeAward, GamificationProfile, PointAward
from progress_engine.models.processed_event import ProcessedEvent
from progress_engine.models.progress import LessonProgress, ProgressRecord, TrackingStatus
from progress_engine.models.quiz import (
    Answer,
    ChoiceListAnswer,
    QuestionResult,
    QuizAttempt,
    TextAnswer,
)
from progress_engine.models.streak import StreakState
from progress_engine.repos.state_store import Changeset


class PgStateStore:
    """Satisfies the StateStore Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        try:
            async with session_scope(self._factory) as session:
                session.add(EnrollmentRow(**_enrollment_values(enrollment), version=1))
        except IntegrityError:
            raise ValidationError(f"enrollment {enrollment.id!r} already exists") from None

    async def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        async with self._factory() as session:
            row = await session.get(EnrollmentRow, enrollment_id)
            return _row_to_enrollment(row) if row is not None else None

    async def list_enrollments(self, learner_id: str) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.learner_id == learner_id)
            .order_by(EnrollmentRow.enrollment_date, EnrollmentRow.id)
        )
        async with self._factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_enrollment(r) for r in rows]

    async def get_progress(self, enrollment_id: str) -> ProgressRecord | None:
        async with self._factory() as session:
            row = await session.get(ProgressRecordRow, enrollment_id)
            return _row_to_progress(row) if row is not None else None

    async def get_streak(self, learner_id: str) -> StreakState | None:
        async with self._factory() as session:
            row = await session.get(StreakStateRow, learner_id)
            return _row_to_streak(row) if row is not None else None

    async def get_profile(self, learner_id: str) -> GamificationProfile | None:
        async with self._factory() as session:
            row = await session.get(GamificationProfileRow, learner_id)
            return _row_to_profile(row) if row is not None else None

    async def get_attempt(self, attempt_id: str) -> QuizAttempt | None:
        try:
            key = uuid.UUID(attempt_id)
        except ValueError:
            return None
        async with self._factory() as session:
            row = await session.get(QuizAttemptRow, key)
            return _row_to_attempt(row) if row is not None else None

    async def list_attempts(self, enrollment_id: str, quiz_id: str) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.enrollment_id == enrollment_id,
                QuizAttemptRow.quiz_id == quiz_id,
            )
            .order_by(QuizAttemptRow.submitted_at, QuizAttemptRow.attempt_number)
        )
        async with self._factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_attempt(r) for r in rows]

    async def list_point_awards(self, learner_id: str) -> list[PointAward]:
        stmt = (
            select(PointAwardRow)
            .where(PointAwardRow.learner_id == learner_id)
            .order_by(PointAwardRow.awarded_at)
        )
        async with self._factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [
                PointAward(
                    learner_id=r.learner_id,
                    points=r.points,
                    reason=r.reason,
                    source_id=r.source_id,
                    awarded_at=r.awarded_at,
                )
                for r in rows
            ]

    async def get_processed(self, idempotency_key: str) -> ProcessedEvent | None:
        async with self._factory() as session:
            row = await session.get(ProcessedEventRow, idempotency_key)
            if row is None:
                return None
            return ProcessedEvent(
                idempotency_key=row.idempotency_key,
                operation=row.operation,
                scope_id=row.scope_id,
                fingerprint=row.fingerprint,
                processed_at=row.processed_at,
                result_id=row.result_id,
            )

    async def commit(self, changeset: Changeset) -> Changeset:
        committed = Changeset(
            attempts=list(changeset.attempts),
            point_awards=list(changeset.point_awards),
            processed=changeset.processed,
        )
        try:
            async with session_scope(self._factory) as session:
                if changeset.enrollment is not None:
                    e = changeset.enrollment
                    await _cas(
                        session,
                        EnrollmentRow,
                        EnrollmentRow.id,
                        e.id,
                        e.version,
                        _enrollment_values(e),
                    )
                    committed.enrollment = replace(e, version=e.version + 1)
                if changeset.progress is not None:
                    p = changeset.progress
                    await _cas(
                        session,
                        ProgressRecordRow,
                        ProgressRecordRow.enrollment_id,
                        p.enrollment_id,
                        p.version,
                        _progress_values(p),
                    )
                    committed.progress = replace(p, version=p.version + 1)
                if changeset.streak is not None:
                    s = changeset.streak
                    await _cas(
                        session,
                        StreakStateRow,
                        StreakStateRow.learner_id,
                        s.learner_id,
                        s.version,
                        _streak_values(s),
                    )
                    committed.streak = replace(s, version=s.version + 1)
                if changeset.profile is not None:
                    g = changeset.profile
                    await _cas(
                        session,
                        GamificationProfileRow,
                        GamificationProfileRow.learner_id,
                        g.learner_id,
                        g.version,
                        _profile_values(g),
                    )
                    committed.profile = replace(g, version=g.version + 1)
                for attempt in changeset.attempts:
                    session.add(QuizAttemptRow(**_attempt_values(attempt)))
                for award in changeset.point_awards:
                    session.add(
                        PointAwardRow(
                            learner_id=award.learner_id,
                            points=award.points,
                            reason=award.reason,
                            source_id=award.source_id,
                            awarded_at=award.awarded_at,
                        )
                    )
                if changeset.processed is not None:
                    pe = changeset.processed
                    session.add(
                        ProcessedEventRow(
                            idempotency_key=pe.idempotency_key,
                            operation=pe.operation,
                            scope_id=pe.scope_id,
                            fingerprint=pe.fingerprint,
                            result_id=pe.result_id,
                            processed_at=pe.processed_at,
                        )
                    )
                await session.flush()
        except IntegrityError as exc:
            raise ConcurrencyConflict(f"concurrent write rejected: {exc.orig}") from exc
        return committed


async def _cas(
    session: AsyncSession,
    row_cls: Any,
    key_column: Any,
    key: str,
    expected_version: int,
    values: dict[str, Any],
) -> None:
    if expected_version == 0:
        session.add(row_cls(**values, version=1))
        await session.flush()
        return
    stmt = (
        update(row_cls)
        .where(key_column == key, row_cls.version == expected_version)
        .values(**values, version=expected_version + 1)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrencyConflict(
            f"{row_cls.__tablename__} {key!r} changed concurrently (expected version {expected_version})"
        )


# --- domain -> row values ---


# Timestamps inside JSON columns are stored as UTC ISO strings.
def _iso(ts: datetime.datetime | None) -> str | None:
    return as_utc(ts).isoformat() if ts is not None else None


def _parse_ts(raw: str | None) -> datetime.datetime | None:
    return as_utc(datetime.datetime.fromisoformat(raw)) if raw else None


def _enrollment_values(e: Enrollment) -> dict[str, Any]:
    return {
        "id": e.id,
        "learner_id": e.learner_id,
        "course_id": e.course_id,
        "enrollment_date": e.enrollment_date,
        "duration_days": e.duration_days,
        "status": e.status.value,
        "completed_at": e.completed_at,
    }


def _progress_values(p: ProgressRecord) -> dict[str, Any]:
    return {
        "enrollment_id": p.enrollment_id,
        "completed_lesson_ids": sorted(p.completed_lesson_ids),
        "completed_module_ids": sorted(p.completed_module_ids),
        "total_lessons": p.total_lessons,
        "total_modules": p.total_modules,
        "time_spent_seconds": p.time_spent_seconds,
        "last_activity_at": p.last_activity_at,
        "lessons": {
            lid: {
                "progress_pct": lp.progress_pct,
                "time_spent_seconds": lp.time_spent_seconds,
                "started_at": _iso(lp.started_at),
                "completed_at": _iso(lp.completed_at),
                "last_accessed_at": _iso(lp.last_accessed_at),
                "notes": lp.notes,
                "bookmarked": lp.bookmarked,
            }
            for lid, lp in p.lessons.items()
        },
        "actual_progress_pct": p.actual_progress_pct,
        "expected_progress_pct": p.expected_progress_pct,
        "deviation_pct": p.deviation_pct,
        "tracking_status": p.tracking_status.value,
    }


def _streak_values(s: StreakState) -> dict[str, Any]:
    return {
        "learner_id": s.learner_id,
        "current_login_streak": s.current_login_streak,
        "longest_login_streak": s.longest_login_streak,
        "last_login_date": s.last_login_date,
        "current_learning_streak": s.current_learning_streak,
        "longest_learning_streak": s.longest_learning_streak,
        "last_learning_date": s.last_learning_date,
        "time_zone": s.time_zone,
    }


def _profile_values(g: GamificationProfile) -> dict[str, Any]:
    return {
        "learner_id": g.learner_id,
        "total_points": g.total_points,
        "badges": [
            {"badge_id": b.badge_id, "earned_at": _iso(b.earned_at)} for b in g.badges
        ],
        "lessons_completed_count": g.lessons_completed_count,
        "quiz_pass_count": g.quiz_pass_count,
        "completed_courses_count": g.completed_courses_count,
        "passed_quiz_ids": sorted(g.passed_quiz_ids),
        "perfect_quiz_ids": sorted(g.perfect_quiz_ids),
    }


def _answer_to_json(answer: Answer | None) -> dict[str, Any] | None:
    if answer is None:
        return None
    if isinstance(answer, ChoiceListAnswer):
        return {"choices": list(answer.values)}
    return {"text": answer.value}


def _answer_from_json(raw: dict[str, Any] | None) -> Answer | None:
    if raw is None:
        return None
    if "choices" in raw:
        return ChoiceListAnswer(values=tuple(raw["choices"]))
    return TextAnswer(value=raw["text"])


def _attempt_values(a: QuizAttempt) -> dict[str, Any]:
    return {
        "id": a.id,
        "quiz_id": a.quiz_id,
        "enrollment_id": a.enrollment_id,
        "learner_id": a.learner_id,
        "attempt_number": a.attempt_number,
        "started_at": a.started_at,
        "submitted_at": a.submitted_at,
        "time_spent_seconds": a.time_spent_seconds,
        "score": a.score,
        "max_score": a.max_score,
        "percentage": a.percentage,
        "passed": a.passed,
        "grade_letter": a.grade_letter,
        "time_limit_exceeded": a.time_limit_exceeded,
        "answers": {qid: _answer_to_json(ans) for qid, ans in a.answers.items()},
        "results": [
            {
                "question_id": r.question_id,
                "correct": r.correct,
                "points_awarded": r.points_awarded,
                "student_answer": _answer_to_json(r.student_answer),
            }
            for r in a.results
        ],
    }


# --- row -> domain ---


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        learner_id=row.learner_id,
        course_id=row.course_id,
        enrollment_date=row.enrollment_date,
        duration_days=row.duration_days,
        status=EnrollmentStatus(row.status),
        completed_at=row.completed_at,
        version=row.version,
    )


def _row_to_progress(row: ProgressRecordRow) -> ProgressRecord:
    lessons = {
        lid: LessonProgress(
            lesson_id=lid,
            progress_pct=float(data.get("progress_pct", 0.0)),
            time_spent_seconds=int(data.get("time_spent_seconds", 0)),
            started_at=_parse_ts(data.get("started_at")),
            completed_at=_parse_ts(data.get("completed_at")),
            last_accessed_at=_parse_ts(data.get("last_accessed_at")),
            notes=data.get("notes"),
            bookmarked=bool(data.get("bookmarked", False)),
        )
        for lid, data in (row.lessons or {}).items()
    }
    return ProgressRecord(
        enrollment_id=row.enrollment_id,
        completed_lesson_ids=frozenset(row.completed_lesson_ids or ()),
        completed_module_ids=frozenset(row.completed_module_ids or ()),
        total_lessons=row.total_lessons,
        total_modules=row.total_modules,
        time_spent_seconds=row.time_spent_seconds,
        last_activity_at=row.last_activity_at,
        lessons=lessons,
        actual_progress_pct=row.actual_progress_pct,
        expected_progress_pct=row.expected_progress_pct,
        deviation_pct=row.deviation_pct,
        tracking_status=TrackingStatus(row.tracking_status),
        version=row.version,
    )


def _row_to_streak(row: StreakStateRow) -> StreakState:
    return StreakState(
        learner_id=row.learner_id,
        current_login_streak=row.current_login_streak,
        longest_login_streak=row.longest_login_streak,
        last_login_date=row.last_login_date,
        current_learning_streak=row.current_learning_streak,
        longest_learning_streak=row.longest_learning_streak,
        last_learning_date=row.last_learning_date,
        time_zone=row.time_zone,
        version=row.version,
    )


def _row_to_profile(row: GamificationProfileRow) -> GamificationProfile:
    return GamificationProfile(
        learner_id=row.learner_id,
        total_points=row.total_points,
        badges=tuple(
            BadgeAward(badge_id=b["badge_id"], earned_at=_parse_ts(b["earned_at"]))
            for b in (row.badges or ())
        ),
        lessons_completed_count=row.lessons_completed_count,
        quiz_pass_count=row.quiz_pass_count,
        completed_courses_count=row.completed_courses_count,
        passed_quiz_ids=frozenset(row.passed_quiz_ids or ()),
        perfect_quiz_ids=frozenset(row.perfect_quiz_ids or ()),
        version=row.version,
    )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id,
        enrollment_id=row.enrollment_id,
        learner_id=row.learner_id,
        attempt_number=row.attempt_number,
        started_at=row.started_at,
        submitted_at=row.submitted_at,
        time_spent_seconds=row.time_spent_seconds,
        score=row.score,
        max_score=row.max_score,
        percentage=row.percentage,
        passed=row.passed,
        grade_letter=row.grade_letter,
        time_limit_exceeded=row.time_limit_exceeded,
        answers={
            qid: _answer_from_json(raw)
            for qid, raw in (row.answers or {}).items()
            if raw is not None
        },
        results=tuple(
            QuestionResult(
                question_id=r["question_id"],
                correct=r["correct"],
                points_awarded=r["points_awarded"],
                student_answer=_answer_from_json(r.get("student_answer")),
            )
            for r in (row.results or ())
        ),
    )

"""Progress aggregation: merge lesson events into a ProgressRecord.

Everything here is a pure function over frozen records so the
reconciliation layer can compute a full changeset before committing
anything.

Merge rules (safe under duplicates and any arrival order):
  - completed lessons and modules are set unions
  - time spent: increments add; an absolute reading raises its lesson
    to at least that value and the record total by the same amount
  - last_activity_at and each lesson's last_accessed_at only move forward
  - a lesson's progress_pct is the max ever reported; reaching 100
    (or passing a linked quiz) completes the lesson
  - notes/bookmark are last-writer-wins by event time; values from an
    event older than the lesson's last access are dropped
  - actual_progress_pct never decreases, even if the course grows
"""

from __future__ import annotations

import datetime
import logging
import math
from dataclasses import dataclass, replace

from progress_engine.core.clock import as_utc, days_between
from progress_engine.core.errors import ValidationError
from progress_engine.core.metrics import CONFIGURATION_WARNINGS, OUT_OF_ORDER_EVENTS
from progress_engine.core.rounding import clamp_pct, percent
from progress_engine.models.course import CourseMetadata, ModuleOutline
from progress_engine.models.enrollment import Enrollment, EnrollmentStatus
from progress_engine.models.progress import (
    LessonProgress,
    ModuleProgress,
    ModuleStatus,
    ProgressRecord,
    TrackingStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LessonEvent:
    occurred_at: datetime.datetime
    lesson_id: str | None = None
    time_spent_delta_seconds: int = 0
    time_spent_total_seconds: int | None = None
    progress_percentage: float | None = None
    notes: str | None = None
    bookmarked: bool | None = None
    mark_completed: bool = False


@dataclass(frozen=True, slots=True)
class ProgressMetrics:
    actual_pct: int
    expected_pct: int
    deviation_pct: int
    status: TrackingStatus


def validate_event(event: LessonEvent, course: CourseMetadata) -> None:
    if event.time_spent_delta_seconds < 0:
        raise ValidationError("time_spent_delta_seconds must be >= 0")
    if event.time_spent_total_seconds is not None and event.time_spent_total_seconds < 0:
        raise ValidationError("time_spent_total_seconds must be >= 0")
    if event.progress_percentage is not None and not math.isfinite(event.progress_percentage):
        raise ValidationError("progress_percentage must be a finite number")
    lesson_ids = course.lesson_ids
    if event.lesson_id is not None and lesson_ids and event.lesson_id not in lesson_ids:
        raise ValidationError(
            f"lesson {event.lesson_id!r} is not part of course {course.course_id!r}"
        )


def _merge_lesson(lesson: LessonProgress, event: LessonEvent) -> LessonProgress:
    occurred_at = as_utc(event.occurred_at)
    stale = lesson.last_accessed_at is not None and occurred_at < lesson.last_accessed_at

    progress_pct = lesson.progress_pct
    if event.progress_percentage is not None:
        progress_pct = max(progress_pct, clamp_pct(event.progress_percentage))
    if event.mark_completed:
        progress_pct = 100.0

    time_spent = lesson.time_spent_seconds + event.time_spent_delta_seconds
    if event.time_spent_total_seconds is not None:
        time_spent = max(time_spent, event.time_spent_total_seconds)

    started_at = lesson.started_at
    if progress_pct > 0 or time_spent > 0:
        started_at = occurred_at if started_at is None else min(started_at, occurred_at)

    completed_at = lesson.completed_at
    if progress_pct >= 100 and completed_at is None:
        completed_at = occurred_at

    notes, bookmarked = lesson.notes, lesson.bookmarked
    if stale and (event.notes is not None or event.bookmarked is not None):
        OUT_OF_ORDER_EVENTS.labels(kind="lesson_notes").inc()
        logger.info(
            "Ignoring notes/bookmark from out-of-order event  lesson=%s occurred_at=%s last_accessed_at=%s",
            lesson.lesson_id,
            occurred_at.isoformat(),
            lesson.last_accessed_at.isoformat() if lesson.last_accessed_at else None,
        )
    else:
        if event.notes is not None:
            notes = event.notes
        if event.bookmarked is not None:
            bookmarked = event.bookmarked

    last_accessed_at = lesson.last_accessed_at
    if last_accessed_at is None or occurred_at > last_accessed_at:
        last_accessed_at = occurred_at

    return replace(
        lesson,
        progress_pct=progress_pct,
        time_spent_seconds=time_spent,
        started_at=started_at,
        completed_at=completed_at,
        last_accessed_at=last_accessed_at,
        notes=notes,
        bookmarked=bookmarked,
    )


def completed_modules(
    completed_lessons: frozenset[str], modules: tuple[ModuleOutline, ...]
) -> frozenset[str]:
    return frozenset(
        m.module_id
        for m in modules
        if m.lesson_ids and all(lid in completed_lessons for lid in m.lesson_ids)
    )


def merge_lesson_event(
    record: ProgressRecord, event: LessonEvent, course: CourseMetadata
) -> ProgressRecord:
    """Fold one lesson event into the record.  Metrics are not recomputed."""
    validate_event(event, course)
    occurred_at = as_utc(event.occurred_at)

    last_activity_at = record.last_activity_at
    if last_activity_at is None or occurred_at > last_activity_at:
        last_activity_at = occurred_at

    time_spent = record.time_spent_seconds + event.time_spent_delta_seconds
    lessons = record.lessons
    completed_lessons = record.completed_lesson_ids
    if event.lesson_id is not None:
        current = lessons.get(event.lesson_id) or LessonProgress(lesson_id=event.lesson_id)
        merged = _merge_lesson(current, event)
        # The record total grows by what the lesson actually gained.
        time_spent = record.time_spent_seconds + (
            merged.time_spent_seconds - current.time_spent_seconds
        )
        lessons = {**lessons, event.lesson_id: merged}
        if merged.is_completed:
            completed_lessons = completed_lessons | {event.lesson_id}
    elif event.time_spent_total_seconds is not None:
        # Without a lesson the reading covers the whole enrollment.
        time_spent = max(time_spent, event.time_spent_total_seconds)

    return replace(
        record,
        completed_lesson_ids=completed_lessons,
        completed_module_ids=record.completed_module_ids
        | completed_modules(completed_lessons, course.modules),
        total_lessons=course.total_lessons,
        total_modules=course.total_modules,
        time_spent_seconds=time_spent,
        last_activity_at=last_activity_at,
        lessons=lessons,
    )


def resolve_duration_days(
    enrollment: Enrollment, course: CourseMetadata, default_days: int
) -> int:
    if enrollment.duration_days is not None:
        return enrollment.duration_days
    if course.duration_days is not None:
        return course.duration_days
    CONFIGURATION_WARNINGS.labels(reason="missing_duration").inc()
    logger.warning(
        "No planned duration for enrollment=%s course=%s, using default %d days",
        enrollment.id,
        course.course_id,
        default_days,
    )
    return default_days


def compute_metrics(
    *,
    completed_lessons: int,
    total_lessons: int,
    enrollment_date: datetime.datetime,
    duration_days: int,
    now: datetime.datetime,
    tolerance_pct: int = 5,
    floor_actual_pct: int = 0,
) -> ProgressMetrics:
    actual = min(100, percent(completed_lessons, total_lessons))
    actual = max(actual, floor_actual_pct)

    days_elapsed = max(0, days_between(enrollment_date, now))
    if duration_days <= 0:
        expected = 100
    else:
        expected = min(100, percent(days_elapsed, duration_days))

    deviation = actual - expected
    if abs(deviation) <= tolerance_pct:
        status = TrackingStatus.ON_TRACK
    elif deviation < 0:
        status = TrackingStatus.BEHIND
    else:
        status = TrackingStatus.AHEAD
    return ProgressMetrics(
        actual_pct=actual, expected_pct=expected, deviation_pct=deviation, status=status
    )


def refresh_metrics(
    record: ProgressRecord,
    enrollment: Enrollment,
    course: CourseMetadata,
    now: datetime.datetime,
    *,
    default_duration_days: int = 30,
    tolerance_pct: int = 5,
) -> ProgressRecord:
    if course.total_lessons <= 0 and record.completed_lesson_ids:
        CONFIGURATION_WARNINGS.labels(reason="zero_total_lessons").inc()
        logger.warning(
            "Course %s reports zero lessons but enrollment %s has %d completed, "
            "actual progress held at %d%%",
            course.course_id,
            enrollment.id,
            len(record.completed_lesson_ids),
            record.actual_progress_pct,
        )

    metrics = compute_metrics(
        completed_lessons=len(record.completed_lesson_ids),
        total_lessons=course.total_lessons,
        enrollment_date=enrollment.enrollment_date,
        duration_days=resolve_duration_days(enrollment, course, default_duration_days),
        now=now,
        tolerance_pct=tolerance_pct,
        floor_actual_pct=record.actual_progress_pct,
    )
    return replace(
        record,
        actual_progress_pct=metrics.actual_pct,
        expected_progress_pct=metrics.expected_pct,
        deviation_pct=metrics.deviation_pct,
        tracking_status=metrics.status,
    )


def complete_if_finished(
    enrollment: Enrollment, record: ProgressRecord, now: datetime.datetime
) -> Enrollment:
    """ACTIVE -> COMPLETED once actual progress reaches 100.  Idempotent."""
    if enrollment.status is not EnrollmentStatus.ACTIVE:
        return enrollment
    if record.actual_progress_pct < 100:
        return enrollment
    return replace(enrollment, status=EnrollmentStatus.COMPLETED, completed_at=as_utc(now))


def module_breakdown(
    record: ProgressRecord, course: CourseMetadata
) -> list[ModuleProgress]:
    breakdown = []
    for module in course.modules:
        total = len(module.lesson_ids)
        done = sum(1 for lid in module.lesson_ids if lid in record.completed_lesson_ids)
        started = done > 0 or any(
            lid in record.lessons and record.lessons[lid].started_at is not None
            for lid in module.lesson_ids
        )
        if total and done == total:
            status = ModuleStatus.COMPLETED
        elif started:
            status = ModuleStatus.IN_PROGRESS
        else:
            status = ModuleStatus.NOT_STARTED
        breakdown.append(
            ModuleProgress(
                module_id=module.module_id,
                title=module.title,
                total_lessons=total,
                completed_lessons=done,
                progress_pct=percent(done, total),
                status=status,
            )
        )
    return breakdown


def next_module(record: ProgressRecord, course: CourseMetadata) -> ModuleOutline | None:
    for module in course.modules:
        if module.module_id in record.completed_module_ids:
            continue
        if module.lesson_ids and all(
            lid in record.completed_lesson_ids for lid in module.lesson_ids
        ):
            continue
        return module
    return None

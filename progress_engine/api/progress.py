"""Lesson progress ingestion and per-module breakdown.

  POST /v1/enrollments/{enrollment_id}/progress
    -> reconcile (locks, replay, merge, commit, invalidate dashboards)
    -> 200 with the committed ProgressRecord

  GET  /v1/enrollments/{enrollment_id}/modules
  POST /v1/enrollments/{enrollment_id}/status   (pause / resume / cancel)

The optional Idempotency-Key header makes retries safe: a repeated key
with the same body returns the committed record unchanged, a repeated
key with a different body is a 409.
"""

from __future__ import annotations

import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from progress_engine.api.dependencies import EngineDep, IdempotencyKeyDep
from progress_engine.api.schemas import ProgressRecordOut, progress_out

router = APIRouter(prefix="/v1/enrollments", tags=["progress"])


class LessonProgressIn(BaseModel):
    lesson_id: str | None = None
    time_spent_delta_seconds: int = Field(default=0, ge=0)
    # Absolute reading for the lesson; it never lowers time already counted.
    time_spent_total_seconds: int | None = Field(default=None, ge=0)
    progress_percentage: float | None = Field(default=None, allow_inf_nan=False)
    notes: str | None = None
    bookmarked: bool | None = None
    occurred_at: datetime.datetime | None = None


class ModuleProgressOut(BaseModel):
    module_id: str
    title: str
    total_lessons: int
    completed_lessons: int
    progress_pct: int
    status: str  # NOT_STARTED|IN_PROGRESS|COMPLETED


class EnrollmentStatusIn(BaseModel):
    status: str  # ACTIVE|PAUSED|CANCELLED


class EnrollmentOut(BaseModel):
    id: str
    learner_id: str
    course_id: str
    status: str
    enrollment_date: datetime.datetime
    completed_at: datetime.datetime | None


@router.post("/{enrollment_id}/progress", response_model=ProgressRecordOut)
async def submit_lesson_progress(
    enrollment_id: str,
    body: LessonProgressIn,
    engine: EngineDep,
    idempotency_key: IdempotencyKeyDep,
) -> ProgressRecordOut:
    record = await engine.submit_lesson_progress(
        enrollment_id,
        lesson_id=body.lesson_id,
        time_spent_delta_seconds=body.time_spent_delta_seconds,
        progress_percentage=body.progress_percentage,
        notes=body.notes,
        bookmarked=body.bookmarked,
        time_spent_total_seconds=body.time_spent_total_seconds,
        occurred_at=body.occurred_at,
        idempotency_key=idempotency_key,
    )
    return progress_out(record)


@router.get("/{enrollment_id}/modules", response_model=list[ModuleProgressOut])
async def get_module_breakdown(
    enrollment_id: str, engine: EngineDep
) -> list[ModuleProgressOut]:
    modules = await engine.get_module_breakdown(enrollment_id)
    return [
        ModuleProgressOut(
            module_id=m.module_id,
            title=m.title,
            total_lessons=m.total_lessons,
            completed_lessons=m.completed_lessons,
            progress_pct=m.progress_pct,
            status=m.status.value,
        )
        for m in modules
    ]


@router.post("/{enrollment_id}/status", response_model=EnrollmentOut)
async def set_enrollment_status(
    enrollment_id: str, body: EnrollmentStatusIn, engine: EngineDep
) -> EnrollmentOut:
    enrollment = await engine.set_enrollment_status(enrollment_id, body.status.upper())
    return EnrollmentOut(
        id=enrollment.id,
        learner_id=enrollment.learner_id,
        course_id=enrollment.course_id,
        status=enrollment.status.value,
        enrollment_date=enrollment.enrollment_date,
        completed_at=enrollment.completed_at,
    )

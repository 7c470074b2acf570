"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in progress_engine/models/.
PgStateStore converts between rows and domain objects; nested value
objects (per-lesson detail, badges, quiz answers) are stored as JSONB.
Every mutable record carries a version column for compare-and-swap.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from progress_engine.db.engine import Base


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enrollment_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="ACTIVE"
    )  # ACTIVE|COMPLETED|PAUSED|CANCELLED
    completed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class ProgressRecordRow(Base):
    __tablename__ = "progress_records"

    enrollment_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("enrollments.id"), primary_key=True
    )
    completed_lesson_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    completed_module_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    total_lessons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_modules: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_spent_seconds: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_activity_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    lessons: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    actual_progress_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expected_progress_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deviation_pct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tracking_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="ON_TRACK"
    )  # AHEAD|ON_TRACK|BEHIND
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class StreakStateRow(Base):
    __tablename__ = "streak_states"

    learner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_login_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    current_learning_streak: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    longest_learning_streak: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    last_learning_date: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class GamificationProfileRow(Base):
    __tablename__ = "gamification_profiles"

    learner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    badges: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list
    )  # [{"badge_id": ..., "earned_at": ...}]
    lessons_completed_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    quiz_pass_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_courses_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    passed_quiz_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    perfect_quiz_ids: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=[]
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    quiz_id: Mapped[str] = mapped_column(String(64), nullable=False)
    enrollment_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("enrollments.id"), nullable=False
    )
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    started_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    submitted_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    time_spent_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    grade_letter: Mapped[str] = mapped_column(String(1), nullable=False)
    time_limit_exceeded: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    answers: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    results: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    __table_args__ = (UniqueConstraint("enrollment_id", "quiz_id", "attempt_number"),)


class PointAwardRow(Base):
    __tablename__ = "point_awards"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    learner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(64), nullable=False)
    source_id: Mapped[str] = mapped_column(String(128), nullable=False)
    awarded_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )


class ProcessedEventRow(Base):
    __tablename__ = "processed_events"

    idempotency_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    operation: Mapped[str] = mapped_column(String(32), nullable=False)
    scope_id: Mapped[str] = mapped_column(String(64), nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    result_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    processed_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

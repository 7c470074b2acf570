"""create progress, streak and gamification tables

Revision ID: 3b7e2c91d4a0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e2c91d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "enrollments",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("enrollment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_enrollments_learner_id", "enrollments", ["learner_id"])

    op.create_table(
        "progress_records",
        sa.Column(
            "enrollment_id",
            sa.String(length=64),
            sa.ForeignKey("enrollments.id"),
            primary_key=True,
        ),
        sa.Column("completed_lesson_ids", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("completed_module_ids", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("total_lessons", sa.Integer(), nullable=False),
        sa.Column("total_modules", sa.Integer(), nullable=False),
        sa.Column("time_spent_seconds", sa.BigInteger(), nullable=False),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lessons", postgresql.JSONB(), nullable=False),
        sa.Column("actual_progress_pct", sa.Integer(), nullable=False),
        sa.Column("expected_progress_pct", sa.Integer(), nullable=False),
        sa.Column("deviation_pct", sa.Integer(), nullable=False),
        sa.Column("tracking_status", sa.String(length=16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "streak_states",
        sa.Column("learner_id", sa.String(length=64), primary_key=True),
        sa.Column("current_login_streak", sa.Integer(), nullable=False),
        sa.Column("longest_login_streak", sa.Integer(), nullable=False),
        sa.Column("last_login_date", sa.Date(), nullable=True),
        sa.Column("current_learning_streak", sa.Integer(), nullable=False),
        sa.Column("longest_learning_streak", sa.Integer(), nullable=False),
        sa.Column("last_learning_date", sa.Date(), nullable=True),
        sa.Column("time_zone", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "gamification_profiles",
        sa.Column("learner_id", sa.String(length=64), primary_key=True),
        sa.Column("total_points", sa.BigInteger(), nullable=False),
        sa.Column("badges", postgresql.JSONB(), nullable=False),
        sa.Column("lessons_completed_count", sa.Integer(), nullable=False),
        sa.Column("quiz_pass_count", sa.Integer(), nullable=False),
        sa.Column("completed_courses_count", sa.Integer(), nullable=False),
        sa.Column("passed_quiz_ids", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("perfect_quiz_ids", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
    )

    op.create_table(
        "quiz_attempts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("quiz_id", sa.String(length=64), nullable=False),
        sa.Column(
            "enrollment_id",
            sa.String(length=64),
            sa.ForeignKey("enrollments.id"),
            nullable=False,
        ),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("max_score", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("grade_letter", sa.String(length=1), nullable=False),
        sa.Column("time_limit_exceeded", sa.Boolean(), nullable=False),
        sa.Column("answers", postgresql.JSONB(), nullable=False),
        sa.Column("results", postgresql.JSONB(), nullable=False),
        sa.UniqueConstraint("enrollment_id", "quiz_id", "attempt_number"),
    )

    op.create_table(
        "point_awards",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("learner_id", sa.String(length=64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=64), nullable=False),
        sa.Column("source_id", sa.String(length=128), nullable=False),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_point_awards_learner_id", "point_awards", ["learner_id"])

    op.create_table(
        "processed_events",
        sa.Column("idempotency_key", sa.String(length=255), primary_key=True),
        sa.Column("operation", sa.String(length=32), nullable=False),
        sa.Column("scope_id", sa.String(length=64), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("result_id", sa.String(length=64), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("processed_events")
    op.drop_index("ix_point_awards_learner_id", table_name="point_awards")
    op.drop_table("point_awards")
    op.drop_table("quiz_attempts")
    op.drop_table("gamification_profiles")
    op.drop_table("streak_states")
    op.drop_table("progress_records")
    op.drop_index("ix_enrollments_learner_id", table_name="enrollments")
    op.drop_table("enrollments")

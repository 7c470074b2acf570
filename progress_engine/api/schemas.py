"""Response schemas shared by several routers, and their domain converters."""

from __future__ import annotations

import datetime

from pydantic import BaseModel

from progress_engine.models.dashboard import Dashboard, EnrollmentProgress
from progress_engine.models.progress import ProgressRecord
from progress_engine.models.quiz import Answer, ChoiceListAnswer, QuizAttempt
from progress_engine.models.streak import StreakState
from progress_engine.services.gamification import BADGES_BY_ID


class LessonProgressOut(BaseModel):
    lesson_id: str
    progress_pct: float
    time_spent_seconds: int
    started_at: datetime.datetime | None
    completed_at: datetime.datetime | None
    last_accessed_at: datetime.datetime | None
    notes: str | None
    bookmarked: bool


class ProgressRecordOut(BaseModel):
    enrollment_id: str
    completed_lesson_ids: list[str]
    completed_module_ids: list[str]
    total_lessons: int
    total_modules: int
    time_spent_seconds: int
    last_activity_at: datetime.datetime | None
    actual_progress_pct: int
    expected_progress_pct: int
    deviation_pct: int
    tracking_status: str  # AHEAD|ON_TRACK|BEHIND
    lessons: list[LessonProgressOut]
    version: int


class StreakOut(BaseModel):
    learner_id: str
    current_login_streak: int
    longest_login_streak: int
    last_login_date: datetime.date | None
    current_learning_streak: int
    longest_learning_streak: int
    last_learning_date: datetime.date | None
    time_zone: str | None


class QuestionResultOut(BaseModel):
    question_id: str
    correct: bool
    points_awarded: int
    student_answer: str | list[str] | None


class QuizAttemptOut(BaseModel):
    id: str
    quiz_id: str
    enrollment_id: str
    attempt_number: int
    started_at: datetime.datetime
    submitted_at: datetime.datetime
    time_spent_seconds: int
    score: int
    max_score: int
    percentage: int
    passed: bool
    grade_letter: str
    time_limit_exceeded: bool
    results: list[QuestionResultOut]


class BadgeOut(BaseModel):
    badge_id: str
    name: str
    description: str
    category: str
    earned_at: datetime.datetime


class EnrollmentProgressOut(BaseModel):
    enrollment_id: str
    course_id: str
    status: str
    enrollment_date: datetime.datetime
    completed_at: datetime.datetime | None
    next_module_id: str | None
    progress: ProgressRecordOut


class DashboardSummaryOut(BaseModel):
    total_courses: int
    active_courses: int
    completed_courses: int
    average_progress_pct: int
    total_time_spent_seconds: int
    courses_on_track: int
    courses_behind: int
    courses_ahead: int


class DashboardOut(BaseModel):
    learner_id: str
    total_points: int
    level: int
    points_into_level: int
    points_to_next_level: int
    badges: list[BadgeOut]
    streak: StreakOut
    enrollments: list[EnrollmentProgressOut]
    summary: DashboardSummaryOut


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------


def progress_out(record: ProgressRecord) -> ProgressRecordOut:
    return ProgressRecordOut(
        enrollment_id=record.enrollment_id,
        completed_lesson_ids=sorted(record.completed_lesson_ids),
        completed_module_ids=sorted(record.completed_module_ids),
        total_lessons=record.total_lessons,
        total_modules=record.total_modules,
        time_spent_seconds=record.time_spent_seconds,
        last_activity_at=record.last_activity_at,
        actual_progress_pct=record.actual_progress_pct,
        expected_progress_pct=record.expected_progress_pct,
        deviation_pct=record.deviation_pct,
        tracking_status=record.tracking_status.value,
        lessons=[
            LessonProgressOut(
                lesson_id=lp.lesson_id,
                progress_pct=lp.progress_pct,
                time_spent_seconds=lp.time_spent_seconds,
                started_at=lp.started_at,
                completed_at=lp.completed_at,
                last_accessed_at=lp.last_accessed_at,
                notes=lp.notes,
                bookmarked=lp.bookmarked,
            )
            for _, lp in sorted(record.lessons.items())
        ],
        version=record.version,
    )


def streak_out(state: StreakState) -> StreakOut:
    return StreakOut(
        learner_id=state.learner_id,
        current_login_streak=state.current_login_streak,
        longest_login_streak=state.longest_login_streak,
        last_login_date=state.last_login_date,
        current_learning_streak=state.current_learning_streak,
        longest_learning_streak=state.longest_learning_streak,
        last_learning_date=state.last_learning_date,
        time_zone=state.time_zone,
    )


def _answer_out(answer: Answer | None) -> str | list[str] | None:
    if answer is None:
        return None
    if isinstance(answer, ChoiceListAnswer):
        return list(answer.values)
    return answer.value


def attempt_out(attempt: QuizAttempt) -> QuizAttemptOut:
    return QuizAttemptOut(
        id=str(attempt.id),
        quiz_id=attempt.quiz_id,
        enrollment_id=attempt.enrollment_id,
        attempt_number=attempt.attempt_number,
        started_at=attempt.started_at,
        submitted_at=attempt.submitted_at,
        time_spent_seconds=attempt.time_spent_seconds,
        score=attempt.score,
        max_score=attempt.max_score,
        percentage=attempt.percentage,
        passed=attempt.passed,
        grade_letter=attempt.grade_letter,
        time_limit_exceeded=attempt.time_limit_exceeded,
        results=[
            QuestionResultOut(
                question_id=r.question_id,
                correct=r.correct,
                points_awarded=r.points_awarded,
                student_answer=_answer_out(r.student_answer),
            )
            for r in attempt.results
        ],
    )


def _enrollment_progress_out(item: EnrollmentProgress) -> EnrollmentProgressOut:
    return EnrollmentProgressOut(
        enrollment_id=item.enrollment.id,
        course_id=item.enrollment.course_id,
        status=item.enrollment.status.value,
        enrollment_date=item.enrollment.enrollment_date,
        completed_at=item.enrollment.completed_at,
        next_module_id=item.next_module_id,
        progress=progress_out(item.progress),
    )


def dashboard_out(dashboard: Dashboard) -> DashboardOut:
    badges = []
    for award in dashboard.profile.badges:
        rule = BADGES_BY_ID.get(award.badge_id)
        badges.append(
            BadgeOut(
                badge_id=award.badge_id,
                name=rule.name if rule else award.badge_id,
                description=rule.description if rule else "",
                category=rule.category.value if rule else "",
                earned_at=award.earned_at,
            )
        )
    s = dashboard.summary
    return DashboardOut(
        learner_id=dashboard.learner_id,
        total_points=dashboard.profile.total_points,
        level=dashboard.level,
        points_into_level=dashboard.points_into_level,
        points_to_next_level=dashboard.points_to_next_level,
        badges=badges,
        streak=streak_out(dashboard.streak),
        enrollments=[_enrollment_progress_out(i) for i in dashboard.enrollments],
        summary=DashboardSummaryOut(
            total_courses=s.total_courses,
            active_courses=s.active_courses,
            completed_courses=s.completed_courses,
            average_progress_pct=s.average_progress_pct,
            total_time_spent_seconds=s.total_time_spent_seconds,
            courses_on_track=s.courses_on_track,
            courses_behind=s.courses_behind,
            courses_ahead=s.courses_ahead,
        ),
    )

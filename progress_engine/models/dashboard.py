from __future__ import annotations

from dataclasses import dataclass

from progress_engine.models.enrollment import Enrollment
from progress_engine.models.gamification import GamificationProfile
from progress_engine.models.progress import ProgressRecord
from progress_engine.models.streak import StreakState


@dataclass(frozen=True, slots=True)
class EnrollmentProgress:
    enrollment: Enrollment
    progress: ProgressRecord
    next_module_id: str | None = None


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total_courses: int
    active_courses: int
    completed_courses: int
    average_progress_pct: int
    total_time_spent_seconds: int
    courses_on_track: int
    courses_behind: int
    courses_ahead: int


@dataclass(frozen=True, slots=True)
class Dashboard:
    """Read-only snapshot.  Level fields are computed from total points at read time."""

    learner_id: str
    enrollments: tuple[EnrollmentProgress, ...]
    streak: StreakState
    profile: GamificationProfile
    level: int
    points_into_level: int
    points_to_next_level: int
    summary: DashboardSummary

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import Enum


class TrackingStatus(str, Enum):
    AHEAD = "AHEAD"
    ON_TRACK = "ON_TRACK"
    BEHIND = "BEHIND"


class ModuleStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """Per-lesson detail inside a ProgressRecord."""

    lesson_id: str
    progress_pct: float = 0.0  # monotonic max, 0-100
    time_spent_seconds: int = 0
    started_at: datetime.datetime | None = None
    completed_at: datetime.datetime | None = None
    last_accessed_at: datetime.datetime | None = None
    notes: str | None = None
    bookmarked: bool = False

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Merged progress for one enrollment.

    completed_lesson_ids / completed_module_ids only grow,
    time_spent_seconds and actual_progress_pct never decrease, and
    last_activity_at only moves forward.  expected/deviation/status are
    time-dependent and recomputed on every write and read.
    """

    enrollment_id: str
    completed_lesson_ids: frozenset[str] = frozenset()
    completed_module_ids: frozenset[str] = frozenset()
    total_lessons: int = 0
    total_modules: int = 0
    time_spent_seconds: int = 0
    last_activity_at: datetime.datetime | None = None
    lessons: dict[str, LessonProgress] = field(default_factory=dict)
    actual_progress_pct: int = 0
    expected_progress_pct: int = 0
    deviation_pct: int = 0
    tracking_status: TrackingStatus = TrackingStatus.ON_TRACK
    version: int = 0


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    module_id: str
    title: str
    total_lessons: int
    completed_lessons: int
    progress_pct: int
    status: ModuleStatus

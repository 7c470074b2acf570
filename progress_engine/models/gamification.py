from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum


class BadgeCategory(str, Enum):
    COMPLETION = "COMPLETION"
    ACHIEVEMENT = "ACHIEVEMENT"
    PARTICIPATION = "PARTICIPATION"
    STREAK = "STREAK"


@dataclass(frozen=True, slots=True)
class BadgeAward:
    badge_id: str
    earned_at: datetime.datetime


@dataclass(frozen=True, slots=True)
class PointAward:
    """Append-only ledger line.  Every point delta has one."""

    learner_id: str
    points: int
    reason: str  # lesson_completed|quiz_passed|perfect_score|...
    source_id: str
    awarded_at: datetime.datetime


@dataclass(frozen=True, slots=True)
class GamificationProfile:
    """Points, badges and the counters badge rules read.

    total_points only grows and badges are append-only with at most one
    award per badge_id.  Level is derived from total_points on read.
    """

    learner_id: str
    total_points: int = 0
    badges: tuple[BadgeAward, ...] = ()
    lessons_completed_count: int = 0
    quiz_pass_count: int = 0
    completed_courses_count: int = 0
    passed_quiz_ids: frozenset[str] = frozenset()
    perfect_quiz_ids: frozenset[str] = frozenset()
    version: int = 0

    def has_badge(self, badge_id: str) -> bool:
        return any(b.badge_id == badge_id for b in self.badges)

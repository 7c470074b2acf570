"""Points, levels and badges.

Points are strictly additive and every delta leaves a PointAward ledger
line.  Level is a pure function of total points.  Badges come from a
fixed, ordered rule table; after every ledger update the unearned rules
are re-evaluated and satisfied ones are appended exactly once.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from progress_engine.core.config import GamificationConfig
from progress_engine.core.errors import ValidationError
from progress_engine.models.gamification import (
    BadgeAward,
    BadgeCategory,
    GamificationProfile,
    PointAward,
)
from progress_engine.models.streak import StreakKind, StreakState

logger = logging.getLogger(__name__)


def level_for(total_points: int, points_per_level: int = 100) -> int:
    return total_points // points_per_level + 1


def level_progress(total_points: int, points_per_level: int = 100) -> tuple[int, int]:
    """(points earned inside the current level, points still needed for the next)."""
    into = total_points % points_per_level
    return into, points_per_level - into


# ---------------------------------------------------------------------------
# Badge rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BadgeContext:
    total_points: int
    current_learning_streak: int
    longest_learning_streak: int
    current_login_streak: int
    longest_login_streak: int
    completed_courses_count: int
    quiz_pass_count: int
    lessons_completed_count: int

    @staticmethod
    def build(profile: GamificationProfile, streak: StreakState) -> BadgeContext:
        return BadgeContext(
            total_points=profile.total_points,
            current_learning_streak=streak.current_learning_streak,
            longest_learning_streak=streak.longest_learning_streak,
            current_login_streak=streak.current_login_streak,
            longest_login_streak=streak.longest_login_streak,
            completed_courses_count=profile.completed_courses_count,
            quiz_pass_count=profile.quiz_pass_count,
            lessons_completed_count=profile.lessons_completed_count,
        )


@dataclass(frozen=True, slots=True)
class BadgeRule:
    badge_id: str
    name: str
    description: str
    category: BadgeCategory
    predicate: Callable[[BadgeContext], bool]


BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        "first_lesson",
        "First Steps",
        "Complete your first lesson",
        BadgeCategory.COMPLETION,
        lambda c: c.lessons_completed_count >= 1,
    ),
    BadgeRule(
        "first_quiz_pass",
        "Quiz Taker",
        "Pass your first quiz",
        BadgeCategory.ACHIEVEMENT,
        lambda c: c.quiz_pass_count >= 1,
    ),
    BadgeRule(
        "quiz_master",
        "Quiz Master",
        "Pass 10 different quizzes",
        BadgeCategory.ACHIEVEMENT,
        lambda c: c.quiz_pass_count >= 10,
    ),
    BadgeRule(
        "century",
        "Century",
        "Earn 100 points",
        BadgeCategory.ACHIEVEMENT,
        lambda c: c.total_points >= 100,
    ),
    BadgeRule(
        "high_achiever",
        "High Achiever",
        "Earn 1000 points",
        BadgeCategory.ACHIEVEMENT,
        lambda c: c.total_points >= 1000,
    ),
    BadgeRule(
        "on_a_roll",
        "On a Roll",
        "Learn 3 days in a row",
        BadgeCategory.STREAK,
        lambda c: c.longest_learning_streak >= 3,
    ),
    BadgeRule(
        "week_warrior",
        "Week Warrior",
        "Learn 7 days in a row",
        BadgeCategory.STREAK,
        lambda c: c.longest_learning_streak >= 7,
    ),
    BadgeRule(
        "regular_visitor",
        "Regular Visitor",
        "Log in 7 days in a row",
        BadgeCategory.PARTICIPATION,
        lambda c: c.longest_login_streak >= 7,
    ),
    BadgeRule(
        "course_finisher",
        "Course Finisher",
        "Complete a course",
        BadgeCategory.COMPLETION,
        lambda c: c.completed_courses_count >= 1,
    ),
    BadgeRule(
        "dedicated_learner",
        "Dedicated Learner",
        "Complete 5 courses",
        BadgeCategory.COMPLETION,
        lambda c: c.completed_courses_count >= 5,
    ),
)

BADGES_BY_ID: dict[str, BadgeRule] = {rule.badge_id: rule for rule in BADGE_RULES}


def evaluate_badges(
    profile: GamificationProfile,
    context: BadgeContext,
    now: datetime.datetime,
    rules: tuple[BadgeRule, ...] = BADGE_RULES,
) -> tuple[GamificationProfile, tuple[BadgeAward, ...]]:
    earned = {b.badge_id for b in profile.badges}
    new_awards = tuple(
        BadgeAward(badge_id=rule.badge_id, earned_at=now)
        for rule in rules
        if rule.badge_id not in earned and rule.predicate(context)
    )
    if not new_awards:
        return profile, ()
    return replace(profile, badges=profile.badges + new_awards), new_awards


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class GamificationLedger:
    """Accumulates the point and badge deltas of one reconciliation.

    Nothing is persisted here; the caller commits `profile`, `awards` and
    `badges` as part of its changeset.
    """

    def __init__(
        self,
        profile: GamificationProfile,
        config: GamificationConfig,
        now: datetime.datetime,
    ) -> None:
        self.profile = profile
        self.config = config
        self.now = now
        self.awards: list[PointAward] = []
        self.badges: list[BadgeAward] = []
        self._original = profile

    @property
    def changed(self) -> bool:
        return self.profile != self._original

    def award(self, points: int, reason: str, source_id: str) -> None:
        if points <= 0:
            raise ValidationError(f"point awards must be positive (got {points})")
        self.profile = replace(self.profile, total_points=self.profile.total_points + points)
        self.awards.append(
            PointAward(
                learner_id=self.profile.learner_id,
                points=points,
                reason=reason,
                source_id=source_id,
                awarded_at=self.now,
            )
        )

    def _award_configured(self, points: int, reason: str, source_id: str) -> None:
        # A zero entry in the point table switches that award off
        if points > 0:
            self.award(points, reason, source_id)

    def lesson_completed(self, lesson_id: str) -> None:
        self.profile = replace(
            self.profile, lessons_completed_count=self.profile.lessons_completed_count + 1
        )
        self._award_configured(
            self.config.lesson_completed_points, "lesson_completed", lesson_id
        )

    def quiz_graded(self, quiz_id: str, *, passed: bool, percentage: int) -> None:
        """Pass points on the first pass of a quiz, bonus on the first perfect score."""
        if passed and quiz_id not in self.profile.passed_quiz_ids:
            self.profile = replace(
                self.profile,
                quiz_pass_count=self.profile.quiz_pass_count + 1,
                passed_quiz_ids=self.profile.passed_quiz_ids | {quiz_id},
            )
            self._award_configured(self.config.quiz_passed_points, "quiz_passed", quiz_id)
        if percentage >= 100 and quiz_id not in self.profile.perfect_quiz_ids:
            self.profile = replace(
                self.profile, perfect_quiz_ids=self.profile.perfect_quiz_ids | {quiz_id}
            )
            self._award_configured(
                self.config.perfect_score_bonus, "perfect_score", quiz_id
            )

    def streak_milestones(self, kind: StreakKind, milestones: tuple[int, ...]) -> None:
        for days in milestones:
            self._award_configured(
                self.config.streak_milestone_points,
                f"{kind.value.lower()}_streak_milestone",
                f"{kind.value.lower()}:{days}",
            )

    def course_completed(self, course_id: str) -> None:
        self.profile = replace(
            self.profile, completed_courses_count=self.profile.completed_courses_count + 1
        )
        self._award_configured(
            self.config.course_completed_points, "course_completed", course_id
        )

    def settle(self, streak: StreakState) -> GamificationProfile:
        """Re-evaluate badge rules against the final counters and streaks."""
        self.profile, new_badges = evaluate_badges(
            self.profile, BadgeContext.build(self.profile, streak), self.now
        )
        self.badges.extend(new_badges)
        return self.profile

from __future__ import annotations

import datetime

import pytest

from progress_engine.core.config import GamificationConfig
from progress_engine.core.errors import ValidationError
from progress_engine.models.gamification import GamificationProfile
from progress_engine.models.streak import StreakKind, StreakState
from progress_engine.services.gamification import (
    BADGE_RULES,
    BadgeContext,
    GamificationLedger,
    evaluate_badges,
    level_for,
    level_progress,
)

NOW = datetime.datetime(2026, 3, 16, 12, 0, tzinfo=datetime.UTC)
CONFIG = GamificationConfig()


def _ledger(profile: GamificationProfile | None = None) -> GamificationLedger:
    return GamificationLedger(profile or GamificationProfile(learner_id="learner-1"), CONFIG, NOW)


def _streak(**kwargs: int) -> StreakState:
    return StreakState(learner_id="learner-1", **kwargs)


# ---- levels ----


@pytest.mark.parametrize(
    ("points", "level"), [(0, 1), (99, 1), (100, 2), (250, 3), (1000, 11)]
)
def test_level_for(points: int, level: int) -> None:
    assert level_for(points) == level


def test_level_progress() -> None:
    assert level_progress(250) == (50, 50)
    assert level_progress(0, 40) == (0, 40)


# ---- point awards ----


def test_lesson_completion_awards_points_and_ledger_line() -> None:
    ledger = _ledger()
    ledger.lesson_completed("l1")
    assert ledger.profile.total_points == 10
    assert ledger.profile.lessons_completed_count == 1
    (award,) = ledger.awards
    assert (award.points, award.reason, award.source_id) == (10, "lesson_completed", "l1")
    assert award.awarded_at == NOW
    assert ledger.changed is True


def test_quiz_pass_awarded_only_on_first_pass() -> None:
    ledger = _ledger()
    ledger.quiz_graded("quiz-1", passed=True, percentage=80)
    ledger.quiz_graded("quiz-1", passed=True, percentage=90)
    assert ledger.profile.total_points == 15
    assert ledger.profile.quiz_pass_count == 1
    assert ledger.profile.passed_quiz_ids == {"quiz-1"}


def test_perfect_bonus_awarded_once_per_quiz() -> None:
    ledger = _ledger()
    ledger.quiz_graded("quiz-1", passed=True, percentage=100)
    ledger.quiz_graded("quiz-1", passed=True, percentage=100)
    assert [a.reason for a in ledger.awards] == ["quiz_passed", "perfect_score"]
    assert ledger.profile.total_points == 20


def test_failed_quiz_awards_nothing() -> None:
    ledger = _ledger()
    ledger.quiz_graded("quiz-1", passed=False, percentage=40)
    assert ledger.awards == []
    assert ledger.changed is False


def test_streak_milestone_awards_name_kind_and_days() -> None:
    ledger = _ledger()
    ledger.streak_milestones(StreakKind.LEARNING, (3, 7))
    assert [a.source_id for a in ledger.awards] == ["learning:3", "learning:7"]
    assert {a.reason for a in ledger.awards} == {"learning_streak_milestone"}
    assert ledger.profile.total_points == 40


def test_zero_configured_points_switch_award_off() -> None:
    ledger = GamificationLedger(
        GamificationProfile(learner_id="learner-1"),
        GamificationConfig(lesson_completed_points=0),
        NOW,
    )
    ledger.lesson_completed("l1")
    assert ledger.awards == []
    assert ledger.profile.lessons_completed_count == 1


def test_non_positive_award_rejected() -> None:
    with pytest.raises(ValidationError, match="must be positive"):
        _ledger().award(-5, "penalty", "x")


# ---- badges ----


def test_badge_awarded_exactly_once_while_threshold_holds() -> None:
    ledger = _ledger(GamificationProfile(learner_id="learner-1", total_points=95))
    for lesson_id in ("l1", "l2", "l3"):
        ledger.award(10, "lesson_completed", lesson_id)
        profile = ledger.settle(_streak())
    assert profile.total_points == 125
    assert [b.badge_id for b in ledger.badges] == ["century"]
    assert [b.badge_id for b in profile.badges].count("century") == 1


def test_settled_badges_follow_rule_order() -> None:
    ledger = _ledger()
    ledger.lesson_completed("l1")
    ledger.quiz_graded("quiz-1", passed=True, percentage=100)
    ledger.course_completed("course-1")
    profile = ledger.settle(_streak(longest_learning_streak=3, current_learning_streak=3))
    assert [b.badge_id for b in profile.badges] == [
        "first_lesson",
        "first_quiz_pass",
        "on_a_roll",
        "course_finisher",
    ]
    assert [b.badge_id for b in ledger.badges] == [b.badge_id for b in profile.badges]


def test_evaluate_badges_is_idempotent() -> None:
    profile = GamificationProfile(learner_id="learner-1", total_points=150)
    context = BadgeContext.build(profile, _streak())
    once, first = evaluate_badges(profile, context, NOW)
    twice, second = evaluate_badges(once, BadgeContext.build(once, _streak()), NOW)
    assert [b.badge_id for b in first] == ["century"]
    assert second == ()
    assert twice is once


def test_badge_rule_ids_unique() -> None:
    ids = [r.badge_id for r in BADGE_RULES]
    assert len(ids) == len(set(ids))

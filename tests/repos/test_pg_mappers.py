"""Row mapping for PgStateStore, exercised without a database.

Each domain record is written to its row values, loaded into the ORM
row class and read back; the result must equal the original.
Timestamps nested in JSON columns come back as aware UTC datetimes.
"""

from __future__ import annotations

import datetime
import uuid

from progress_engine.db.tables import GamificationProfileRow, ProgressRecordRow, QuizAttemptRow
from progress_engine.models.gamification import BadgeAward, GamificationProfile
from progress_engine.models.progress import LessonProgress, ProgressRecord, TrackingStatus
from progress_engine.models.quiz import ChoiceListAnswer, QuestionResult, QuizAttempt, TextAnswer
from progress_engine.repos.pg_state_store import (
    _attempt_values,
    _iso,
    _parse_ts,
    _profile_values,
    _progress_values,
    _row_to_attempt,
    _row_to_profile,
    _row_to_progress,
)
from tests.conftest import NOW

PLUS_TWO = datetime.timezone(datetime.timedelta(hours=2))


# ---- timestamps ----


def test_iso_normalizes_to_utc() -> None:
    local = datetime.datetime(2026, 3, 16, 14, 0, tzinfo=PLUS_TWO)
    assert _iso(local) == "2026-03-16T12:00:00+00:00"
    assert _iso(None) is None


def test_parse_ts_returns_aware_utc() -> None:
    assert _parse_ts("2026-03-16T14:00:00+02:00") == NOW
    assert _parse_ts("2026-03-16T14:00:00+02:00").tzinfo is datetime.UTC
    # Naive strings written before normalization are read as UTC.
    assert _parse_ts("2026-03-16T12:00:00") == NOW
    assert _parse_ts(None) is None
    assert _parse_ts("") is None


# ---- round trips ----


def test_progress_record_round_trip() -> None:
    record = ProgressRecord(
        enrollment_id="enr-1",
        completed_lesson_ids=frozenset({"l2", "l1"}),
        completed_module_ids=frozenset({"m1"}),
        total_lessons=4,
        total_modules=2,
        time_spent_seconds=420,
        last_activity_at=NOW,
        lessons={
            "l1": LessonProgress(
                lesson_id="l1",
                progress_pct=100.0,
                time_spent_seconds=300,
                started_at=NOW - datetime.timedelta(hours=1),
                completed_at=NOW,
                last_accessed_at=NOW,
                notes="revisit",
                bookmarked=True,
            ),
            "l3": LessonProgress(lesson_id="l3", progress_pct=40.0, time_spent_seconds=120),
        },
        actual_progress_pct=50,
        expected_progress_pct=40,
        deviation_pct=10,
        tracking_status=TrackingStatus.AHEAD,
        version=3,
    )
    values = _progress_values(record)
    assert values["completed_lesson_ids"] == ["l1", "l2"]
    assert values["lessons"]["l1"]["completed_at"] == NOW.isoformat()

    assert _row_to_progress(ProgressRecordRow(**values, version=3)) == record


def test_lesson_times_in_other_zones_read_back_as_utc() -> None:
    started = datetime.datetime(2026, 3, 16, 13, 0, tzinfo=PLUS_TWO)
    record = ProgressRecord(
        enrollment_id="enr-1",
        lessons={"l1": LessonProgress(lesson_id="l1", started_at=started)},
    )
    loaded = _row_to_progress(ProgressRecordRow(**_progress_values(record), version=1))
    lesson = loaded.lessons["l1"]
    assert lesson.started_at == started
    assert lesson.started_at.tzinfo is datetime.UTC
    assert lesson.started_at.hour == 11


def test_profile_round_trip() -> None:
    profile = GamificationProfile(
        learner_id="learner-1",
        total_points=135,
        badges=(
            BadgeAward(badge_id="first_lesson", earned_at=NOW - datetime.timedelta(days=2)),
            BadgeAward(badge_id="century", earned_at=NOW),
        ),
        lessons_completed_count=6,
        quiz_pass_count=2,
        completed_courses_count=1,
        passed_quiz_ids=frozenset({"quiz-2", "quiz-1"}),
        perfect_quiz_ids=frozenset({"quiz-1"}),
        version=5,
    )
    values = _profile_values(profile)
    assert [b["badge_id"] for b in values["badges"]] == ["first_lesson", "century"]
    assert values["passed_quiz_ids"] == ["quiz-1", "quiz-2"]

    assert _row_to_profile(GamificationProfileRow(**values, version=5)) == profile


def test_quiz_attempt_round_trip() -> None:
    attempt = QuizAttempt(
        id=uuid.uuid4(),
        quiz_id="quiz-1",
        enrollment_id="enr-1",
        learner_id="learner-1",
        attempt_number=2,
        started_at=NOW - datetime.timedelta(minutes=5),
        submitted_at=NOW,
        time_spent_seconds=300,
        score=10,
        max_score=20,
        percentage=50,
        passed=True,
        grade_letter="F",
        answers={"q1": TextAnswer("B"), "q2": ChoiceListAnswer(("a", "c"))},
        results=(
            QuestionResult("q1", True, 10, TextAnswer("B")),
            QuestionResult("q2", False, 0, ChoiceListAnswer(("a", "c"))),
            QuestionResult("q3", False, 0, None),
        ),
    )
    values = _attempt_values(attempt)
    assert values["answers"]["q2"] == {"choices": ["a", "c"]}
    assert values["results"][2]["student_answer"] is None

    assert _row_to_attempt(QuizAttemptRow(**values)) == attempt

"""Engine state persistence.

The reconciliation layer reads records, computes new versions of them
without side effects, and hands everything that changed to
StateStore.commit() as one Changeset.  commit() is all-or-nothing and
compare-and-swaps every versioned record: a record whose stored version
no longer matches the version it was read at fails the whole changeset
with ConcurrencyConflict.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Protocol

from progress_engine.core.errors import ConcurrencyConflict, ValidationError
from progress_engine.models.enrollment import Enrollment
from progress_engine.models.gamification import GamificationProfile, PointAward
from progress_engine.models.processed_event import ProcessedEvent
from progress_engine.models.progress import ProgressRecord
from progress_engine.models.quiz import QuizAttempt
from progress_engine.models.streak import StreakState


@dataclass(slots=True)
class Changeset:
    enrollment: Enrollment | None = None
    progress: ProgressRecord | None = None
    streak: StreakState | None = None
    profile: GamificationProfile | None = None
    attempts: list[QuizAttempt] = field(default_factory=list)
    point_awards: list[PointAward] = field(default_factory=list)
    processed: ProcessedEvent | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.enrollment is None
            and self.progress is None
            and self.streak is None
            and self.profile is None
            and not self.attempts
            and not self.point_awards
            and self.processed is None
        )


class StateStore(Protocol):
    async def add_enrollment(self, enrollment: Enrollment) -> None: ...
    async def get_enrollment(self, enrollment_id: str) -> Enrollment | None: ...
    async def list_enrollments(self, learner_id: str) -> list[Enrollment]: ...
    async def get_progress(self, enrollment_id: str) -> ProgressRecord | None: ...
    async def get_streak(self, learner_id: str) -> StreakState | None: ...
    async def get_profile(self, learner_id: str) -> GamificationProfile | None: ...
    async def get_attempt(self, attempt_id: str) -> QuizAttempt | None: ...
    async def list_attempts(self, enrollment_id: str, quiz_id: str) -> list[QuizAttempt]: ...
    async def list_point_awards(self, learner_id: str) -> list[PointAward]: ...
    async def get_processed(self, idempotency_key: str) -> ProcessedEvent | None: ...
    async def commit(self, changeset: Changeset) -> Changeset: ...


def _check_version(kind: str, key: str, stored_version: int, expected: int) -> None:
    if stored_version != expected:
        raise ConcurrencyConflict(
            f"{kind} {key!r} changed concurrently (expected version {expected}, found {stored_version})"
        )


class InMemoryStateStore:
    """Single-process store.  commit() validates every version before writing any."""

    def __init__(self) -> None:
        self._enrollments: dict[str, Enrollment] = {}
        self._progress: dict[str, ProgressRecord] = {}
        self._streaks: dict[str, StreakState] = {}
        self._profiles: dict[str, GamificationProfile] = {}
        self._attempts: dict[str, QuizAttempt] = {}
        self._point_awards: list[PointAward] = []
        self._processed: dict[str, ProcessedEvent] = {}

    def clear(self) -> None:
        self._enrollments.clear()
        self._progress.clear()
        self._streaks.clear()
        self._profiles.clear()
        self._attempts.clear()
        self._point_awards.clear()
        self._processed.clear()

    # --- enrollments (written by the administration subsystem) ---

    async def add_enrollment(self, enrollment: Enrollment) -> None:
        if enrollment.id in self._enrollments:
            raise ValidationError(f"enrollment {enrollment.id!r} already exists")
        self._enrollments[enrollment.id] = replace(enrollment, version=1)

    async def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        return self._enrollments.get(enrollment_id)

    async def list_enrollments(self, learner_id: str) -> list[Enrollment]:
        found = [e for e in self._enrollments.values() if e.learner_id == learner_id]
        return sorted(found, key=lambda e: (e.enrollment_date, e.id))

    # --- derived state ---

    async def get_progress(self, enrollment_id: str) -> ProgressRecord | None:
        return self._progress.get(enrollment_id)

    async def get_streak(self, learner_id: str) -> StreakState | None:
        return self._streaks.get(learner_id)

    async def get_profile(self, learner_id: str) -> GamificationProfile | None:
        return self._profiles.get(learner_id)

    async def get_attempt(self, attempt_id: str) -> QuizAttempt | None:
        return self._attempts.get(attempt_id)

    async def list_attempts(self, enrollment_id: str, quiz_id: str) -> list[QuizAttempt]:
        found = [
            a
            for a in self._attempts.values()
            if a.enrollment_id == enrollment_id and a.quiz_id == quiz_id
        ]
        return sorted(found, key=lambda a: (a.submitted_at, a.attempt_number))

    async def list_point_awards(self, learner_id: str) -> list[PointAward]:
        return [p for p in self._point_awards if p.learner_id == learner_id]

    async def get_processed(self, idempotency_key: str) -> ProcessedEvent | None:
        return self._processed.get(idempotency_key)

    async def commit(self, changeset: Changeset) -> Changeset:
        # Phase 1: validate everything.  No awaits below, so no interleaving.
        if changeset.enrollment is not None:
            stored = self._enrollments.get(changeset.enrollment.id)
            _check_version(
                "enrollment",
                changeset.enrollment.id,
                stored.version if stored else 0,
                changeset.enrollment.version,
            )
        if changeset.progress is not None:
            stored_p = self._progress.get(changeset.progress.enrollment_id)
            _check_version(
                "progress",
                changeset.progress.enrollment_id,
                stored_p.version if stored_p else 0,
                changeset.progress.version,
            )
        if changeset.streak is not None:
            stored_s = self._streaks.get(changeset.streak.learner_id)
            _check_version(
                "streak",
                changeset.streak.learner_id,
                stored_s.version if stored_s else 0,
                changeset.streak.version,
            )
        if changeset.profile is not None:
            stored_g = self._profiles.get(changeset.profile.learner_id)
            _check_version(
                "profile",
                changeset.profile.learner_id,
                stored_g.version if stored_g else 0,
                changeset.profile.version,
            )
        for attempt in changeset.attempts:
            if any(
                a.enrollment_id == attempt.enrollment_id
                and a.quiz_id == attempt.quiz_id
                and a.attempt_number == attempt.attempt_number
                for a in self._attempts.values()
            ):
                raise ConcurrencyConflict(
                    f"attempt {attempt.attempt_number} of quiz {attempt.quiz_id!r} already recorded"
                )
        if changeset.processed is not None and changeset.processed.idempotency_key in self._processed:
            raise ConcurrencyConflict(
                f"idempotency key {changeset.processed.idempotency_key!r} committed concurrently"
            )

        # Phase 2: write everything.
        committed = Changeset(
            attempts=list(changeset.attempts),
            point_awards=list(changeset.point_awards),
            processed=changeset.processed,
        )
        if changeset.enrollment is not None:
            committed.enrollment = replace(
                changeset.enrollment, version=changeset.enrollment.version + 1
            )
            self._enrollments[committed.enrollment.id] = committed.enrollment
        if changeset.progress is not None:
            committed.progress = replace(
                changeset.progress, version=changeset.progress.version + 1
            )
            self._progress[committed.progress.enrollment_id] = committed.progress
        if changeset.streak is not None:
            committed.streak = replace(changeset.streak, version=changeset.streak.version + 1)
            self._streaks[committed.streak.learner_id] = committed.streak
        if changeset.profile is not None:
            committed.profile = replace(
                changeset.profile, version=changeset.profile.version + 1
            )
            self._profiles[committed.profile.learner_id] = committed.profile
        for attempt in changeset.attempts:
            self._attempts[str(attempt.id)] = attempt
        self._point_awards.extend(changeset.point_awards)
        if changeset.processed is not None:
            self._processed[changeset.processed.idempotency_key] = changeset.processed
        return committed

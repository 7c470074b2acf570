"""Reconciliation layer: the single entry point for every state change.

Each write operation runs the same sequence:

  1. take the enrollment lock (enrollment-scoped events), then the
     learner lock; always in that order
  2. replay: a known idempotency key with the same payload returns the
     already-committed result; with a different payload it is rejected
  3. read Enrollment / ProgressRecord / StreakState / GamificationProfile
  4. compute the merged records with the pure aggregator, streak and
     ledger functions
  5. commit everything, idempotency record included, as one changeset
  6. release locks and invalidate the learner's cached dashboards

A ConcurrencyConflict raised by the commit (another instance got there
first) re-runs the whole sequence with exponential backoff until the
retry budget is spent.  LockTimeout is surfaced immediately; it is a
ConcurrencyConflict so callers treat it as retryable.
"""

from __future__ import annotations

import asyncio
import datetime
import hashlib
import json
import logging
import random
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace
from typing import TypeVar

from progress_engine.core.clock import Clock, SystemClock, as_utc, resolve_zone, to_local_date
from progress_engine.core.config import SETTINGS, Settings
from progress_engine.core.errors import (
    ConcurrencyConflict,
    DependencyUnavailable,
    IdempotencyConflict,
    LockTimeout,
    UnknownEnrollmentError,
    UnknownQuizError,
    ValidationError,
)
from progress_engine.core.metrics import (
    ACTIVITY_EVENTS,
    BADGES_AWARDED,
    CONCURRENCY_CONFLICTS,
    CONFIGURATION_WARNINGS,
    COURSES_COMPLETED,
    DUPLICATE_EVENTS,
    FUTURE_TIMESTAMPS_CLAMPED,
    POINTS_AWARDED,
    RECONCILE_DURATION,
)
from progress_engine.core.rounding import round_half_up
from progress_engine.db.engine import async_session_factory
from progress_engine.models.course import CourseMetadata
from progress_engine.models.dashboard import Dashboard, DashboardSummary, EnrollmentProgress
from progress_engine.models.enrollment import Enrollment, EnrollmentStatus
from progress_engine.models.gamification import GamificationProfile, PointAward
from progress_engine.models.processed_event import ProcessedEvent
from progress_engine.models.progress import ModuleProgress, ProgressRecord, TrackingStatus
from progress_engine.models.quiz import (
    Answer,
    ChoiceListAnswer,
    GradedQuiz,
    QuizAttempt,
    QuizSubmission,
)
from progress_engine.models.streak import StreakKind, StreakState
from progress_engine.repos.course_catalog import (
    CourseCatalog,
    HttpCourseCatalog,
    InMemoryCourseCatalog,
)
from progress_engine.repos.pg_state_store import PgStateStore
from progress_engine.repos.state_store import Changeset, InMemoryStateStore, StateStore
from progress_engine.services import grading, progress_aggregator, streaks
from progress_engine.services.cache import CacheService, cache_service, invalidate_dashboards
from progress_engine.services.gamification import GamificationLedger, level_for, level_progress
from progress_engine.services.locks import (
    LockManager,
    enrollment_lock_key,
    learner_lock_key,
    lock_manager,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

LESSON_PROGRESS = "lesson_progress"
QUIZ_ATTEMPT = "quiz_attempt"
ACTIVITY = "activity"
ENROLLMENT_STATUS = "enrollment_status"


def fingerprint(payload: Mapping[str, object]) -> str:
    """Stable hash of a request payload, used to detect idempotency key reuse."""
    canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _answer_payload(answer: Answer) -> object:
    if isinstance(answer, ChoiceListAnswer):
        return {"choices": list(answer.values)}
    return {"text": answer.value}


def parse_streak_kind(kind: StreakKind | str) -> StreakKind:
    if isinstance(kind, StreakKind):
        return kind
    try:
        return StreakKind(str(kind).upper())
    except ValueError:
        raise ValidationError(f"activity kind must be LOGIN|LEARNING (got {kind!r})") from None


def not_after(value: T, limit: T, operation: str) -> T:
    """Pull a client-supplied time or date back to the server's current one."""
    if value > limit:
        FUTURE_TIMESTAMPS_CLAMPED.labels(operation=operation).inc()
        logger.info(
            "Clamping future %s timestamp %s to %s", operation, value.isoformat(), limit.isoformat()
        )
        return limit
    return value


class ProgressEngine:
    def __init__(
        self,
        store: StateStore,
        catalog: CourseCatalog,
        locks: LockManager,
        cache: CacheService,
        *,
        clock: Clock | None = None,
        settings: Settings = SETTINGS,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.locks = locks
        self.cache = cache
        self.clock = clock or SystemClock()
        self.settings = settings

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def submit_lesson_progress(
        self,
        enrollment_id: str,
        lesson_id: str | None = None,
        time_spent_delta_seconds: int = 0,
        progress_percentage: float | None = None,
        notes: str | None = None,
        bookmarked: bool | None = None,
        *,
        time_spent_total_seconds: int | None = None,
        occurred_at: datetime.datetime | None = None,
        idempotency_key: str | None = None,
    ) -> ProgressRecord:
        fp = fingerprint(
            {
                "enrollment_id": enrollment_id,
                "lesson_id": lesson_id,
                "time_spent_delta_seconds": time_spent_delta_seconds,
                "time_spent_total_seconds": time_spent_total_seconds,
                "progress_percentage": progress_percentage,
                "notes": notes,
                "bookmarked": bookmarked,
                "occurred_at": occurred_at,
            }
        )
        learner_id = (await self._require_enrollment(enrollment_id)).learner_id

        async def attempt() -> ProgressRecord:
            async with self._locked(
                enrollment_lock_key(enrollment_id), learner_lock_key(learner_id)
            ):
                enrollment = await self._require_enrollment(enrollment_id)
                if idempotency_key and await self._replay(
                    idempotency_key, LESSON_PROGRESS, enrollment_id, fp
                ):
                    return await self._progress_or_empty(enrollment_id)

                now = self.clock.now()
                course = await self._course_for(enrollment)
                event = progress_aggregator.LessonEvent(
                    occurred_at=not_after(as_utc(occurred_at or now), now, LESSON_PROGRESS),
                    lesson_id=lesson_id,
                    time_spent_delta_seconds=time_spent_delta_seconds,
                    time_spent_total_seconds=time_spent_total_seconds,
                    progress_percentage=progress_percentage,
                    notes=notes,
                    bookmarked=bookmarked,
                )
                changes, ledger = await self._apply_learning(enrollment, course, event, now)
                changes.processed = self._processed_record(
                    idempotency_key, LESSON_PROGRESS, enrollment_id, fp, now
                )
                committed = await self._commit(changes, ledger, LESSON_PROGRESS, learner_id)
                return committed.progress or changes.progress

        return await self._reconcile(
            LESSON_PROGRESS, attempt, enrollment_id=enrollment_id, learner_id=learner_id
        )

    async def submit_quiz_attempt(
        self,
        enrollment_id: str,
        quiz_id: str,
        answers: Mapping[str, Answer],
        time_spent_seconds: int = 0,
        *,
        started_at: datetime.datetime | None = None,
        idempotency_key: str | None = None,
    ) -> QuizAttempt:
        fp = fingerprint(
            {
                "enrollment_id": enrollment_id,
                "quiz_id": quiz_id,
                "answers": {qid: _answer_payload(a) for qid, a in answers.items()},
                "time_spent_seconds": time_spent_seconds,
                "started_at": started_at,
            }
        )
        learner_id = (await self._require_enrollment(enrollment_id)).learner_id

        async def attempt() -> QuizAttempt:
            async with self._locked(
                enrollment_lock_key(enrollment_id), learner_lock_key(learner_id)
            ):
                enrollment = await self._require_enrollment(enrollment_id)
                if idempotency_key:
                    processed = await self._replay(
                        idempotency_key, QUIZ_ATTEMPT, enrollment_id, fp
                    )
                    if processed is not None and processed.result_id is not None:
                        stored = await self.store.get_attempt(processed.result_id)
                        if stored is not None:
                            return stored

                quiz = await self.catalog.get_quiz(quiz_id)
                if quiz is None:
                    raise UnknownQuizError(quiz_id)
                submission = QuizSubmission(
                    answers=dict(answers), time_spent_seconds=time_spent_seconds
                )
                graded = grading.grade_quiz(quiz, submission)

                now = self.clock.now()
                course = await self._course_for(enrollment)
                previous = await self.store.list_attempts(enrollment_id, quiz_id)
                quiz_attempt = QuizAttempt.new(
                    quiz_id=quiz_id,
                    enrollment_id=enrollment_id,
                    learner_id=learner_id,
                    attempt_number=len(previous) + 1,
                    submission=submission,
                    graded=graded,
                    started_at=as_utc(
                        started_at or now - datetime.timedelta(seconds=time_spent_seconds)
                    ),
                    submitted_at=now,
                )

                linked_lesson = self._linked_lesson(quiz.lesson_id, quiz_id, course)
                event = progress_aggregator.LessonEvent(
                    occurred_at=now,
                    lesson_id=linked_lesson if graded.passed else None,
                    mark_completed=graded.passed and linked_lesson is not None,
                )
                changes, ledger = await self._apply_learning(
                    enrollment, course, event, now, quiz=(quiz_id, graded)
                )
                changes.attempts.append(quiz_attempt)
                changes.processed = self._processed_record(
                    idempotency_key,
                    QUIZ_ATTEMPT,
                    enrollment_id,
                    fp,
                    now,
                    result_id=str(quiz_attempt.id),
                )
                await self._commit(changes, ledger, QUIZ_ATTEMPT, learner_id)
                logger.info(
                    "Quiz %s attempt %d graded  enrollment=%s score=%d/%d (%d%%) passed=%s",
                    quiz_id,
                    quiz_attempt.attempt_number,
                    enrollment_id,
                    graded.score,
                    graded.max_score,
                    graded.percentage,
                    graded.passed,
                )
                return quiz_attempt

        return await self._reconcile(
            QUIZ_ATTEMPT, attempt, enrollment_id=enrollment_id, learner_id=learner_id
        )

    async def record_activity(
        self,
        learner_id: str,
        kind: StreakKind | str,
        event_date: datetime.date | None = None,
        *,
        occurred_at: datetime.datetime | None = None,
        time_zone: str | None = None,
        idempotency_key: str | None = None,
    ) -> StreakState:
        streak_kind = parse_streak_kind(kind)
        if time_zone:
            resolve_zone(time_zone)
        fp = fingerprint(
            {
                "learner_id": learner_id,
                "kind": streak_kind.value,
                "event_date": event_date,
                "occurred_at": occurred_at,
                "time_zone": time_zone,
            }
        )

        async def attempt() -> StreakState:
            async with self._locked(learner_lock_key(learner_id)):
                if idempotency_key and await self._replay(
                    idempotency_key, ACTIVITY, learner_id, fp
                ):
                    return await self._streak_or_empty(learner_id)

                now = self.clock.now()
                streak = await self._streak_or_empty(learner_id)
                zone_changed = bool(time_zone) and time_zone != streak.time_zone
                if zone_changed:
                    streak = replace(streak, time_zone=time_zone)
                today = to_local_date(now, streak.time_zone)
                day = not_after(
                    event_date or to_local_date(occurred_at or now, streak.time_zone),
                    today,
                    ACTIVITY,
                )
                update = streaks.apply_activity(
                    streak, streak_kind, day, self.settings.gamification.streak_milestones
                )

                ledger = GamificationLedger(
                    await self._profile_or_empty(learner_id),
                    self.settings.gamification,
                    now,
                )
                ledger.streak_milestones(streak_kind, update.milestones_reached)
                profile = ledger.settle(update.state)

                changes = Changeset(
                    streak=update.state if update.changed or zone_changed else None,
                    profile=profile if ledger.changed else None,
                    point_awards=list(ledger.awards),
                    processed=self._processed_record(
                        idempotency_key, ACTIVITY, learner_id, fp, now
                    ),
                )
                if changes.is_empty:
                    ACTIVITY_EVENTS.labels(operation=ACTIVITY, outcome="unchanged").inc()
                    return update.state
                committed = await self._commit(changes, ledger, ACTIVITY, learner_id)
                return committed.streak or update.state

        return await self._reconcile(ACTIVITY, attempt, learner_id=learner_id)

    async def set_enrollment_status(
        self, enrollment_id: str, status: EnrollmentStatus | str
    ) -> Enrollment:
        """Administrative pause/resume/cancel, serialized with progress writes."""
        try:
            target = EnrollmentStatus(status)
        except ValueError:
            raise ValidationError(f"unknown enrollment status {status!r}") from None
        if target is EnrollmentStatus.COMPLETED:
            raise ValidationError("enrollments complete only through progress")
        learner_id = (await self._require_enrollment(enrollment_id)).learner_id

        async def attempt() -> Enrollment:
            async with self._locked(
                enrollment_lock_key(enrollment_id), learner_lock_key(learner_id)
            ):
                enrollment = await self._require_enrollment(enrollment_id)
                if enrollment.status is target:
                    return enrollment
                if enrollment.status is EnrollmentStatus.COMPLETED:
                    raise ValidationError(f"enrollment {enrollment_id!r} is already completed")
                committed = await self.store.commit(
                    Changeset(enrollment=replace(enrollment, status=target))
                )
                ACTIVITY_EVENTS.labels(operation=ENROLLMENT_STATUS, outcome="committed").inc()
                await invalidate_dashboards(self.cache, learner_id)
                return committed.enrollment or enrollment

        return await self._reconcile(
            ENROLLMENT_STATUS, attempt, enrollment_id=enrollment_id, learner_id=learner_id
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_enrollment(self, enrollment_id: str) -> Enrollment:
        return await self._require_enrollment(enrollment_id)

    async def get_dashboard(
        self, learner_id: str | None = None, enrollment_id: str | None = None
    ) -> Dashboard:
        if enrollment_id is not None:
            enrollment = await self._require_enrollment(enrollment_id)
            if learner_id is not None and learner_id != enrollment.learner_id:
                raise ValidationError(
                    f"enrollment {enrollment_id!r} does not belong to learner {learner_id!r}"
                )
            learner_id = enrollment.learner_id
            enrollments = [enrollment]
        elif learner_id is not None:
            enrollments = await self.store.list_enrollments(learner_id)
        else:
            raise ValidationError("learner_id or enrollment_id is required")

        now = self.clock.now()
        items = []
        for enrollment in enrollments:
            course = await self._course_for(enrollment)
            record = await self.store.get_progress(enrollment.id) or ProgressRecord(
                enrollment_id=enrollment.id,
                total_lessons=course.total_lessons,
                total_modules=course.total_modules,
            )
            record = progress_aggregator.refresh_metrics(
                record,
                enrollment,
                course,
                now,
                default_duration_days=self.settings.default_duration_days,
                tolerance_pct=self.settings.tracking_tolerance_pct,
            )
            upcoming = progress_aggregator.next_module(record, course)
            items.append(
                EnrollmentProgress(
                    enrollment=enrollment,
                    progress=record,
                    next_module_id=upcoming.module_id if upcoming else None,
                )
            )

        profile = await self._profile_or_empty(learner_id)
        per_level = self.settings.gamification.points_per_level
        into, remaining = level_progress(profile.total_points, per_level)
        return Dashboard(
            learner_id=learner_id,
            enrollments=tuple(items),
            streak=await self._streak_or_empty(learner_id),
            profile=profile,
            level=level_for(profile.total_points, per_level),
            points_into_level=into,
            points_to_next_level=remaining,
            summary=summarize(items),
        )

    async def list_quiz_attempts(self, enrollment_id: str, quiz_id: str) -> list[QuizAttempt]:
        await self._require_enrollment(enrollment_id)
        return await self.store.list_attempts(enrollment_id, quiz_id)

    async def best_quiz_attempt(self, enrollment_id: str, quiz_id: str) -> QuizAttempt | None:
        return grading.best_attempt(await self.list_quiz_attempts(enrollment_id, quiz_id))

    async def get_module_breakdown(self, enrollment_id: str) -> list[ModuleProgress]:
        enrollment = await self._require_enrollment(enrollment_id)
        course = await self._course_for(enrollment)
        record = await self._progress_or_empty(enrollment_id)
        return progress_aggregator.module_breakdown(record, course)

    async def list_point_awards(self, learner_id: str) -> list[PointAward]:
        return await self.store.list_point_awards(learner_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _reconcile(
        self, operation: str, attempt: Callable[[], Awaitable[T]], **context: str
    ) -> T:
        log_extra = {"operation": operation, **context}
        start = time.monotonic()
        retries = 0
        try:
            while True:
                try:
                    return await attempt()
                except LockTimeout:
                    CONCURRENCY_CONFLICTS.labels(operation=operation).inc()
                    ACTIVITY_EVENTS.labels(operation=operation, outcome="failed").inc()
                    logger.warning("Lock timeout during %s", operation, extra=log_extra)
                    raise
                except ConcurrencyConflict as exc:
                    CONCURRENCY_CONFLICTS.labels(operation=operation).inc()
                    if retries >= self.settings.reconcile_max_retries:
                        ACTIVITY_EVENTS.labels(operation=operation, outcome="failed").inc()
                        logger.warning(
                            "Giving up on %s after %d retries: %s",
                            operation,
                            retries,
                            exc,
                            extra=log_extra,
                        )
                        raise
                    delay = self._backoff(retries)
                    retries += 1
                    logger.info(
                        "Retrying %s in %.3fs (retry %d): %s",
                        operation,
                        delay,
                        retries,
                        exc,
                        extra=log_extra,
                    )
                    await asyncio.sleep(delay)
                except ValidationError:
                    ACTIVITY_EVENTS.labels(operation=operation, outcome="rejected").inc()
                    raise
                except DependencyUnavailable:
                    ACTIVITY_EVENTS.labels(operation=operation, outcome="failed").inc()
                    raise
        finally:
            RECONCILE_DURATION.labels(operation=operation).observe(time.monotonic() - start)

    def _backoff(self, retry: int) -> float:
        base = self.settings.reconcile_backoff_base_ms / 1000
        return base * (2**retry) + random.uniform(0, base)

    @asynccontextmanager
    async def _locked(self, *keys: str) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for key in keys:
                await stack.enter_async_context(
                    self.locks.hold(key, self.settings.lock_timeout_seconds)
                )
            yield

    async def _replay(
        self, idempotency_key: str, operation: str, scope_id: str, fp: str
    ) -> ProcessedEvent | None:
        processed = await self.store.get_processed(idempotency_key)
        if processed is None:
            return None
        if (processed.operation, processed.scope_id, processed.fingerprint) != (
            operation,
            scope_id,
            fp,
        ):
            raise IdempotencyConflict(idempotency_key)
        DUPLICATE_EVENTS.labels(operation=operation).inc()
        ACTIVITY_EVENTS.labels(operation=operation, outcome="replayed").inc()
        logger.info(
            "Duplicate %s for idempotency key %s, returning committed result",
            operation,
            idempotency_key,
            extra={"operation": operation, "idempotency_key": idempotency_key},
        )
        return processed

    @staticmethod
    def _processed_record(
        idempotency_key: str | None,
        operation: str,
        scope_id: str,
        fp: str,
        now: datetime.datetime,
        *,
        result_id: str | None = None,
    ) -> ProcessedEvent | None:
        if not idempotency_key:
            return None
        return ProcessedEvent(
            idempotency_key=idempotency_key,
            operation=operation,
            scope_id=scope_id,
            fingerprint=fp,
            processed_at=now,
            result_id=result_id,
        )

    async def _require_enrollment(self, enrollment_id: str) -> Enrollment:
        enrollment = await self.store.get_enrollment(enrollment_id)
        if enrollment is None:
            raise UnknownEnrollmentError(enrollment_id)
        return enrollment

    async def _course_for(self, enrollment: Enrollment) -> CourseMetadata:
        course = await self.catalog.get_course(enrollment.course_id)
        if course is None:
            CONFIGURATION_WARNINGS.labels(reason="unknown_course").inc()
            logger.warning(
                "Course %s not found in catalog, treating it as empty  enrollment=%s",
                enrollment.course_id,
                enrollment.id,
            )
            return CourseMetadata(course_id=enrollment.course_id)
        return course

    def _linked_lesson(
        self, lesson_id: str | None, quiz_id: str, course: CourseMetadata
    ) -> str | None:
        if lesson_id is None:
            return None
        lesson_ids = course.lesson_ids
        if lesson_ids and lesson_id not in lesson_ids:
            CONFIGURATION_WARNINGS.labels(reason="unknown_quiz_lesson").inc()
            logger.warning(
                "Quiz %s links lesson %s which is not in course %s, ignoring the link",
                quiz_id,
                lesson_id,
                course.course_id,
            )
            return None
        return lesson_id

    async def _progress_or_empty(self, enrollment_id: str) -> ProgressRecord:
        return await self.store.get_progress(enrollment_id) or ProgressRecord(
            enrollment_id=enrollment_id
        )

    async def _streak_or_empty(self, learner_id: str) -> StreakState:
        return await self.store.get_streak(learner_id) or StreakState(learner_id=learner_id)

    async def _profile_or_empty(self, learner_id: str) -> GamificationProfile:
        return await self.store.get_profile(learner_id) or GamificationProfile(
            learner_id=learner_id
        )

    async def _apply_learning(
        self,
        enrollment: Enrollment,
        course: CourseMetadata,
        event: progress_aggregator.LessonEvent,
        now: datetime.datetime,
        *,
        quiz: tuple[str, GradedQuiz] | None = None,
    ) -> tuple[Changeset, GamificationLedger]:
        """Merge one learning event into progress, streak and ledger.  No writes."""
        record = await self._progress_or_empty(enrollment.id)
        streak = await self._streak_or_empty(enrollment.learner_id)
        profile = await self._profile_or_empty(enrollment.learner_id)

        merged = progress_aggregator.merge_lesson_event(record, event, course)
        merged = progress_aggregator.refresh_metrics(
            merged,
            enrollment,
            course,
            now,
            default_duration_days=self.settings.default_duration_days,
            tolerance_pct=self.settings.tracking_tolerance_pct,
        )
        finished = progress_aggregator.complete_if_finished(enrollment, merged, now)

        streak_update = streaks.apply_activity(
            streak,
            StreakKind.LEARNING,
            to_local_date(event.occurred_at, streak.time_zone),
            self.settings.gamification.streak_milestones,
        )

        ledger = GamificationLedger(profile, self.settings.gamification, now)
        for lesson_id in sorted(merged.completed_lesson_ids - record.completed_lesson_ids):
            ledger.lesson_completed(lesson_id)
        if quiz is not None:
            quiz_id, graded = quiz
            ledger.quiz_graded(quiz_id, passed=graded.passed, percentage=graded.percentage)
        if finished is not enrollment:
            ledger.course_completed(enrollment.course_id)
        ledger.streak_milestones(StreakKind.LEARNING, streak_update.milestones_reached)
        profile = ledger.settle(streak_update.state)

        changes = Changeset(
            enrollment=finished if finished is not enrollment else None,
            progress=merged,
            streak=streak_update.state if streak_update.changed else None,
            profile=profile if ledger.changed else None,
            point_awards=list(ledger.awards),
        )
        return changes, ledger

    async def _commit(
        self,
        changes: Changeset,
        ledger: GamificationLedger,
        operation: str,
        learner_id: str,
    ) -> Changeset:
        committed = await self.store.commit(changes)

        for award in committed.point_awards:
            POINTS_AWARDED.labels(reason=award.reason).inc(award.points)
        for badge in ledger.badges:
            BADGES_AWARDED.labels(badge_id=badge.badge_id).inc()
            logger.info("Badge %s awarded  learner=%s", badge.badge_id, learner_id)
        if (
            committed.enrollment is not None
            and committed.enrollment.status is EnrollmentStatus.COMPLETED
        ):
            COURSES_COMPLETED.inc()
            logger.info(
                "Enrollment %s completed  learner=%s course=%s",
                committed.enrollment.id,
                learner_id,
                committed.enrollment.course_id,
            )
        ACTIVITY_EVENTS.labels(operation=operation, outcome="committed").inc()

        await invalidate_dashboards(self.cache, learner_id)
        return committed


def summarize(items: list[EnrollmentProgress]) -> DashboardSummary:
    statuses = [i.enrollment.status for i in items]
    tracking = [i.progress.tracking_status for i in items]
    average = (
        round_half_up(sum(i.progress.actual_progress_pct for i in items) / len(items))
        if items
        else 0
    )
    return DashboardSummary(
        total_courses=len(items),
        active_courses=statuses.count(EnrollmentStatus.ACTIVE),
        completed_courses=statuses.count(EnrollmentStatus.COMPLETED),
        average_progress_pct=average,
        total_time_spent_seconds=sum(i.progress.time_spent_seconds for i in items),
        courses_on_track=tracking.count(TrackingStatus.ON_TRACK),
        courses_behind=tracking.count(TrackingStatus.BEHIND),
        courses_ahead=tracking.count(TrackingStatus.AHEAD),
    )


# ---------------------------------------------------------------------------
# Module-level singletons
# ---------------------------------------------------------------------------

if async_session_factory is not None:
    state_store: StateStore = PgStateStore(async_session_factory)
else:
    state_store = InMemoryStateStore()

if SETTINGS.content_service_url:
    course_catalog: CourseCatalog = HttpCourseCatalog(SETTINGS.content_service_url)
else:
    course_catalog = InMemoryCourseCatalog()

reconciler = ProgressEngine(state_store, course_catalog, lock_manager, cache_service)

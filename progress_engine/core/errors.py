"""Engine error hierarchy.

ValidationError and its subclasses are caller mistakes and are never
retried.  ConcurrencyConflict is transient: the reconciliation layer
retries it with backoff and only surfaces it once the retry budget is
spent.  Out-of-order events and configuration problems are not errors;
they are logged and counted where they are detected.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(EngineError, ValueError):
    """Malformed input: bad values, answers for questions that do not exist."""


class UnknownEnrollmentError(ValidationError):
    def __init__(self, enrollment_id: str) -> None:
        super().__init__(f"unknown enrollment {enrollment_id!r}")
        self.enrollment_id = enrollment_id


class UnknownQuizError(ValidationError):
    def __init__(self, quiz_id: str) -> None:
        super().__init__(f"unknown quiz {quiz_id!r}")
        self.quiz_id = quiz_id


class IdempotencyConflict(ValidationError):
    """Idempotency key reused with a different request payload."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            f"idempotency key {idempotency_key!r} reused with a different request payload"
        )
        self.idempotency_key = idempotency_key


class ConcurrencyConflict(EngineError):
    """A record changed between read and commit.  Safe to retry."""

    retryable = True


class LockTimeout(ConcurrencyConflict):
    """A per-enrollment or per-learner lock was not acquired in time."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"timed out after {timeout:.2f}s waiting for lock {key!r}")
        self.key = key
        self.timeout = timeout


class DependencyUnavailable(EngineError):
    """An upstream service (the content service) failed or could not be reached."""

    retryable = True

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(f"{service} unavailable: {detail}")
        self.service = service

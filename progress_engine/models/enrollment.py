from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from uuid import uuid4


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """A learner's registration in a course.

    Created and paused/cancelled by the administration subsystem.  The
    engine only ever moves ACTIVE -> COMPLETED, and only once.
    """

    id: str
    learner_id: str
    course_id: str
    enrollment_date: datetime.datetime
    duration_days: int | None = None  # None: fall back to the course / default
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    completed_at: datetime.datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status is EnrollmentStatus.ACTIVE

    @staticmethod
    def new(
        *,
        learner_id: str,
        course_id: str,
        enrollment_date: datetime.datetime,
        duration_days: int | None = None,
    ) -> Enrollment:
        return Enrollment(
            id=str(uuid4()),
            learner_id=learner_id,
            course_id=course_id,
            enrollment_date=enrollment_date,
            duration_days=duration_days,
        )

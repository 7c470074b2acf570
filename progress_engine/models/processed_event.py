from __future__ import annotations

import datetime
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProcessedEvent:
    """Idempotency record, committed together with the state it produced."""

    idempotency_key: str
    operation: str  # lesson_progress|quiz_attempt|activity
    scope_id: str  # enrollment id or learner id
    fingerprint: str
    processed_at: datetime.datetime
    result_id: str | None = None  # quiz attempt id for quiz submissions

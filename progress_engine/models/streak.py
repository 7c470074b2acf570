from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum


class StreakKind(str, Enum):
    LOGIN = "LOGIN"
    LEARNING = "LEARNING"


@dataclass(frozen=True, slots=True)
class StreakState:
    """Consecutive-day counters for one learner.

    Dates are calendar days in the learner's recorded time_zone (UTC when
    unset).  longest_* >= current_* always holds.
    """

    learner_id: str
    current_login_streak: int = 0
    longest_login_streak: int = 0
    last_login_date: datetime.date | None = None
    current_learning_streak: int = 0
    longest_learning_streak: int = 0
    last_learning_date: datetime.date | None = None
    time_zone: str | None = None
    version: int = 0

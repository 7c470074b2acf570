"""Consecutive-day streak tracking.

LOGIN and LEARNING streaks run the same state machine over their own
(current, longest, last_date) triple:

  event date == last date        no change
  event date == last date + 1    current += 1
  last date unset or gap >= 2    current = 1
  event date <  last date        ignored (out of order)

After any applied update longest = max(longest, current) and last_date
moves to the event date.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace
from enum import Enum

from progress_engine.core.metrics import OUT_OF_ORDER_EVENTS
from progress_engine.models.streak import StreakKind, StreakState

logger = logging.getLogger(__name__)


class StreakOutcome(str, Enum):
    SAME_DAY = "same_day"
    EXTENDED = "extended"
    RESET = "reset"
    OUT_OF_ORDER = "out_of_order"


@dataclass(frozen=True, slots=True)
class StreakUpdate:
    state: StreakState
    outcome: StreakOutcome
    milestones_reached: tuple[int, ...] = ()

    @property
    def changed(self) -> bool:
        return self.outcome in (StreakOutcome.EXTENDED, StreakOutcome.RESET)


def advance(
    current: int,
    longest: int,
    last_date: datetime.date | None,
    event_date: datetime.date,
) -> tuple[int, int, datetime.date | None, StreakOutcome]:
    if last_date is None:
        current, outcome = 1, StreakOutcome.RESET
    else:
        gap = (event_date - last_date).days
        if gap < 0:
            return current, longest, last_date, StreakOutcome.OUT_OF_ORDER
        if gap == 0:
            return current, longest, last_date, StreakOutcome.SAME_DAY
        if gap == 1:
            current, outcome = current + 1, StreakOutcome.EXTENDED
        else:
            current, outcome = 1, StreakOutcome.RESET
    return current, max(longest, current), event_date, outcome


def apply_activity(
    state: StreakState,
    kind: StreakKind,
    event_date: datetime.date,
    milestones: tuple[int, ...] = (),
) -> StreakUpdate:
    if kind is StreakKind.LOGIN:
        before = state.current_login_streak
        current, longest, last, outcome = advance(
            state.current_login_streak,
            state.longest_login_streak,
            state.last_login_date,
            event_date,
        )
        new_state = replace(
            state,
            current_login_streak=current,
            longest_login_streak=longest,
            last_login_date=last,
        )
    else:
        before = state.current_learning_streak
        current, longest, last, outcome = advance(
            state.current_learning_streak,
            state.longest_learning_streak,
            state.last_learning_date,
            event_date,
        )
        new_state = replace(
            state,
            current_learning_streak=current,
            longest_learning_streak=longest,
            last_learning_date=last,
        )

    if outcome is StreakOutcome.OUT_OF_ORDER:
        OUT_OF_ORDER_EVENTS.labels(kind=kind.value.lower()).inc()
        logger.info(
            "Ignoring out-of-order %s activity  learner=%s event_date=%s last_date=%s",
            kind.value,
            state.learner_id,
            event_date.isoformat(),
            last.isoformat() if last else None,
        )
        return StreakUpdate(state=state, outcome=outcome)

    reached = tuple(m for m in milestones if current == m and before != m)
    return StreakUpdate(state=new_state, outcome=outcome, milestones_reached=reached)

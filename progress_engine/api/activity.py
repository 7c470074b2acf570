from __future__ import annotations

import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from progress_engine.api.dependencies import EngineDep, IdempotencyKeyDep
from progress_engine.api.schemas import StreakOut, streak_out

router = APIRouter(prefix="/v1/learners", tags=["activity"])


class ActivityIn(BaseModel):
    kind: str  # LOGIN|LEARNING
    # Local calendar day; when absent it is derived from occurred_at
    # (or now) in the learner's time zone.
    event_date: datetime.date | None = None
    occurred_at: datetime.datetime | None = None
    time_zone: str | None = None


class PointAwardOut(BaseModel):
    points: int
    reason: str
    source_id: str
    awarded_at: datetime.datetime


@router.post("/{learner_id}/activity", response_model=StreakOut)
async def record_activity(
    learner_id: str,
    body: ActivityIn,
    engine: EngineDep,
    idempotency_key: IdempotencyKeyDep,
) -> StreakOut:
    state = await engine.record_activity(
        learner_id,
        body.kind,
        body.event_date,
        occurred_at=body.occurred_at,
        time_zone=body.time_zone,
        idempotency_key=idempotency_key,
    )
    return streak_out(state)


@router.get("/{learner_id}/points", response_model=list[PointAwardOut])
async def list_point_awards(learner_id: str, engine: EngineDep) -> list[PointAwardOut]:
    """Append-only ledger of point awards, oldest first."""
    return [
        PointAwardOut(
            points=a.points,
            reason=a.reason,
            source_id=a.source_id,
            awarded_at=a.awarded_at,
        )
        for a in await engine.list_point_awards(learner_id)
    ]

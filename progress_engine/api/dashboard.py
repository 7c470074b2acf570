"""Learner dashboards, read through the cache.

  1. build the key (dashboard:{learner}:{utc date}:learner or
     dashboard:{learner}:{utc date}:enrollment:{id})
  2. hit  -> return the cached JSON
  3. miss -> compute through the engine, store with DASHBOARD_CACHE_TTL

Every committed reconciliation deletes dashboard:{learner}:*, so the
next read after a write is always fresh.
"""

from __future__ import annotations

import datetime

from fastapi import APIRouter

from progress_engine.api.dependencies import EngineDep
from progress_engine.api.schemas import DashboardOut, dashboard_out
from progress_engine.core.clock import as_utc
from progress_engine.core.config import SETTINGS
from progress_engine.core.metrics import CACHE_OPERATIONS
from progress_engine.services.cache import CacheService, dashboard_key
from progress_engine.services.reconciliation import ProgressEngine

router = APIRouter(prefix="/v1/dashboard", tags=["dashboard"])


def _today(engine: ProgressEngine) -> datetime.date:
    return as_utc(engine.clock.now()).date()


async def _cached(cache: CacheService, key: str) -> DashboardOut | None:
    cached = await cache.get(key)
    if cached is None:
        CACHE_OPERATIONS.labels(operation="miss").inc()
        return None
    CACHE_OPERATIONS.labels(operation="hit").inc()
    return DashboardOut.model_validate_json(cached)


async def _store(cache: CacheService, key: str, out: DashboardOut) -> None:
    await cache.set(key, out.model_dump_json(), SETTINGS.dashboard_cache_ttl)


@router.get("/learners/{learner_id}", response_model=DashboardOut)
async def get_learner_dashboard(learner_id: str, engine: EngineDep) -> DashboardOut:
    key = dashboard_key(learner_id, _today(engine))
    hit = await _cached(engine.cache, key)
    if hit is not None:
        return hit

    out = dashboard_out(await engine.get_dashboard(learner_id=learner_id))
    await _store(engine.cache, key, out)
    return out


@router.get("/enrollments/{enrollment_id}", response_model=DashboardOut)
async def get_enrollment_dashboard(enrollment_id: str, engine: EngineDep) -> DashboardOut:
    # The learner id is only known after a lookup, so resolve it first.
    enrollment = await engine.get_enrollment(enrollment_id)
    key = dashboard_key(
        enrollment.learner_id, _today(engine), f"enrollment:{enrollment_id}"
    )
    hit = await _cached(engine.cache, key)
    if hit is not None:
        return hit

    out = dashboard_out(await engine.get_dashboard(enrollment_id=enrollment_id))
    await _store(engine.cache, key, out)
    return out

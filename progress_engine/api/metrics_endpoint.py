"""Prometheus scrape endpoint.

Serves the text exposition of every metric in core/metrics.py: HTTP
traffic plus the reconciliation counters (events by outcome, duplicates,
out-of-order events, version conflicts, points and badges awarded).
Keep it on an internal network in production; per-badge and per-reason
counts describe learner behaviour.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

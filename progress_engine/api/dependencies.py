from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from progress_engine.services.reconciliation import ProgressEngine, reconciler


def get_engine() -> ProgressEngine:
    """The process-wide engine.  Tests swap it via app.dependency_overrides."""
    return reconciler


def idempotency_key(
    idempotency_key: Annotated[str | None, Header(max_length=255)] = None,
) -> str | None:
    """Optional Idempotency-Key header.  Blank values count as absent."""
    if idempotency_key is None or not idempotency_key.strip():
        return None
    return idempotency_key.strip()


EngineDep = Annotated[ProgressEngine, Depends(get_engine)]
IdempotencyKeyDep = Annotated[str | None, Depends(idempotency_key)]

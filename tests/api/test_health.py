from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from progress_engine.api import health


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # Neither backing service is configured under test.
    assert data["checks"] == {"database": "not_configured", "redis": "not_configured"}


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_degraded_dependency_fails_readiness(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def degraded() -> str:
        return "degraded"

    monkeypatch.setattr(health, "_check_redis", degraded)
    assert client.get("/ready").status_code == 503
    data = client.get("/health").json()
    assert data["status"] == "degraded"
    assert data["checks"]["redis"] == "degraded"

from __future__ import annotations

from fastapi.testclient import TestClient


def _login(client: TestClient, day: str, learner_id: str = "learner-1", **extra):
    return client.post(
        f"/v1/learners/{learner_id}/activity",
        json={"kind": "LOGIN", "event_date": day, **extra},
    )


def test_consecutive_logins_extend_streak(client: TestClient) -> None:
    for day in ("2026-03-01", "2026-03-02"):
        resp = _login(client, day)
    assert resp.status_code == 200
    data = resp.json()
    assert data["current_login_streak"] == 2
    assert data["longest_login_streak"] == 2
    assert data["last_login_date"] == "2026-03-02"
    assert data["current_learning_streak"] == 0


def test_gap_resets_current_but_keeps_longest(client: TestClient) -> None:
    for day in ("2026-03-01", "2026-03-02", "2026-03-03", "2026-03-05"):
        resp = _login(client, day)
    data = resp.json()
    assert data["current_login_streak"] == 1
    assert data["longest_login_streak"] == 3


def test_milestone_points_land_in_ledger(client: TestClient) -> None:
    for day in ("2026-03-01", "2026-03-02", "2026-03-03"):
        _login(client, day)
    resp = client.get("/v1/learners/learner-1/points")
    assert resp.status_code == 200
    assert [(p["reason"], p["source_id"], p["points"]) for p in resp.json()] == [
        ("login_streak_milestone", "login:3", 20)
    ]


def test_same_day_login_is_a_no_op(client: TestClient) -> None:
    _login(client, "2026-03-01")
    resp = _login(client, "2026-03-01")
    assert resp.json()["current_login_streak"] == 1


def test_occurred_at_resolved_in_learner_zone(client: TestClient) -> None:
    resp = client.post(
        "/v1/learners/learner-1/activity",
        json={
            "kind": "learning",
            "occurred_at": "2026-03-10T03:30:00Z",
            "time_zone": "America/New_York",
        },
    )
    data = resp.json()
    assert data["last_learning_date"] == "2026-03-09"
    assert data["time_zone"] == "America/New_York"


def test_unknown_kind_is_422(client: TestClient) -> None:
    resp = client.post("/v1/learners/learner-1/activity", json={"kind": "NAP"})
    assert resp.status_code == 422


def test_unknown_time_zone_is_422(client: TestClient) -> None:
    resp = _login(client, "2026-03-01", time_zone="Mars/Olympus")
    assert resp.status_code == 422


def test_activity_key_reuse_with_other_day_is_409(client: TestClient) -> None:
    headers = {"Idempotency-Key": "login-1"}
    body = {"kind": "LOGIN", "event_date": "2026-03-01"}
    client.post("/v1/learners/learner-1/activity", json=body, headers=headers)
    resp = client.post(
        "/v1/learners/learner-1/activity",
        json={"kind": "LOGIN", "event_date": "2026-03-02"},
        headers=headers,
    )
    assert resp.status_code == 409

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tests.conftest import make_course, seed_course, seed_enrollment


def _post(client: TestClient, enrollment_id: str, body: dict, key: str | None = None):
    headers = {"Idempotency-Key": key} if key else {}
    return client.post(f"/v1/enrollments/{enrollment_id}/progress", json=body, headers=headers)


# ---- ingestion ----


def test_lesson_progress_returns_merged_record(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment(duration_days=30)

    resp = _post(client, enrollment.id, {"lesson_id": "l1", "time_spent_delta_seconds": 90})
    assert resp.status_code == 200
    data = resp.json()
    assert data["enrollment_id"] == enrollment.id
    assert data["time_spent_seconds"] == 90
    assert data["total_lessons"] == 4
    assert data["completed_lesson_ids"] == []
    assert data["lessons"][0]["lesson_id"] == "l1"
    assert data["lessons"][0]["time_spent_seconds"] == 90


def test_completing_lesson_updates_actual_progress(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment(duration_days=30)

    resp = _post(client, enrollment.id, {"lesson_id": "l1", "progress_percentage": 100})
    data = resp.json()
    assert data["completed_lesson_ids"] == ["l1"]
    assert data["actual_progress_pct"] == 25
    assert data["tracking_status"] == "AHEAD"


def test_time_deltas_accumulate(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    _post(client, enrollment.id, {"lesson_id": "l1", "time_spent_delta_seconds": 30})
    resp = _post(client, enrollment.id, {"lesson_id": "l2", "time_spent_delta_seconds": 45})
    assert resp.json()["time_spent_seconds"] == 75


def test_negative_time_rejected_by_schema(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    resp = _post(client, enrollment.id, {"lesson_id": "l1", "time_spent_delta_seconds": -5})
    assert resp.status_code == 422


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_progress_rejected_by_schema(client: TestClient, literal: str) -> None:
    seed_course()
    enrollment = seed_enrollment()
    resp = client.post(
        f"/v1/enrollments/{enrollment.id}/progress",
        content=f'{{"lesson_id": "l1", "progress_percentage": {literal}}}',
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 422

    modules = client.get(f"/v1/enrollments/{enrollment.id}/modules").json()
    assert all(m["completed_lessons"] == 0 for m in modules)


def test_unknown_lesson_is_422(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    resp = _post(client, enrollment.id, {"lesson_id": "l99", "progress_percentage": 100})
    assert resp.status_code == 422
    assert "l99" in resp.json()["detail"]


def test_unknown_enrollment_is_404(client: TestClient) -> None:
    resp = _post(client, "missing", {"lesson_id": "l1"})
    assert resp.status_code == 404


# ---- idempotency ----


def test_idempotency_key_replays_committed_record(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    body = {"lesson_id": "l1", "time_spent_delta_seconds": 60}

    first = _post(client, enrollment.id, body, key="evt-1")
    second = _post(client, enrollment.id, body, key="evt-1")
    assert first.status_code == second.status_code == 200
    assert second.json() == first.json()
    assert second.json()["time_spent_seconds"] == 60


def test_idempotency_key_reuse_with_new_body_is_409(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    _post(client, enrollment.id, {"lesson_id": "l1", "time_spent_delta_seconds": 60}, key="evt-1")
    resp = _post(
        client, enrollment.id, {"lesson_id": "l1", "time_spent_delta_seconds": 61}, key="evt-1"
    )
    assert resp.status_code == 409


def test_blank_idempotency_key_is_ignored(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    body = {"lesson_id": "l1", "time_spent_delta_seconds": 10}
    _post(client, enrollment.id, body, key="   ")
    resp = _post(client, enrollment.id, body, key="   ")
    assert resp.json()["time_spent_seconds"] == 20


# ---- modules and status ----


def test_module_breakdown(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    _post(client, enrollment.id, {"lesson_id": "l1", "progress_percentage": 100})
    _post(client, enrollment.id, {"lesson_id": "l2", "progress_percentage": 100})
    _post(client, enrollment.id, {"lesson_id": "l3", "progress_percentage": 100})

    resp = client.get(f"/v1/enrollments/{enrollment.id}/modules")
    assert resp.status_code == 200
    modules = {m["module_id"]: m for m in resp.json()}
    assert modules["m1"]["status"] == "COMPLETED"
    assert modules["m1"]["progress_pct"] == 100
    assert modules["m2"]["status"] == "IN_PROGRESS"
    assert modules["m2"]["completed_lessons"] == 1


def test_final_lesson_completes_enrollment(client: TestClient) -> None:
    seed_course(make_course(modules={"m1": ["l1", "l2"]}))
    enrollment = seed_enrollment()
    _post(client, enrollment.id, {"lesson_id": "l1", "progress_percentage": 100})
    _post(client, enrollment.id, {"lesson_id": "l2", "progress_percentage": 100})

    resp = client.get(f"/v1/dashboard/enrollments/{enrollment.id}")
    item = resp.json()["enrollments"][0]
    assert item["status"] == "COMPLETED"
    assert item["completed_at"] is not None


def test_pause_and_resume(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    resp = client.post(f"/v1/enrollments/{enrollment.id}/status", json={"status": "paused"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "PAUSED"
    resp = client.post(f"/v1/enrollments/{enrollment.id}/status", json={"status": "ACTIVE"})
    assert resp.json()["status"] == "ACTIVE"


def test_status_cannot_be_forced_to_completed(client: TestClient) -> None:
    seed_course()
    enrollment = seed_enrollment()
    resp = client.post(f"/v1/enrollments/{enrollment.id}/status", json={"status": "COMPLETED"})
    assert resp.status_code == 422

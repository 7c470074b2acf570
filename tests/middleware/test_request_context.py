"""Tests for the request context middleware.

Every response gets an X-Request-ID header (generated or echoed) and
every request logs one summary line carrying path ids.
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import seed_course, seed_enrollment

_LOGGER = "progress_engine.middleware.request_context"


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/dashboard/enrollments/missing")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id") is not None


def test_summary_line_carries_path_ids(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    seed_course()
    enrollment = seed_enrollment()
    with caplog.at_level(logging.INFO, logger=_LOGGER):
        client.post(
            f"/v1/enrollments/{enrollment.id}/progress",
            json={"lesson_id": "l1"},
            headers={"X-Request-ID": "req-42", "Idempotency-Key": "evt-9"},
        )

    (record,) = [r for r in caplog.records if r.name == _LOGGER]
    assert record.getMessage().startswith("POST /v1/enrollments/")
    assert record.request_id == "req-42"
    assert record.enrollment_id == enrollment.id
    assert record.idempotency_key == "evt-9"
    assert record.status_code == 200


def test_learner_id_lifted_from_path(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger=_LOGGER):
        client.get("/v1/dashboard/learners/learner-7")
    (record,) = [r for r in caplog.records if r.name == _LOGGER]
    assert record.learner_id == "learner-7"
    assert not hasattr(record, "enrollment_id")

"""Tests for normalized error responses."""

from fastapi.testclient import TestClient

from holidaymode.core.errors import AllowanceExceededError, CreateFailedError
from holidaymode.features.holidays import service as service_module
from holidaymode.main import app


def test_validation_error_has_standard_shape():
    client = TestClient(app)
    resp = client.post("/v1/holidays", headers={"X-User-Id": "u1"}, json={"end_date": "2030-01-01"})
    assert resp.status_code == 400
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == body["error"]["message"]


def test_missing_user_is_unauthorized():
    client = TestClient(app)
    resp = client.get("/v1/holidays/stats")
    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "unauthorized"
    assert body["error"]["request_id"] == resp.headers.get("x-request-id")


def test_unknown_route_is_not_found():
    client = TestClient(app)
    resp = client.get("/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_allowance_error_carries_requires_premium(monkeypatch):
    def deny(*args, **kwargs):
        raise AllowanceExceededError("No holidays left")

    monkeypatch.setattr(service_module.holiday_service, "create_from_request", deny)
    client = TestClient(app)
    resp = client.post(
        "/v1/holidays",
        headers={"X-User-Id": "u1"},
        json={"start_date": "2030-01-01", "end_date": "2030-01-02"},
    )
    assert resp.status_code == 403
    error = resp.json()["error"]
    assert error["code"] == "allowance_exceeded"
    assert error["requires_premium"] is True


def test_store_failure_is_retryable_503(monkeypatch):
    def fail(*args, **kwargs):
        raise CreateFailedError("Failed to create holiday. Please try again.")

    monkeypatch.setattr(service_module.holiday_service, "create_from_request", fail)
    client = TestClient(app)
    resp = client.post(
        "/v1/holidays",
        headers={"X-User-Id": "u1"},
        json={"start_date": "2030-01-01", "end_date": "2030-01-02"},
    )
    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "create_failed"
    assert error["retryable"] is True

"""Tests for response envelopes and error classification."""

import json
from datetime import date

from fastapi.exceptions import RequestValidationError

from app.api.error_handlers import build_validation_errors, classify_integrity_error
from app.utils.responses import error_body, percentage, send_error, send_success, success_body


def test_success_body_omits_empty_parts():
    body = success_body("Done")
    assert body["success"] is True
    assert body["message"] == "Done"
    assert "timestamp" in body
    assert "data" not in body
    assert "pagination" not in body
    assert "school" not in body


def test_success_body_includes_school_only_when_given():
    body = success_body("Done", data=[], pagination={"total": 0}, school={"id": 1})
    assert body["data"] == []
    assert body["pagination"] == {"total": 0}
    assert body["school"] == {"id": 1}


def test_error_body():
    body = error_body("Validation failed", [{"field": "email", "message": "bad"}])
    assert body["success"] is False
    assert body["errors"] == [{"field": "email", "message": "bad"}]
    assert "errors" not in error_body("Forbidden")


def test_send_success_serializes_dates():
    response = send_success("Created", {"start_date": date(2024, 9, 1)}, status_code=201)
    assert response.status_code == 201
    payload = json.loads(response.body)
    assert payload["data"]["start_date"] == "2024-09-01"


def test_send_error():
    response = send_error("Not found", 404)
    assert response.status_code == 404
    assert json.loads(response.body)["message"] == "Not found"


def test_percentage():
    assert percentage(1, 3) == "33%"
    assert percentage(0, 0) == "0%"


def test_classify_integrity_error():
    assert classify_integrity_error(Exception('duplicate key value violates unique constraint "users_email_key"')) \
        == (409, "Resource already exists")
    assert classify_integrity_error(Exception("violates foreign key constraint")) \
        == (400, "Invalid reference data provided")


def test_build_validation_errors_drops_body_prefix():
    exc = RequestValidationError([
        {"loc": ("body", "start_date"), "msg": "Field required", "type": "missing"},
    ])
    assert build_validation_errors(exc) == [{"field": "start_date", "message": "Field required"}]

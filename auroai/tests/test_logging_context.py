"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from auroai.core.logging import JsonFormatter, log_event, request_id_ctx_var
from auroai.main import app


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="auroai"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"


def test_incoming_request_id_is_echoed():
    client = TestClient(app)
    response = client.get("/healthz", headers={"x-request-id": "rid-123"})
    assert response.headers["x-request-id"] == "rid-123"


def test_request_id_in_error_response():
    client = TestClient(app)
    response = client.get("/api/does-not-exist")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 404
    assert rid
    payload = response.json()
    assert payload["error"]["code"] == "not_found"
    assert payload["error"]["request_id"] == rid


def test_log_event_binds_context_request_id(caplog):
    token = request_id_ctx_var.set("rid-ctx")
    try:
        with caplog.at_level(logging.INFO, logger="auroai"):
            log_event("info", "reconcile.started", user_id="u1", extra={"plan": "meso"})
    finally:
        request_id_ctx_var.reset(token)

    record = next(r for r in caplog.records if r.getMessage() == "reconcile.started")
    assert record.request_id == "rid-ctx"
    assert record.user_id == "u1"
    assert record.plan == "meso"


def test_log_event_truncates_long_values(caplog):
    with caplog.at_level(logging.INFO, logger="auroai"):
        log_event("warning", "webhook.processing_failed", extra={"error": "x" * 2000})
    record = next(r for r in caplog.records if r.getMessage() == "webhook.processing_failed")
    assert record.error.endswith("...<truncated>")
    assert len(record.error) < 600


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("auroai", logging.INFO, __file__, 1, "checkout.started", None, None)
    record.request_id = "rid-1"
    record.price_id = "price_abc"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "checkout.started"
    assert payload["request_id"] == "rid-1"
    assert payload["price_id"] == "price_abc"
    assert payload["level"] == "INFO"

import json
import logging

from app.logging import (
    AttemptIdFilter,
    JsonFormatter,
    MaskingFilter,
    bind_attempt,
    current_attempt_id,
)


def test_request_id_header_and_propagation(client):
    resp = client.get("/__ok", headers={"X-Request-ID": "my-fixed-id-123"})
    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == "my-fixed-id-123"


def test_request_id_generated_when_absent(client):
    resp = client.get("/__ok")
    assert len(resp.headers.get("X-Request-ID")) == 32


def test_traceparent_header(client):
    resp = client.get("/__ok")
    assert "traceparent" in resp.headers


def test_security_headers(client):
    resp = client.get("/__ok")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_sensitive_fields_masked_in_info(monkeypatch, caplog):
    monkeypatch.setenv("APP_ENV", "testing")
    caplog.set_level("INFO")
    caplog.handler.addFilter(MaskingFilter())
    logger = logging.getLogger("mask_test")
    logger.info({"email": "user@example.com", "razorpay_signature": "abc", "order_id": 5})
    record = next(r for r in caplog.records if r.name == "mask_test")
    assert record.msg["email"] == "[REDACTED]"
    assert record.msg["razorpay_signature"] == "[REDACTED]"
    assert record.msg["order_id"] == 5


def test_sensitive_fields_visible_in_debug(monkeypatch, caplog):
    monkeypatch.setenv("APP_ENV", "development")
    caplog.set_level("DEBUG")
    caplog.handler.addFilter(MaskingFilter())
    logger = logging.getLogger("mask_test_debug")
    logger.debug({"mobile_number": "9999999999"})
    record = next(r for r in caplog.records if r.name == "mask_test_debug")
    assert record.msg["mobile_number"] == "9999999999"


def test_bind_attempt_sets_and_resets():
    assert current_attempt_id() == "n/a"
    with bind_attempt("tok-1"):
        assert current_attempt_id() == "tok-1"
        with bind_attempt("tok-2"):
            assert current_attempt_id() == "tok-2"
        assert current_attempt_id() == "tok-1"
    assert current_attempt_id() == "n/a"


def test_json_formatter_includes_attempt_and_structured_fields():
    record = logging.LogRecord("checkout", logging.ERROR, __file__, 1, {"event": "partial_commit", "order_id": 3}, None, None)
    with bind_attempt("tok-9"):
        AttemptIdFilter().filter(record)
    out = json.loads(JsonFormatter().format(record))
    assert out["attempt_id"] == "tok-9"
    assert out["event"] == "partial_commit"
    assert out["order_id"] == 3
    assert out["level"] == "ERROR"


def test_json_formatter_plain_message():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "total %s", ("250.00",), None)
    out = json.loads(JsonFormatter().format(record))
    assert out["message"] == "total 250.00"
    assert out["attempt_id"] == "n/a"

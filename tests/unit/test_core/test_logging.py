"""Unit tests for structured logging."""
import json
import sys
import logging
from flask import Flask, g, request
from mindbridge.core.logging import JSONFormatter, get_logger, log_request


class TestJSONFormatter:
    """Test JSONFormatter output."""

    def _record(self, **extra):
        record = logging.LogRecord("mindbridge.test", logging.INFO, __file__, 10, "Started checkout", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_includes_context_fields(self):
        record = self._record(payment_intent_id="int_1", user_id="client_1", amount=50000)

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Started checkout"
        assert data["level"] == "INFO"
        assert data["payment_intent_id"] == "int_1"
        assert data["user_id"] == "client_1"
        assert data["amount"] == 50000

    def test_exception_info(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "boom"

    def test_get_logger_is_cached(self):
        assert get_logger("mindbridge.a") is get_logger("mindbridge.a")


class TestRequestContext:
    """Test request-scoped log context."""

    def test_request_id_added_inside_request(self):
        app = Flask(__name__)
        adapter = get_logger("mindbridge.request_context")

        with app.test_request_context("/api/payments/checkout"):
            g.request_id = "req_1"
            _, kwargs = adapter.process("Started checkout", {"extra": {"payment_intent_id": "int_1"}})

        assert kwargs["extra"] == {"payment_intent_id": "int_1", "request_id": "req_1"}

    def test_no_request_id_outside_request(self):
        _, kwargs = get_logger("mindbridge.request_context").process("Sweep", {})

        assert kwargs["extra"] == {}

    def test_log_request_fields(self):
        app = Flask(__name__)

        @app.route("/api/payments/checkout/<payment_intent_id>/events", methods=["POST"])
        def events(payment_intent_id):
            return ""

        with app.test_request_context(
            "/api/payments/checkout/int_1/events", method="POST", headers={"X-User-Id": "client_1"}
        ):
            fields = log_request(request, "X-User-Id")

        assert fields == {
            "method": "POST",
            "path": "/api/payments/checkout/int_1/events",
            "user_id": "client_1",
            "payment_intent_id": "int_1"
        }

"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime, timedelta

from flask import g

from tokenauth.core.logger import JSONFormatter, RequestContextFilter, configure_logging
from tokenauth.services import Claims


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("tokenauth.test", logging.INFO, __file__, 1, "authn.sign", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert logging.getLogger().level == logging.DEBUG


def test_json_formatter_includes_structured_extras() -> None:
    """Fields passed through ``extra=`` end up as top-level JSON keys."""

    # Arrange
    record = _record(subject="user-42", ttl_seconds=12.5, request_id="abc")

    # Act
    payload = json.loads(JSONFormatter().format(record))

    # Assert
    assert payload["message"] == "authn.sign"
    assert payload["level"] == "INFO"
    assert payload["subject"] == "user-42"
    assert payload["ttl_seconds"] == 12.5
    assert payload["request_id"] == "abc"
    assert "msg" not in payload and "args" not in payload


def test_json_formatter_renders_exceptions() -> None:
    """Exception info is rendered as a traceback string."""

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord(
            "tokenauth.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
        )

    payload = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in payload["exc_info"]


def test_json_formatter_redacts_token_material() -> None:
    """Extras that could carry credentials never reach the output."""

    record = _record(token="eyJhbGciOi...", Authorization="Bearer abc", subject="user-42")

    payload = json.loads(JSONFormatter().format(record))

    assert payload["token"] == "[redacted]"
    assert payload["Authorization"] == "[redacted]"
    assert payload["subject"] == "user-42"


def test_request_context_filter_stamps_request_id_and_subject(app) -> None:
    """Inside a request the correlation id and verified subject are attached."""

    record = _record()
    with app.test_request_context(headers={"X-Request-ID": "req-1"}):
        g.claims = Claims.issue(
            subject="user-42", issuer="", now=datetime.now(UTC), lifetime=timedelta(hours=1)
        )
        assert RequestContextFilter().filter(record) is True

    assert record.request_id == "req-1"
    assert record.subject == "user-42"


def test_request_context_filter_outside_request() -> None:
    record = _record()

    RequestContextFilter().filter(record)

    assert record.request_id is None
    assert not hasattr(record, "subject")


def test_responses_echo_request_id(client) -> None:
    res = client.get("/api/v1/health", headers={"X-Correlation-ID": "corr-7"})

    assert res.headers["X-Request-ID"] == "corr-7"

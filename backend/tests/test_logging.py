"""Tests for JSON structured logging."""
import json
import logging
import sys

from fluentdrama.core.logging import JSONFormatter, setup_logging


def _record(name: str, level: int, msg: str, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name=name, level=level, pathname="", lineno=0, msg=msg, args=(), exc_info=exc_info
    )


def test_json_formatter_has_required_fields() -> None:
    """Log output must contain timestamp, level, service, message fields."""
    parsed = json.loads(JSONFormatter().format(_record("my-service", logging.WARNING, "hi")))

    assert "timestamp" in parsed
    assert parsed["level"] == "WARNING"
    assert parsed["service"] == "my-service"
    assert parsed["message"] == "hi"


def test_json_formatter_keeps_japanese_text() -> None:
    output = JSONFormatter().format(_record("svc", logging.INFO, "こんにちは"))
    assert "こんにちは" in output


def test_json_formatter_includes_error_type_on_exception() -> None:
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()

    parsed = json.loads(
        JSONFormatter().format(_record("svc", logging.ERROR, "failed", exc_info))
    )

    assert parsed["error_type"] == "ValueError"
    assert "test error" in parsed["error_detail"]


def test_json_formatter_copies_whitelisted_extra_fields() -> None:
    record = _record("svc", logging.INFO, "charged")
    record.user_id = "u1"
    record.metric = "tts"
    record.password = "secret"

    parsed = json.loads(JSONFormatter().format(record))

    assert parsed["user_id"] == "u1"
    assert parsed["metric"] == "tts"
    assert "password" not in parsed


def test_json_formatter_uses_error_type_extra_without_exception() -> None:
    record = _record("svc", logging.ERROR, "upstream failed")
    record.error_type = "TimeoutError"
    assert json.loads(JSONFormatter().format(record))["error_type"] == "TimeoutError"


def test_setup_logging_returns_logger() -> None:
    logger = setup_logging("test-app")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test-app"


def test_setup_logging_does_not_duplicate_handlers() -> None:
    setup_logging("dup-app")
    logger = setup_logging("dup-app")
    assert len(logger.handlers) == 1

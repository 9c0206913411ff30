"""Tests for the SDK's JSON logging."""

import json
import logging
import sys

from stellanow_sdk.core.logging import JSONFormatter, configure_sdk_logger, get_logger


def make_record(msg: str = "hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="stellanow_sdk.sink",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_base_fields():
    data = json.loads(JSONFormatter().format(make_record("Connected to MQTT broker")))

    assert data["level"] == "INFO"
    assert data["message"] == "Connected to MQTT broker"
    assert data["logger"] == "stellanow_sdk.sink"
    assert data["timestamp"].endswith("+00:00")


def test_json_formatter_includes_sdk_fields():
    record = make_record(attempt=3, delay=20.0, broker="wss://broker", message_id="m-1")

    data = json.loads(JSONFormatter().format(record))

    assert data["attempt"] == 3
    assert data["delay"] == 20.0
    assert data["broker"] == "wss://broker"
    assert data["message_id"] == "m-1"


def test_json_formatter_serializes_unknown_values_as_strings():
    data = json.loads(JSONFormatter().format(make_record(payload=object())))

    assert data["payload"].startswith("<object object")


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record(level=logging.ERROR)
        record.exc_info = sys.exc_info()

    data = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in data["exception"]


def test_get_logger_namespaces_foreign_names():
    assert get_logger("myapp").name == "stellanow_sdk.myapp"
    assert get_logger("stellanow_sdk.sink").name == "stellanow_sdk.sink"


def test_configure_sdk_logger_is_idempotent():
    logger = configure_sdk_logger(logging.DEBUG)
    configure_sdk_logger(logging.WARNING)

    handlers = [h for h in logger.handlers if isinstance(h.formatter, JSONFormatter)]
    assert len(handlers) == 1
    assert logger.level == logging.WARNING
    assert logger.propagate is False
    configure_sdk_logger(logging.INFO)


def test_json_formatter_uses_record_creation_time():
    record = make_record()
    record.created = 1735732800.5  # 2025-01-01T12:00:00.5Z

    data = json.loads(JSONFormatter().format(record))

    assert data["timestamp"] == "2025-01-01T12:00:00.500000+00:00"


def test_extra_values_cannot_replace_base_fields():
    data = json.loads(JSONFormatter().format(make_record("real", logger="spoofed", level_name="x")))

    assert data["message"] == "real"
    assert data["logger"] == "stellanow_sdk.sink"
    assert data["level_name"] == "x"


def test_sdk_fields_come_before_other_extras():
    data = json.loads(JSONFormatter().format(make_record(signal="on_error", attempt=1)))

    assert list(data)[4:] == ["attempt", "signal"]


def test_unserializable_structures_fall_back_to_strings():
    loop: dict = {}
    loop["self"] = loop

    data = json.loads(JSONFormatter().format(make_record(state=loop, attempt=2)))

    assert data["message"] == "hello"
    assert data["attempt"] == "2"
    assert data["state"].startswith("{")

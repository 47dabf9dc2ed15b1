"""Unit tests for logging formatters, context injection and configuration."""
from __future__ import annotations

import json
import logging
import sys

import pytest

from outbox_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    configure_logging,
    get_log_context,
    log_context,
    set_log_context,
    shutdown,
)


def make_record(msg: str = "hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="outbox_service.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_one_json_object(self):
        formatter = JSONFormatter(static={"service": "outbox-service"})

        data = json.loads(formatter.format(make_record(batch_id="b1")))

        assert data["level"] == "INFO"
        assert data["logger"] == "outbox_service.test"
        assert data["message"] == "hello world"
        assert data["service"] == "outbox-service"
        assert data["batch_id"] == "b1"
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_exception_kept_on_one_line(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("bad")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        output = formatter.format(record)

        assert "\n" not in output
        assert "ValueError: bad" in json.loads(output)["exception"]

    def test_non_serializable_extra_uses_str(self):
        formatter = JSONFormatter()

        data = json.loads(formatter.format(make_record(obj=object())))

        assert data["obj"].startswith("<object object")


@pytest.mark.unit
class TestLogContext:
    """Tests for contextvars-based log context."""

    def test_set_and_get(self):
        set_log_context(worker="w1")
        set_log_context(batch_id="b1")

        assert get_log_context() == {"worker": "w1", "batch_id": "b1"}

    def test_log_context_restores_previous(self):
        set_log_context(worker="w1")

        with log_context(batch_id="b1"):
            assert get_log_context() == {"worker": "w1", "batch_id": "b1"}

        assert get_log_context() == {"worker": "w1"}

    def test_filter_injects_without_overwriting(self):
        record = make_record(batch_id="explicit")

        with log_context(batch_id="from-context", worker="w1"):
            assert ContextInjectingFilter().filter(record) is True

        assert record.batch_id == "explicit"
        assert record.worker == "w1"


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_file_handler_writes_jsonl(self, tmp_path):
        log_file = tmp_path / "logs" / "out.jsonl"
        root = logging.getLogger()
        previous_level = root.level

        try:
            configure_logging(
                "INFO",
                service_name="svc",
                json_logs=True,
                console_enabled=False,
                file_path=log_file,
                capture_warnings=False,
            )
            with log_context(batch_id="b7"):
                logging.getLogger("outbox_service.test").info("written", extra={"n": 1})
        finally:
            shutdown()
            root.setLevel(previous_level)

        [line] = log_file.read_text().splitlines()
        data = json.loads(line)
        assert data["message"] == "written"
        assert data["service"] == "svc"
        assert data["batch_id"] == "b7"
        assert data["n"] == 1

    def test_no_outputs_attaches_no_queue(self):
        from logging.handlers import QueueHandler

        root = logging.getLogger()
        previous_level = root.level

        try:
            configure_logging(
                "INFO",
                console_enabled=False,
                file_path=None,
                capture_warnings=False,
            )
            logging.getLogger("outbox_service.test").info("dropped")

            assert not any(isinstance(h, QueueHandler) for h in root.handlers)
            assert any(isinstance(h, logging.NullHandler) for h in root.handlers)
        finally:
            shutdown()
            root.setLevel(previous_level)

        assert not any(isinstance(h, logging.NullHandler) for h in root.handlers)

"""
Tests for structured logging and error helpers.

File: backend/tests/test_logging.py
"""
from __future__ import annotations

import json
import logging
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

import lendwatch.__main__ as entry_point
from lendwatch.core import logging as log_setup

from lendwatch.core.exceptions import (
    ConfigurationError,
    EmptyWindowError,
    ObservationFetchError,
    create_safe_error_dict,
)
from lendwatch.core.logging import StructuredFormatter, cleanup_logging, setup_logging


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="lendwatch.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Skipping reserve %s",
        args=("DAI",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test suite for StructuredFormatter."""

    def test_formats_json_with_extra_data(self):
        record = make_record(bot="reserve-watch", extra_data={'block_number': 5, 'reserve': 'DAI'})
        payload = json.loads(StructuredFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["message"] == "Skipping reserve DAI"
        assert payload["bot"] == "reserve-watch"
        assert payload["block_number"] == 5
        assert payload["reserve"] == "DAI"

    def test_redacts_sensitive_fields(self):
        record = make_record(extra_data={'api_key': 'abc', 'webhook_auth': 'xyz', 'count': 2})
        payload = json.loads(StructuredFormatter().format(record))

        assert payload["api_key"] == "[REDACTED]"
        assert payload["webhook_auth"] == "[REDACTED]"
        assert payload["count"] == 2


class TestExceptions:
    """Test suite for the exception hierarchy."""

    def test_default_error_codes(self):
        assert ConfigurationError("bad").error_code == "INVALID_CONFIGURATION"
        assert EmptyWindowError().message == "No observations recorded"
        assert ObservationFetchError("x", details={'block': 1}).details == {'block': 1}

    def test_safe_error_dict(self):
        error = ObservationFetchError("getReserveData failed", trace_id="trace-1")
        safe = create_safe_error_dict(error)
        assert safe["error_type"] == "ObservationFetchError"
        assert safe["trace_id"] == "trace-1"
        assert safe["error_code"] == error.error_code

    def test_plain_exception(self):
        safe = create_safe_error_dict(ValueError("boom"))
        assert safe == {"error_type": "ValueError", "error_message": "boom"}


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    cleanup_logging()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLoggingLifecycle:
    """Test suite for starting and stopping the log listener."""

    def test_cleanup_flushes_queued_records(self, tmp_path, restore_root_logger):
        setup_logging("INFO", log_dir=tmp_path)
        logging.getLogger("lendwatch.test").warning(
            "Reserve list unavailable", extra={'extra_data': {'block_number': 7}}
        )
        cleanup_logging()

        lines = (tmp_path / "app.jsonl").read_text(encoding="utf-8").splitlines()
        payloads = [json.loads(line) for line in lines]
        assert any(p["message"] == "Reserve list unavailable" for p in payloads)
        assert log_setup._queue_listener is None

    def test_entry_point_stops_listener_when_server_fails(self, monkeypatch):
        settings = SimpleNamespace(
            log_level="INFO", debug=False, log_dir=None, api_host="127.0.0.1", api_port=8080
        )
        cleanup = Mock()
        monkeypatch.setattr(entry_point, "get_settings", lambda: settings)
        monkeypatch.setattr(entry_point, "setup_logging", Mock())
        monkeypatch.setattr(entry_point, "create_app", Mock(return_value="app"))
        monkeypatch.setattr(entry_point, "cleanup_logging", cleanup)
        monkeypatch.setattr(
            entry_point.uvicorn, "run", Mock(side_effect=RuntimeError("port in use"))
        )

        with pytest.raises(RuntimeError):
            entry_point.main()

        cleanup.assert_called_once_with()

    def test_entry_point_stops_listener_after_clean_exit(self, monkeypatch):
        settings = SimpleNamespace(
            log_level="DEBUG", debug=True, log_dir=None, api_host="0.0.0.0", api_port=9000
        )
        run = Mock()
        cleanup = Mock()
        monkeypatch.setattr(entry_point, "get_settings", lambda: settings)
        monkeypatch.setattr(entry_point, "setup_logging", Mock())
        monkeypatch.setattr(entry_point, "create_app", Mock(return_value="app"))
        monkeypatch.setattr(entry_point, "cleanup_logging", cleanup)
        monkeypatch.setattr(entry_point.uvicorn, "run", run)

        entry_point.main()

        run.assert_called_once_with("app", host="0.0.0.0", port=9000, log_level="debug")
        cleanup.assert_called_once_with()

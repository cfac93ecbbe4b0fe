"""
Centralized logging with structured JSON output and queue-backed file handlers.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import queue
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


CONTEXT_FIELDS = (
    'bot', 'block_number', 'tx_hash', 'reserve', 'alert_id', 'trace_id'
)

SENSITIVE_PATTERNS = (
    'key', 'secret', 'token', 'password', 'private', 'mnemonic', 'auth'
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as structured JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": getattr(record, 'module', record.name),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_data = getattr(record, 'extra_data', None)
        if isinstance(extra_data, dict):
            log_data.update({
                k: self._redact_sensitive(k, v)
                for k, v in extra_data.items()
            })

        return json.dumps(log_data, default=str, separators=(',', ':'))

    def _redact_sensitive(self, key: str, value: Any) -> Any:
        """
        Redact sensitive information from log values.

        Args:
            key: Field name
            value: Field value

        Returns:
            Redacted value if sensitive, original value otherwise
        """
        if any(pattern in key.lower() for pattern in SENSITIVE_PATTERNS):
            return "[REDACTED]"
        return value


class DailyRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Rotating file handler that creates its directory on construction."""

    def __init__(self, filename: str, **kwargs: Any):
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        super().__init__(filename, **kwargs)


_queue_listener: Optional[logging.handlers.QueueListener] = None


def setup_logging(
    log_level: str = "INFO",
    debug: bool = False,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Set up centralized logging with structured JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        debug: Also log human readable lines to the console
        log_dir: Directory for app-*.jsonl and errors-*.jsonl; JSON goes to
            stderr when omitted
    """
    global _queue_listener

    cleanup_logging()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    formatter = StructuredFormatter()
    handlers = []

    if log_dir is not None:
        app_handler = DailyRotatingFileHandler(
            filename=str(Path(log_dir) / "app.jsonl"),
            when='midnight',
            backupCount=30,
            encoding='utf-8',
            utc=True
        )
        app_handler.setFormatter(formatter)
        app_handler.setLevel(logging.DEBUG)

        error_handler = DailyRotatingFileHandler(
            filename=str(Path(log_dir) / "errors.jsonl"),
            when='midnight',
            backupCount=30,
            encoding='utf-8',
            utc=True
        )
        error_handler.setFormatter(formatter)
        error_handler.setLevel(logging.ERROR)
        handlers.extend([app_handler, error_handler])
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        handlers.append(stream_handler)

    log_queue: queue.Queue = queue.Queue(-1)
    root_logger.addHandler(logging.handlers.QueueHandler(log_queue))

    _queue_listener = logging.handlers.QueueListener(
        log_queue, *handlers, respect_handler_level=True
    )
    _queue_listener.start()

    if debug:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(console_handler)

    logging.info("Logging system initialized", extra={
        'extra_data': {
            'log_level': log_level,
            'debug': debug,
            'log_dir': str(log_dir) if log_dir else None,
        }
    })


def cleanup_logging() -> None:
    """
    Stop the queue listener on shutdown.
    """
    global _queue_listener

    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)

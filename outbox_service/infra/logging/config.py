"""Logging configuration setup.

Production logging built from the standard library:
- dictConfig for root and library logger levels
- QueueHandler + QueueListener so handlers never block the event loop
- ContextInjectingFilter for contextvars-based fields
- JSONL output for machine parsing
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from outbox_service.infra.logging.context import ContextInjectingFilter
from outbox_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from outbox_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_root_handler: logging.Handler | None = None
_LOGGING_INITIALIZED = False

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def shutdown() -> None:
    """Stop the QueueListener, flushing queued records.

    Registered with atexit; safe to call more than once.
    """
    global _log_queue, _listener, _root_handler

    if _listener is not None:
        _listener.stop()
        _listener = None

    if _root_handler is not None:
        logging.getLogger().removeHandler(_root_handler)
        _root_handler = None

    _log_queue = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from outbox_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    log_config = {**log_settings.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    *,
    service_name: str = "outbox-service",
    json_logs: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    include_context: bool = True,
    capture_warnings: bool = True,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    All handlers hang off a QueueListener; the root logger only gets a
    QueueHandler, and application loggers propagate to it.

    Args:
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service_name: Static "service" field on every JSON record.
        json_logs: Emit JSONL instead of human-readable text.
        console_enabled: Log to stderr.
        file_path: Rotating log file, or None to disable file logging.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.
        include_context: Add ContextInjectingFilter to the queue handler.
        capture_warnings: Forward Python warnings to logging.
    """
    global _log_queue, _listener, _root_handler

    shutdown()

    if capture_warnings:
        logging.captureWarnings(True)

    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "root": {
            "level": log_level.upper(),
            "handlers": [],
        },
        "loggers": {
            # Engine echo is controlled by DB_ECHO
            "sqlalchemy.engine": {"level": "WARNING"},
            "aio_pika": {"level": "WARNING"},
            "aiormq": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(logging_config)

    handlers: list[logging.Handler] = []
    formatter = _build_formatter(json_logs=json_logs, service_name=service_name)

    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        # Nothing would drain the queue; discard records instead
        _root_handler = logging.NullHandler()
        logging.getLogger().addHandler(_root_handler)
        return

    _log_queue = Queue()
    _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
    _listener.start()
    atexit.register(shutdown)

    queue_handler = QueueHandler(_log_queue)
    # Handler-level so records propagated from child loggers are enriched too
    if include_context:
        queue_handler.addFilter(ContextInjectingFilter())
    _root_handler = queue_handler
    logging.getLogger().addHandler(queue_handler)


def _build_formatter(*, json_logs: bool, service_name: str) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(
            fmt_keys={"level": "levelname", "logger": "name", "message": "message"},
            static={"service": service_name},
        )
    return logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)


__all__ = ["configure_logging", "setup_logging", "shutdown"]

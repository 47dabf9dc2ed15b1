"""CLI utilities for running async operations and formatting output."""

from outbox_service.cli.utils.async_runner import coro
from outbox_service.cli.utils.formatters import (
    echo_json,
    error,
    header,
    info,
    record_row,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "echo_json",
    "error",
    "header",
    "info",
    "record_row",
    "section",
    "success",
    "warning",
]

"""Shared utilities."""

from outbox_service.utils.retry import RetryError, RetryStrategy, retry

__all__ = ["RetryError", "RetryStrategy", "retry"]

"""Unit tests for the startup retry decorator."""
from __future__ import annotations

import pytest

from outbox_service.utils.retry import RetryError, RetryStrategy, retry


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    async def test_connect_succeeds_first_attempt(self):
        attempts = 0

        @retry(max_attempts=3)
        async def connect():
            nonlocal attempts
            attempts += 1
            return "connected"

        assert await connect() == "connected"
        assert attempts == 1

    async def test_connect_succeeds_after_refusals(self):
        attempts = 0
        seen = []

        @retry(
            max_attempts=3,
            initial_delay=0.001,
            exceptions=(ConnectionError,),
            on_retry=lambda exc, attempt: seen.append(attempt),
        )
        async def connect():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionRefusedError("database starting up")
            return "connected"

        assert await connect() == "connected"
        assert attempts == 3
        assert seen == [1, 2]

    async def test_gives_up_with_retry_error(self):
        @retry(max_attempts=2, initial_delay=0.001)
        async def connect():
            raise OSError("no route to host")

        with pytest.raises(RetryError) as exc_info:
            await connect()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, OSError)
        assert "after 2 attempts" in str(exc_info.value)

    async def test_non_retryable_propagates_immediately(self):
        attempts = 0

        @retry(max_attempts=3, initial_delay=0.001, exceptions=(ConnectionError,))
        async def connect():
            nonlocal attempts
            attempts += 1
            raise ValueError("bad credentials")

        with pytest.raises(ValueError):
            await connect()

        assert attempts == 1


@pytest.mark.unit
class TestRetryStrategy:
    """Tests for backoff calculation."""

    def test_exponential_delay_capped(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=5.0, jitter=False)

        assert [strategy.calculate_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_within_bounds(self):
        strategy = RetryStrategy(initial_delay=2.0, jitter=True)

        for _ in range(20):
            assert 1.0 <= strategy.calculate_delay(0) <= 3.0

    def test_should_retry_matches_exception_types(self):
        strategy = RetryStrategy(exceptions=(ConnectionError,))

        assert strategy.should_retry(ConnectionResetError())
        assert not strategy.should_retry(ValueError())

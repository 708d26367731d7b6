"""Tests for the shared CircuitBreaker.

- CLOSED until failure_threshold consecutive failures
- OPEN rejects calls until recovery_timeout has elapsed
- HALF_OPEN closes on success and reopens on failure
- reset() forces CLOSED
"""

from unittest.mock import patch

import pytest

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState


def _breaker(threshold: int = 3, recovery: float = 30.0) -> CircuitBreaker:
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=threshold, recovery_timeout=recovery),
        name="openai",
    )


class TestClosedState:
    def test_starts_closed(self) -> None:
        cb = _breaker()

        assert cb.state == CircuitState.CLOSED
        assert cb.is_closed
        assert cb.failure_count == 0
        assert cb.name == "openai"

    async def test_stays_closed_below_threshold(self) -> None:
        cb = _breaker(threshold=3)

        await cb.record_failure()
        await cb.record_failure()

        assert cb.is_closed
        assert cb.failure_count == 2
        assert await cb.can_execute() is True

    async def test_success_clears_failures(self) -> None:
        cb = _breaker(threshold=3)
        await cb.record_failure()
        await cb.record_failure()

        await cb.record_success()

        assert cb.failure_count == 0
        await cb.record_failure()
        assert cb.is_closed


class TestOpenState:
    async def test_opens_at_threshold(self) -> None:
        cb = _breaker(threshold=2)

        await cb.record_failure()
        await cb.record_failure()

        assert cb.is_open
        assert await cb.can_execute() is False

    async def test_logs_warning_when_opening(self) -> None:
        cb = _breaker(threshold=1)

        with patch("app.core.circuit_breaker.logger") as mock_logger:
            await cb.record_failure()

        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args.kwargs["extra"]["circuit_name"] == "openai"


class TestHalfOpenState:
    async def test_recovery_timeout_moves_to_half_open(self) -> None:
        cb = _breaker(threshold=1, recovery=0.0)
        await cb.record_failure()

        assert await cb.can_execute() is True
        assert cb.is_half_open

    async def test_success_in_half_open_closes(self) -> None:
        cb = _breaker(threshold=1, recovery=0.0)
        await cb.record_failure()
        await cb.can_execute()

        await cb.record_success()

        assert cb.is_closed
        assert cb.failure_count == 0

    async def test_failure_in_half_open_reopens(self) -> None:
        cb = _breaker(threshold=5, recovery=0.0)
        for _ in range(5):
            await cb.record_failure()
        await cb.can_execute()

        await cb.record_failure()

        assert cb.is_open


class TestReset:
    async def test_reset_closes_open_circuit(self) -> None:
        cb = _breaker(threshold=1)
        await cb.record_failure()
        assert cb.is_open

        await cb.reset()

        assert cb.is_closed
        assert cb.failure_count == 0
        assert await cb.can_execute() is True

    def test_states_have_string_values(self) -> None:
        assert {s.value for s in CircuitState} == {"closed", "open", "half_open"}


@pytest.mark.parametrize("threshold", [1, 4])
async def test_open_circuit_rejects_until_recovery(threshold: int) -> None:
    cb = _breaker(threshold=threshold, recovery=3600.0)
    for _ in range(threshold):
        await cb.record_failure()

    assert await cb.can_execute() is False
    assert await cb.can_execute() is False
    assert cb.is_open

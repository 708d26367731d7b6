"""Shared circuit breaker used by every outbound integration.

CLOSED lets calls through and counts consecutive failures. Reaching the
threshold moves to OPEN, which rejects calls until recovery_timeout has
elapsed; the next call is then let through in HALF_OPEN. A success there
closes the circuit, a failure reopens it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""

    failure_threshold: int
    recovery_timeout: float


class CircuitBreaker:
    """Async-safe circuit breaker guarding one external service."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        """Get circuit breaker name."""
        return self._name

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get current consecutive failure count."""
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    @property
    def is_half_open(self) -> bool:
        return self._state == CircuitState.HALF_OPEN

    def _recovery_due(self) -> bool:
        if self._opened_at is None:
            return False
        return time.monotonic() - self._opened_at >= self._config.recovery_timeout

    def _move_to(self, new_state: CircuitState) -> None:
        """Switch state and log the transition."""
        previous = self._state
        self._state = new_state
        extra = {
            "circuit_name": self._name,
            "previous_state": previous.value,
            "new_state": new_state.value,
            "failure_count": self._failure_count,
        }
        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker opened",
                extra={**extra, "recovery_timeout": self._config.recovery_timeout},
            )
        else:
            logger.info("Circuit breaker state change", extra=extra)

    async def can_execute(self) -> bool:
        """Return True if a call may go out under the current state."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if not self._recovery_due():
                    return False
                self._move_to(CircuitState.HALF_OPEN)
            return True

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._opened_at = None
                self._move_to(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        """Record a failed call."""
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            ):
                self._opened_at = time.monotonic()
                self._move_to(CircuitState.OPEN)

    async def reset(self) -> None:
        """Force the circuit back to CLOSED with a clean failure count."""
        async with self._lock:
            self._failure_count = 0
            self._opened_at = None
            if self._state != CircuitState.CLOSED:
                self._move_to(CircuitState.CLOSED)

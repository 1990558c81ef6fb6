"""Circuit breaker for the engine's network-bound collaborators.

The discovery provider is the only remote dependency of a generation call.
When it keeps failing, the breaker opens and discovery is skipped outright
until recovery_timeout has elapsed; one trial call is then let through
(half-open). Success closes the circuit, failure re-opens it.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum

from linking_engine.core.logging import get_logger

logger = get_logger(__name__)


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
    """Counts consecutive provider failures and gates further calls."""

    def __init__(self, config: CircuitBreakerConfig, name: str = "default") -> None:
        self._config = config
        self._name = name
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN

    def _transition(self, new_state: CircuitState) -> None:
        previous = self._state
        self._state = new_state
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit breaker state change",
            extra={
                "circuit_name": self._name,
                "previous_state": previous.value,
                "new_state": new_state.value,
                "failure_count": self._failure_count,
                "recovery_timeout": self._config.recovery_timeout,
            },
        )

    async def can_execute(self) -> bool:
        """Return True when a call may be attempted."""
        async with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            assert self._opened_at is not None
            if time.monotonic() - self._opened_at >= self._config.recovery_timeout:
                self._transition(CircuitState.HALF_OPEN)
                return True
            return False

    async def record_success(self) -> None:
        async with self._lock:
            self._failure_count = 0
            self._opened_at = None
            if self._state != CircuitState.CLOSED:
                self._transition(CircuitState.CLOSED)

    async def record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            should_open = self._state == CircuitState.HALF_OPEN or (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self._config.failure_threshold
            )
            if should_open:
                self._opened_at = time.monotonic()
                self._transition(CircuitState.OPEN)

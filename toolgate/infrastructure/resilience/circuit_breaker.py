"""
Circuit Breaker pattern implementation.

Prevents hammering a failing upstream by:
- Opening the circuit after N consecutive failures
- Rejecting calls while open, until the recovery timeout elapses
- Admitting exactly one probe call in the half-open state
- Closing on probe success, reopening on probe failure
"""

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from toolgate.domain.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking calls
    HALF_OPEN = "half_open"  # One probe allowed


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    Configuration for circuit breaker.

    Attributes:
        failure_threshold: Consecutive failures before opening the circuit
        recovery_timeout: Seconds to stay open before admitting a probe
        exceptions: Exception types counted as failures (None = all)
    """

    failure_threshold: int = 3
    recovery_timeout: float = 60.0
    exceptions: tuple[type[Exception], ...] | None = None


@dataclass
class CircuitBreakerState:
    """
    Mutable breaker state. Only touched while holding the breaker lock.

    Timestamps come from the breaker clock (monotonic seconds by default).
    ``last_failure_wall_time`` is the wall-clock time for reporting.
    """

    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: float | None = None
    last_failure_time: float | None = None
    last_failure_wall_time: float | None = None
    probe_in_flight: bool = False


class CircuitBreaker:
    """
    Circuit breaker guarding one upstream dependency.

    Example:
        breaker = CircuitBreaker("llm", CircuitBreakerConfig(failure_threshold=3))
        try:
            response = await breaker.call(open_stream)
        except CircuitOpenError as e:
            print(f"retry in {e.retry_after}s")

    Every state transition happens under an asyncio lock so concurrent
    callers cannot lose updates or race for the half-open probe.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitBreakerState()
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        return self._state.state

    @property
    def failure_count(self) -> int:
        return self._state.consecutive_failures

    async def call(self, func: Callable[[], Coroutine[Any, Any, T]]) -> T:
        """
        Execute ``func`` with circuit breaker protection.

        Raises:
            CircuitOpenError: If the circuit is open, or half-open with the
                probe already taken. ``func`` is not invoked.
            Exception: Whatever ``func`` raises.
        """
        is_probe = await self._before_call()

        try:
            result = await func()
        except BaseException as e:
            await self._on_failure(e, is_probe)
            raise

        await self._on_success(is_probe)
        return result

    async def _before_call(self) -> bool:
        """Admit or reject a call. Returns True when the call is the half-open probe."""
        async with self._lock:
            if self._state.state == CircuitState.OPEN:
                if not self._should_attempt_reset():
                    raise CircuitOpenError(self._name, self._retry_after())
                self._transition_to_half_open()

            if self._state.state == CircuitState.HALF_OPEN:
                if self._state.probe_in_flight:
                    raise CircuitOpenError(self._name, self._retry_after())
                self._state.probe_in_flight = True
                return True

            return False

    async def _on_success(self, is_probe: bool) -> None:
        async with self._lock:
            if is_probe:
                self._state.probe_in_flight = False
                self._transition_to_closed()
            elif self._state.state == CircuitState.CLOSED:
                self._state.consecutive_failures = 0

    async def _on_failure(self, error: BaseException, is_probe: bool) -> None:
        async with self._lock:
            if is_probe:
                self._state.probe_in_flight = False

            if not isinstance(error, Exception):
                # Cancellation is not a failure of the dependency
                if is_probe:
                    self._state.state = CircuitState.OPEN
                return

            if self._config.exceptions and not isinstance(error, self._config.exceptions):
                if is_probe:
                    self._state.state = CircuitState.OPEN
                return

            self._state.consecutive_failures += 1
            self._state.last_failure_time = self._clock()
            self._state.last_failure_wall_time = time.time()

            if is_probe:
                self._transition_to_open()
            elif (
                self._state.state == CircuitState.CLOSED
                and self._state.consecutive_failures >= self._config.failure_threshold
            ):
                self._transition_to_open()

    def _should_attempt_reset(self) -> bool:
        if self._state.opened_at is None:
            return True
        return self._clock() - self._state.opened_at >= self._config.recovery_timeout

    def _retry_after(self) -> float:
        if self._state.opened_at is None:
            return 0.0
        elapsed = self._clock() - self._state.opened_at
        return max(0.0, self._config.recovery_timeout - elapsed)

    def _transition_to_open(self) -> None:
        self._state.state = CircuitState.OPEN
        self._state.opened_at = self._clock()
        logger.warning(
            f"Circuit breaker '{self._name}' opened after "
            f"{self._state.consecutive_failures} consecutive failures"
        )

    def _transition_to_half_open(self) -> None:
        self._state.state = CircuitState.HALF_OPEN
        self._state.probe_in_flight = False
        logger.info(f"Circuit breaker '{self._name}' transitioned to HALF_OPEN")

    def _transition_to_closed(self) -> None:
        self._state.state = CircuitState.CLOSED
        self._state.consecutive_failures = 0
        self._state.opened_at = None
        logger.info(f"Circuit breaker '{self._name}' closed after successful probe")

    def reset(self) -> None:
        """Reset circuit breaker to initial CLOSED state."""
        self._state = CircuitBreakerState()
        logger.info(f"Circuit breaker '{self._name}' reset to CLOSED state")

    def get_state(self) -> dict[str, Any]:
        """Get current circuit state as a JSON-friendly dictionary."""
        return {
            "name": self._name,
            "state": self._state.state.value,
            "failures": self._state.consecutive_failures,
            "last_failure_time": self._state.last_failure_wall_time,
            "retry_after": (
                self._retry_after() if self._state.state == CircuitState.OPEN else None
            ),
        }

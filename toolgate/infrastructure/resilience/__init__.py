"""Retry and circuit breaker primitives for upstream calls."""

from toolgate.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)
from toolgate.infrastructure.resilience.retry import RetryOptions, retry_with_backoff

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "RetryOptions",
    "retry_with_backoff",
]

"""Retry and circuit-breaker primitives for outbound calls."""

from job_catalog_sync.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerPolicy,
    CircuitBreakerRegistry,
    CircuitSnapshot,
    CircuitState,
)
from job_catalog_sync.infrastructure.resilience.retry import (
    RetryPolicy,
    backoff_delay,
    compose,
    is_retryable_error,
    retry_async,
    retrying,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerPolicy",
    "CircuitBreakerRegistry",
    "CircuitSnapshot",
    "CircuitState",
    "RetryPolicy",
    "backoff_delay",
    "compose",
    "is_retryable_error",
    "retry_async",
    "retrying",
]

"""Retry and circuit breaker helpers for the external AI call."""

from .breaker import CircuitBreaker, CircuitOpenError, CircuitState
from .retry import (
    RetryOptions,
    add_jitter,
    calculate_backoff_delay,
    retry_api_call,
    retry_with_backoff,
)

__all__ = [
    "CircuitBreaker",
    "CircuitOpenError",
    "CircuitState",
    "RetryOptions",
    "add_jitter",
    "calculate_backoff_delay",
    "retry_api_call",
    "retry_with_backoff",
]

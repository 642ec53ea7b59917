"""Three-state circuit breaker guarding the external AI endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from ..errors import AppError, ErrorCode, create_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitOpenError(AppError):
    """Raised without calling the dependency while the breaker is open."""

    def __init__(self, retry_after: float) -> None:
        base = create_error(
            ErrorCode.NETWORK_ERROR,
            "Service temporarily unavailable (circuit breaker is OPEN)",
        )
        super().__init__(
            code=base.code,
            message=base.message,
            user_message=base.user_message,
            suggestions=base.suggestions,
        )
        self.retry_after = retry_after


class CircuitBreaker:
    """Stops calling a dependency after repeated failures.

    The breaker opens once ``failure_threshold`` failures have accumulated
    since the last success. While open, calls fail fast with
    :class:`CircuitOpenError`. After ``recovery_timeout`` seconds the next
    call is let through as a probe (HALF_OPEN); its success closes the
    breaker, its failure opens it again.

    One instance is shared by all concurrent requests; state changes are
    made under an ``asyncio.Lock`` but the operation itself runs unlocked.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._clock = clock
        self._lock = asyncio.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> float:
        return self._last_failure_time

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            if self._state is CircuitState.OPEN:
                elapsed = self._clock() - self._last_failure_time
                if elapsed <= self._recovery_timeout:
                    raise CircuitOpenError(self._recovery_timeout - elapsed)
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit breaker HALF_OPEN after %.1fs", elapsed)

        try:
            result = await operation()
        except Exception:
            await self._on_failure()
            raise

        await self._on_success()
        return result

    async def reset(self) -> None:
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state is not CircuitState.CLOSED:
                logger.info("Circuit breaker CLOSED")
            self._failure_count = 0
            self._state = CircuitState.CLOSED

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            if self._failure_count >= self._failure_threshold:
                if self._state is not CircuitState.OPEN:
                    logger.warning(
                        "Circuit breaker OPEN after %d failures",
                        self._failure_count,
                    )
                self._state = CircuitState.OPEN

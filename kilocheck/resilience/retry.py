"""Exponential backoff retries for the AI extraction call."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from ..errors import API_RETRY_CODES, AppError, ErrorCode, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[int, BaseException], None]
SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class RetryOptions:
    max_retries: int = 3  # total attempts, including the first
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0
    backoff_multiplier: float = 1.5
    retryable_errors: frozenset[ErrorCode] = field(
        default_factory=lambda: API_RETRY_CODES
    )
    on_retry: RetryObserver | None = None
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        self.retryable_errors = frozenset(self.retryable_errors)


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    multiplier: float = 1.5,
    max_delay: float = 30.0,
) -> float:
    """Delay after the ``attempt``-th failure, capped at ``max_delay``."""
    return min(base_delay * multiplier ** (attempt - 1), max_delay)


def add_jitter(delay: float, jitter_factor: float = 0.1) -> float:
    return delay + delay * jitter_factor * random.random()


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or a terminal failure occurs.

    A failure is terminal when its code is not in
    ``options.retryable_errors`` (exceptions without an ErrorCode always
    are) or when ``options.max_retries`` attempts have been made. The last
    exception is re-raised unchanged.

    ``options.on_retry(attempt, error)`` is called once before each wait.
    """
    opts = options or RetryOptions()

    def _wait(state: RetryCallState) -> float:
        delay = calculate_backoff_delay(
            state.attempt_number,
            opts.base_delay,
            opts.backoff_multiplier,
            opts.max_delay,
        )
        return add_jitter(delay, opts.jitter_factor)

    def _before_sleep(state: RetryCallState) -> None:
        if opts.on_retry is not None and state.outcome is not None:
            opts.on_retry(state.attempt_number, state.outcome.exception())

    retrying = AsyncRetrying(
        stop=stop_after_attempt(opts.max_retries),
        wait=_wait,
        retry=retry_if_exception(lambda exc: is_retryable(exc, opts.retryable_errors)),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )

    # tenacity only awaits coroutine functions; lambdas and partials
    # returning awaitables must go through a real one.
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)


def _log_retry(attempt: int, error: BaseException) -> None:
    if isinstance(error, AppError):
        logger.warning(
            "AI call failed (attempt %d): code=%s recoverable=%s message=%s",
            attempt,
            error.code.value,
            error.recoverable,
            error.message,
        )
    else:
        logger.warning("AI call failed (attempt %d): %r", attempt, error)


async def retry_api_call(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """``retry_with_backoff`` with the canonical API policy and retry logging.

    A caller-supplied observer runs after the log line.
    """
    opts = options or RetryOptions()
    observer = opts.on_retry

    def _on_retry(attempt: int, error: BaseException) -> None:
        _log_retry(attempt, error)
        if observer is not None:
            observer(attempt, error)

    return await retry_with_backoff(operation, replace(opts, on_retry=_on_retry), sleep)

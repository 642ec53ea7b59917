"""Tests for backoff retries (no real sleeping)."""

import functools

import pytest

from kilocheck.errors import AppError, ErrorCode, create_error
from kilocheck.resilience import (
    RetryOptions,
    add_jitter,
    calculate_backoff_delay,
    retry_api_call,
    retry_with_backoff,
)


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FlakyOperation:
    """Fails with the given errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


def _coroutine_function(op):
    async def run():
        return await op()

    return run


def _lambda(op):
    return lambda: op()


def _partial(op):
    return functools.partial(_invoke, op)


def _invoke(op):
    return op()


OPERATION_SHAPES = pytest.mark.parametrize(
    "wrap", [_coroutine_function, _lambda, _partial], ids=["async-def", "lambda", "partial"]
)


class TestBackoffDelay:
    def test_first_attempt_is_base(self):
        assert calculate_backoff_delay(1, 1.0, 1.5, 30.0) == 1.0

    def test_grows_geometrically(self):
        assert calculate_backoff_delay(2, 1.0, 1.5, 30.0) == 1.5
        assert calculate_backoff_delay(3, 1.0, 1.5, 30.0) == 2.25

    def test_capped(self):
        assert calculate_backoff_delay(20, 1.0, 1.5, 30.0) == 30.0

    def test_jitter_bounds(self):
        for _ in range(50):
            delay = add_jitter(2.0, 0.1)
            assert 2.0 <= delay <= 2.2

    def test_no_jitter(self):
        assert add_jitter(2.0, 0.0) == 2.0


class TestRetryOptions:
    def test_defaults(self):
        opts = RetryOptions()
        assert opts.max_retries == 3
        assert opts.base_delay == 1.0
        assert opts.max_delay == 30.0
        assert opts.backoff_multiplier == 1.5
        assert ErrorCode.NETWORK_ERROR in opts.retryable_errors

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryOptions(max_retries=0)

    def test_retryable_errors_frozen(self):
        opts = RetryOptions(retryable_errors={ErrorCode.NETWORK_ERROR})
        assert isinstance(opts.retryable_errors, frozenset)


class TestRetryWithBackoff:
    @pytest.mark.asyncio
    async def test_succeeds_first_try(self):
        sleep = FakeSleep()
        op = FlakyOperation([])
        assert await retry_with_backoff(op, sleep=sleep) == "ok"
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_network_errors(self):
        sleep = FakeSleep()
        op = FlakyOperation(
            [create_error(ErrorCode.NETWORK_ERROR), create_error(ErrorCode.NETWORK_ERROR)]
        )
        assert await retry_with_backoff(op, RetryOptions(max_retries=3), sleep=sleep) == "ok"
        assert op.calls == 3
        assert len(sleep.delays) == 2
        assert 1.0 <= sleep.delays[0] <= 1.1
        assert 1.5 <= sleep.delays[1] <= 1.65

    @pytest.mark.asyncio
    async def test_user_error_not_retried(self):
        sleep = FakeSleep()
        op = FlakyOperation([create_error(ErrorCode.INVALID_IMAGE_FORMAT)])
        with pytest.raises(Exception) as exc_info:
            await retry_with_backoff(op, sleep=sleep)
        assert exc_info.value.code is ErrorCode.INVALID_IMAGE_FORMAT
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_plain_exception_not_retried(self):
        op = FlakyOperation([RuntimeError("boom")])
        with pytest.raises(RuntimeError, match="boom"):
            await retry_with_backoff(op, sleep=FakeSleep())
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        errors = [create_error(ErrorCode.API_RATE_LIMIT, f"attempt {i}") for i in range(5)]
        op = FlakyOperation(errors)
        with pytest.raises(Exception) as exc_info:
            await retry_with_backoff(op, RetryOptions(max_retries=3), sleep=FakeSleep())
        assert op.calls == 3
        assert exc_info.value.message == "attempt 2"

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        op = FlakyOperation([create_error(ErrorCode.NETWORK_ERROR)])
        with pytest.raises(Exception):
            await retry_with_backoff(op, RetryOptions(max_retries=1), sleep=FakeSleep())
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_observer_called_before_each_wait(self):
        seen = []
        op = FlakyOperation(
            [create_error(ErrorCode.API_ERROR), create_error(ErrorCode.NETWORK_ERROR)]
        )
        opts = RetryOptions(on_retry=lambda attempt, err: seen.append((attempt, err.code)))
        await retry_with_backoff(op, opts, sleep=FakeSleep())
        assert seen == [(1, ErrorCode.API_ERROR), (2, ErrorCode.NETWORK_ERROR)]

    @pytest.mark.asyncio
    async def test_custom_retryable_set(self):
        op = FlakyOperation([create_error(ErrorCode.API_ERROR)])
        opts = RetryOptions(retryable_errors={ErrorCode.NETWORK_ERROR})
        with pytest.raises(Exception):
            await retry_with_backoff(op, opts, sleep=FakeSleep())
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_delay_capped(self):
        sleep = FakeSleep()
        op = FlakyOperation([create_error(ErrorCode.NETWORK_ERROR)] * 3)
        opts = RetryOptions(
            max_retries=4, base_delay=10.0, backoff_multiplier=3.0, max_delay=12.0
        )
        await retry_with_backoff(op, opts, sleep=sleep)
        assert all(d <= 12.0 * 1.1 for d in sleep.delays)
        assert 12.0 <= sleep.delays[-1]


class TestRetryApiCall:
    @pytest.mark.asyncio
    async def test_logs_and_calls_observer(self, caplog):
        seen = []
        op = FlakyOperation([create_error(ErrorCode.NETWORK_ERROR, "reset by peer")])
        opts = RetryOptions(on_retry=lambda attempt, err: seen.append(attempt))
        with caplog.at_level("WARNING", logger="kilocheck.resilience.retry"):
            assert await retry_api_call(op, opts, sleep=FakeSleep()) == "ok"
        assert seen == [1]
        assert "NETWORK_ERROR" in caplog.text
        assert "reset by peer" in caplog.text

    @pytest.mark.asyncio
    async def test_does_not_mutate_options(self):
        opts = RetryOptions()
        await retry_api_call(FlakyOperation([]), opts, sleep=FakeSleep())
        assert opts.on_retry is None


class TestOperationShapes:
    @OPERATION_SHAPES
    @pytest.mark.asyncio
    async def test_success_returns_value(self, wrap):
        op = FlakyOperation([], result={"price": 2.5})
        result = await retry_with_backoff(wrap(op), sleep=FakeSleep())
        assert result == {"price": 2.5}
        assert op.calls == 1

    @OPERATION_SHAPES
    @pytest.mark.asyncio
    async def test_failures_are_retried(self, wrap):
        sleep = FakeSleep()
        op = FlakyOperation(
            [create_error(ErrorCode.NETWORK_ERROR), create_error(ErrorCode.API_RATE_LIMIT)]
        )
        result = await retry_with_backoff(wrap(op), RetryOptions(max_retries=3), sleep=sleep)
        assert result == "ok"
        assert op.calls == 3
        assert len(sleep.delays) == 2

    @OPERATION_SHAPES
    @pytest.mark.asyncio
    async def test_non_retryable_propagates(self, wrap):
        op = FlakyOperation([create_error(ErrorCode.NO_PRICE_DETECTED)])
        with pytest.raises(AppError) as exc_info:
            await retry_with_backoff(wrap(op), sleep=FakeSleep())
        assert exc_info.value.code is ErrorCode.NO_PRICE_DETECTED
        assert op.calls == 1

    @OPERATION_SHAPES
    @pytest.mark.asyncio
    async def test_retry_api_call(self, wrap):
        op = FlakyOperation([create_error(ErrorCode.API_ERROR)], result=5.0)
        assert await retry_api_call(wrap(op), sleep=FakeSleep()) == 5.0
        assert op.calls == 2

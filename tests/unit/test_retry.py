"""Unit tests for retry with exponential backoff."""

import pytest

from wavegate.utils.errors import CommandError
from wavegate.utils.retry import RetryExhaustedError, RetryStrategy, with_retry


@pytest.mark.parametrize("attempts,delay", [(1, 5), (3, 5), (4, 2), (5, 0)])
def test_always_failing_operation_sleeps_closed_form_total(clock, attempts, delay):
    calls = []

    def fail():
        calls.append(clock())
        raise CommandError("apply failed")

    strategy = RetryStrategy(max_attempts=attempts, initial_delay=delay, sleep=clock.sleep)
    with pytest.raises(RetryExhaustedError) as exc_info:
        strategy.execute(fail)

    assert len(calls) == attempts
    assert sum(clock.sleeps) == delay * (2 ** (attempts - 1) - 1)
    assert exc_info.value.attempts == attempts
    assert isinstance(exc_info.value.last_error, CommandError)


def test_delays_double_between_attempts(clock):
    strategy = RetryStrategy(max_attempts=4, initial_delay=5, sleep=clock.sleep)

    with pytest.raises(RetryExhaustedError):
        strategy.execute(lambda: 1 / 0)

    assert clock.sleeps == [5, 10, 20]


def test_success_after_failures_returns_result(clock):
    results = iter([CommandError("timeout"), CommandError("timeout"), "applied"])

    def flaky():
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    strategy = RetryStrategy(max_attempts=3, initial_delay=5, sleep=clock.sleep)

    assert strategy.execute(flaky) == "applied"
    assert clock.sleeps == [5, 10]


def test_non_retryable_errors_propagate_immediately(clock):
    calls = []

    def bad():
        calls.append(1)
        raise KeyError("missing")

    strategy = RetryStrategy(max_attempts=3, initial_delay=5, retryable=(CommandError,), sleep=clock.sleep)

    with pytest.raises(KeyError):
        strategy.execute(bad)
    assert calls == [1]
    assert clock.sleeps == []


@pytest.mark.parametrize("attempts,delay", [(0, 5), (3, -1)])
def test_invalid_parameters_rejected(attempts, delay):
    with pytest.raises(ValueError):
        RetryStrategy(max_attempts=attempts, initial_delay=delay)


def test_decorator_retries_wrapped_function():
    calls = []

    @with_retry(max_attempts=2, initial_delay=0)
    def apply():
        calls.append(1)
        if len(calls) == 1:
            raise CommandError("flaky")
        return "ok"

    assert apply() == "ok"
    assert len(calls) == 2


def test_fatal_errors_propagate_without_retry(clock):
    calls = []

    def rejected():
        calls.append(1)
        raise ValueError("rejected")

    strategy = RetryStrategy(max_attempts=3, initial_delay=5, fatal=(ValueError,), sleep=clock.sleep)

    with pytest.raises(ValueError):
        strategy.execute(rejected)
    assert calls == [1]
    assert clock.sleeps == []

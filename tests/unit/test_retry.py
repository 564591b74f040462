"""
Unit Tests: Retry Pattern

- Exponential backoff и потолок задержки
- Jitter
- Retry exceptions vs non-retry exceptions
- Max attempts
- Статистика RetryableOperation
- Decorator API
"""

import pytest
from unittest.mock import Mock

from companion_core.core.retry import (
    RetryableOperation,
    RetryConfig,
    RetryExhaustedError,
    _calculate_delay,
    retry_with_backoff,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def retry_config():
    """Без задержек для быстрых тестов"""
    return RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0)


# ============================================================================
# DELAY CALCULATION
# ============================================================================

def test_exponential_backoff_doubles_delay():
    """
    Тест: base * 2^(attempt-1)
    """
    delays = [_calculate_delay(n, 1.0, 60.0, 2.0, jitter=False) for n in (1, 2, 3, 4)]

    assert delays == [1.0, 2.0, 4.0, 8.0]


def test_delay_is_capped_by_max_delay():
    assert _calculate_delay(10, 1.0, 5.0, 2.0, jitter=False) == 5.0


def test_jitter_stays_within_half_range():
    for _ in range(50):
        delay = _calculate_delay(2, 1.0, 60.0, 2.0, jitter=True)
        assert 1.0 <= delay <= 3.0


def test_zero_delay_is_not_jittered():
    assert _calculate_delay(3, 0.0, 0.0, 2.0, jitter=True) == 0.0


def test_invalid_max_attempts():
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)


# ============================================================================
# RETRYABLE OPERATION
# ============================================================================

@pytest.mark.asyncio
async def test_operation_succeeds_after_transient_failures(retry_config):
    """
    Тест: Две ошибки, затем успех -> результат без ошибки
    """
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError("temporary")
        return "ok"

    operation = RetryableOperation("flaky", retry_config)
    result = await operation.execute(flaky)

    assert result == "ok"
    assert operation.attempt == 3
    stats = operation.get_stats()
    assert stats["total_attempts"] == 3
    assert stats["failed_attempts"] == 2
    assert stats["successful_attempts"] == 1
    assert stats["success_rate"] == pytest.approx(33.33)


@pytest.mark.asyncio
async def test_operation_exhausts_attempts(retry_config):
    """
    Тест: После max_attempts -> RetryExhaustedError с последней ошибкой
    """
    async def always_failing():
        raise ConnectionError("down")

    operation = RetryableOperation("always_failing", retry_config)

    with pytest.raises(RetryExhaustedError) as exc_info:
        await operation.execute(always_failing)

    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, ConnectionError)
    assert "ConnectionError" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_retryable_exception_is_raised_immediately():
    """
    Тест: Исключение вне retry_exceptions пробрасывается как есть
    """
    calls = 0

    async def bad_input():
        nonlocal calls
        calls += 1
        raise KeyError("missing")

    config = RetryConfig(max_attempts=3, base_delay=0.0, retry_exceptions=(ConnectionError,))
    operation = RetryableOperation("bad_input", config)

    with pytest.raises(KeyError):
        await operation.execute(bad_input)

    assert calls == 1


@pytest.mark.asyncio
async def test_on_retry_callback_receives_attempt_and_error(retry_config):
    on_retry = Mock()

    async def failing():
        raise TimeoutError("slow")

    operation = RetryableOperation("failing", retry_config, on_retry=on_retry)

    with pytest.raises(RetryExhaustedError):
        await operation.execute(failing)

    assert on_retry.call_count == 2
    assert on_retry.call_args_list[0].args[0] == 1
    assert isinstance(on_retry.call_args_list[1].args[1], TimeoutError)


@pytest.mark.asyncio
async def test_broken_callback_does_not_stop_retry(retry_config):
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ConnectionError("once")
        return calls

    operation = RetryableOperation("flaky", retry_config, on_retry=Mock(side_effect=RuntimeError("boom")))

    assert await operation.execute(flaky) == 2


# ============================================================================
# DECORATOR
# ============================================================================

@pytest.mark.asyncio
async def test_decorator_retries_and_passes_arguments(retry_config):
    """
    Тест: Декоратор повторяет вызов с теми же аргументами
    """
    seen = []

    @retry_with_backoff(retry_config)
    async def incr(key, amount=1):
        seen.append((key, amount))
        if len(seen) < 2:
            raise ConnectionError("reset")
        return amount

    assert await incr("counter", amount=5) == 5
    assert seen == [("counter", 5), ("counter", 5)]
    assert incr.__name__ == "incr"

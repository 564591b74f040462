"""
Retry with exponential backoff

Повтор временных сбоев внешних вызовов (генеративный сервис).

- Exponential backoff: base_delay * 2^(attempt-1), с потолком max_delay
- Опциональный jitter (±50%)
- Фильтр retry-able исключений: остальные пробрасываются сразу

Usage:
    operation = RetryableOperation("trait_analysis", RetryConfig(max_attempts=3))
    payload = await operation.execute(self._attempt, prompt)
"""

import asyncio
import logging
import random
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryExhaustedError(Exception):
    """
    Все попытки исчерпаны. Хранит последнюю ошибку.
    """
    def __init__(self, operation_name: str, attempts: int, last_error: Exception):
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Retry exhausted for '{operation_name}' after {attempts} attempts. "
            f"Last error: {type(last_error).__name__}: {last_error}"
        )


class RetryConfig:
    """
    Параметры retry стратегии

    Args:
        max_attempts: Максимум попыток (включая первую)
        base_delay: Базовая задержка в секундах
        max_delay: Потолок задержки
        exponential_base: База экспоненты
        jitter: Случайный разброс задержки
        retry_exceptions: Какие исключения повторять (None = все)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = False,
        retry_exceptions: Optional[Tuple[Type[Exception], ...]] = None
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retry_exceptions = retry_exceptions

    def should_retry(self, exception: Exception) -> bool:
        if self.retry_exceptions is None:
            return True
        return isinstance(exception, self.retry_exceptions)

    def delay_for(self, attempt: int) -> float:
        return _calculate_delay(
            attempt=attempt,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter
        )


def _calculate_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool
) -> float:
    """
    Задержка перед следующей попыткой

    Args:
        attempt: Номер неудачной попытки (1-based)

    Returns:
        Задержка в секундах
    """
    delay = base_delay * (exponential_base ** (attempt - 1))
    delay = min(delay, max_delay)

    if jitter and delay > 0:
        jitter_range = delay * 0.5
        delay = delay + random.uniform(-jitter_range, jitter_range)
        delay = max(0.1, delay)  # Минимум 0.1s

    return delay


class RetryableOperation:
    """
    Retry операции со статистикой попыток
    """

    def __init__(
        self,
        operation_name: str,
        config: Optional[RetryConfig] = None,
        on_retry: Optional[Callable[[int, Exception], None]] = None
    ):
        self.operation_name = operation_name
        self.config = config or RetryConfig()
        self.on_retry = on_retry

        self.attempt = 0
        self.start_time: Optional[datetime] = None
        self.last_error: Optional[Exception] = None

        self.stats = {
            "total_attempts": 0,
            "successful_attempts": 0,
            "failed_attempts": 0,
            "total_retry_time": 0.0
        }

    async def execute(self, func: Callable, *args, **kwargs) -> Any:
        """
        Выполняет операцию с retry

        Raises:
            RetryExhaustedError: Если исчерпаны попытки
            Exception: Не retry-able исключение пробрасывается как есть
        """
        self.attempt = 0
        self.start_time = datetime.now()

        while True:
            self.attempt += 1
            self.stats["total_attempts"] += 1

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                self.last_error = e
                self.stats["failed_attempts"] += 1

                if not self.config.should_retry(e):
                    logger.debug(
                        f"Non-retryable exception {type(e).__name__} "
                        f"in '{self.operation_name}'"
                    )
                    raise

                elapsed = (datetime.now() - self.start_time).total_seconds()

                if self.attempt >= self.config.max_attempts:
                    self.stats["total_retry_time"] += elapsed
                    logger.error(
                        f"RetryableOperation '{self.operation_name}' failed "
                        f"after {self.attempt} attempts ({elapsed:.2f}s). "
                        f"Error: {type(e).__name__}: {e}"
                    )
                    raise RetryExhaustedError(self.operation_name, self.attempt, e) from e

                delay = self.config.delay_for(self.attempt)
                logger.warning(
                    f"RetryableOperation '{self.operation_name}' "
                    f"retry {self.attempt}/{self.config.max_attempts} "
                    f"after {delay:.2f}s. Error: {type(e).__name__}: {e}"
                )

                if self.on_retry:
                    try:
                        self.on_retry(self.attempt, e)
                    except Exception as callback_error:
                        logger.error(f"Error in on_retry callback: {callback_error}")

                await asyncio.sleep(delay)
                continue

            self.stats["successful_attempts"] += 1
            if self.attempt > 1:
                elapsed = (datetime.now() - self.start_time).total_seconds()
                self.stats["total_retry_time"] += elapsed
                logger.info(
                    f"RetryableOperation '{self.operation_name}' succeeded "
                    f"on attempt {self.attempt}/{self.config.max_attempts} "
                    f"(elapsed: {elapsed:.2f}s)"
                )
            return result

    def get_stats(self) -> dict:
        """Статистика попыток"""
        success_rate = 0.0
        if self.stats["total_attempts"] > 0:
            success_rate = (
                self.stats["successful_attempts"] / self.stats["total_attempts"]
            ) * 100

        return {
            "operation_name": self.operation_name,
            "success_rate": round(success_rate, 2),
            **self.stats
        }


def retry_with_backoff(
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, Exception], None]] = None
):
    """
    Decorator-обертка над RetryableOperation

    Example:
        @retry_with_backoff(RetryConfig(max_attempts=5, base_delay=0.5))
        async def incr(key):
            return await redis.incr(key)
    """

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            operation = RetryableOperation(func.__name__, config, on_retry)
            return await operation.execute(func, *args, **kwargs)

        return wrapper

    return decorator

"""Retry strategy with deterministic exponential backoff for transient failures."""

import time
from typing import Callable, TypeVar, Optional, Tuple, Type
from functools import wraps
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class RetryExhaustedError(Exception):
    """Raised when every attempt of a retried operation has failed."""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"Operation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryStrategy:
    """Bounded retry with a delay that doubles after every failed attempt.

    There is no jitter: for ``max_attempts`` N and ``initial_delay`` D an
    operation that always fails sleeps ``D * (2 ** (N - 1) - 1)`` seconds in
    total, since nothing is slept after the final attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 5.0,
        retryable: Tuple[Type[BaseException], ...] = (Exception,),
        fatal: Tuple[Type[BaseException], ...] = (),
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize retry strategy.

        Args:
            max_attempts: Maximum number of invocations (>= 1)
            initial_delay: Delay in seconds after the first failure (>= 0)
            retryable: Exception types that trigger a retry; others propagate
            fatal: Exception types that propagate at once even when retryable
            sleep: Sleep function, injectable for tests
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {initial_delay}")

        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.retryable = retryable
        self.fatal = fatal
        self._sleep = sleep

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after a failed attempt.

        Args:
            attempt: Failed attempt number (0-indexed)

        Returns:
            Delay in seconds before the next attempt
        """
        return self.initial_delay * (2 ** attempt)

    def execute(
        self,
        func: Callable[..., T],
        *args,
        **kwargs
    ) -> T:
        """Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the first successful call

        Raises:
            RetryExhaustedError: If every attempt failed with a retryable error
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                result = func(*args, **kwargs)

                if attempt > 0:
                    logger.info(f"Operation succeeded on attempt {attempt + 1}/{self.max_attempts}")

                return result

            except self.fatal:
                raise
            except self.retryable as e:
                last_exception = e

                if attempt + 1 >= self.max_attempts:
                    break

                delay = self.get_delay(attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_attempts} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.0f}s..."
                )
                self._sleep(delay)

        logger.error(f"Operation failed after {self.max_attempts} attempts")
        raise RetryExhaustedError(self.max_attempts, last_exception)


def with_retry(
    max_attempts: int = 3,
    initial_delay: float = 5.0,
    retryable: Tuple[Type[BaseException], ...] = (Exception,)
):
    """Decorator to add retry logic to a function.

    Args:
        max_attempts: Maximum number of invocations
        initial_delay: Delay in seconds after the first failure
        retryable: Exception types that trigger a retry

    Returns:
        Decorated function with retry logic

    Example:
        @with_retry(max_attempts=3, initial_delay=5)
        def apply_install_manifest(kubectl, url):
            kubectl.apply_url(url, namespace='argocd')
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            strategy = RetryStrategy(
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                retryable=retryable
            )
            return strategy.execute(func, *args, **kwargs)

        return wrapper

    return decorator

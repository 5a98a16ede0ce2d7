"""
Retry utility with exponential backoff for Finnhub API calls.

The retry loop is an explicit state machine so its timing and exit
conditions can be inspected:

    ATTEMPTING -> SUCCEEDED
    ATTEMPTING -> WAITING -> ATTEMPTING ...
    ATTEMPTING -> EXHAUSTED_FALLBACK   (after the last attempt fails)

Rate-limited attempts wait a fixed delay instead of the exponential one.
Both kinds of failure use up an attempt.
"""
import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx

from ..config import settings
from ..logging_config import get_logger
from .finnhub_client import RateLimitError

logger = get_logger(__name__)

# Common rate limit error indicators in exception messages
RATE_LIMIT_INDICATORS = (
    "rate limit",
    "too many requests",
    "429",
    "throttl",
)


class RetryState(str, Enum):
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    EXHAUSTED_FALLBACK = "exhausted_fallback"


class RetryExhaustedError(Exception):
    """Raised when every attempt failed. The last error is chained as __cause__."""

    def __init__(self, description: str, attempts: int, last_exception: Exception):
        super().__init__(f"All {attempts} attempts failed for {description}: {last_exception}")
        self.attempts = attempts
        self.last_exception = last_exception


def is_rate_limit_error(exception: Exception) -> bool:
    """
    Check if an exception appears to be a rate limit error.

    Args:
        exception: The exception to check.

    Returns:
        True if the exception is a RateLimitError or its message suggests one.
    """
    if isinstance(exception, RateLimitError):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        # The message embeds the request URL, so go by status code
        return exception.response.status_code == 429
    error_msg = str(exception).lower()
    return any(indicator in error_msg for indicator in RATE_LIMIT_INDICATORS)


class RetryPolicy:
    """
    Bounded retry with exponential backoff and a fixed rate-limit delay.

    The delay after a failed attempt i (0-based) is:
        rate_limit_delay                              if rate limited
        min(base_delay * (2 ^ i), max_delay)          otherwise

    Each call to run() records (state, attempt, delay) tuples in ``trace``.
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        rate_limit_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Args:
            max_retries: Retries after the first attempt. Defaults to config value.
            base_delay: Initial backoff delay in seconds. Defaults to config value.
            rate_limit_delay: Fixed wait after a 429. Defaults to config value.
            max_delay: Backoff cap in seconds. Defaults to config value.
            sleep: Awaitable sleep function. Defaults to asyncio.sleep.
        """
        self.max_retries = max_retries if max_retries is not None else settings.history_max_retries
        self.base_delay = base_delay if base_delay is not None else settings.history_base_delay
        self.rate_limit_delay = (
            rate_limit_delay if rate_limit_delay is not None else settings.history_rate_limit_delay
        )
        self.max_delay = max_delay if max_delay is not None else settings.history_max_delay
        self._sleep = sleep or asyncio.sleep
        self.state = RetryState.ATTEMPTING
        self.trace: List[Tuple[RetryState, int, float]] = []

    def delay_for(self, attempt: int, exception: Exception) -> float:
        if is_rate_limit_error(exception):
            return self.rate_limit_delay
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def _transition(self, state: RetryState, attempt: int, delay: float = 0.0) -> None:
        self.state = state
        self.trace.append((state, attempt, delay))

    async def run(
        self,
        request_func: Callable[[], Awaitable[Any]],
        description: str = "Finnhub API request",
    ) -> Any:
        """
        Execute a request with retries.

        Args:
            request_func: Zero-argument coroutine function making the request.
            description: Description for logging purposes.

        Returns:
            The result of request_func.

        Raises:
            RetryExhaustedError: If every attempt failed.
        """
        self.trace = []
        attempts = self.max_retries + 1
        last_exception: Optional[Exception] = None

        for attempt in range(attempts):
            self._transition(RetryState.ATTEMPTING, attempt)
            try:
                result = await request_func()
            except Exception as e:
                last_exception = e
            else:
                self._transition(RetryState.SUCCEEDED, attempt)
                return result

            # No wait after the final attempt
            if attempt >= self.max_retries:
                break

            delay = self.delay_for(attempt, last_exception)
            rate_limited = is_rate_limit_error(last_exception)
            log_msg = (
                f"Retry {attempt + 1}/{self.max_retries} for {description}: "
                f"{'Rate limited' if rate_limited else 'Error'} - {last_exception}. "
                f"Waiting {delay:.1f}s..."
            )
            if rate_limited:
                logger.warning(log_msg)
            else:
                logger.debug(log_msg)

            self._transition(RetryState.WAITING, attempt, delay)
            await self._sleep(delay)

        self._transition(RetryState.EXHAUSTED_FALLBACK, attempts - 1)
        logger.error(f"All {attempts} attempts exhausted for {description}: {last_exception}")
        raise RetryExhaustedError(description, attempts, last_exception) from last_exception

"""Retry/backoff executor shared by every adapter call."""
import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import ErrorClass, RateLimitError, ValidationError, classify_error
from ..utils.logger import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")

Classifier = Callable[[BaseException], ErrorClass]
DelayFn = Callable[[int], float]


def linear_backoff(base_delay: float = 0.45) -> DelayFn:
    """Delay of ``base_delay * attempt`` seconds after the given failed attempt."""
    def delay(attempt: int) -> float:
        return base_delay * attempt
    return delay


class RetryExecutor:
    """Runs an async thunk, retrying transient failures a bounded number of times.

    Terminal errors, and the last transient error once attempts run out, are
    re-raised unchanged. A :class:`RateLimitError` whose ``retry_after`` is
    longer than the computed delay is waited out in full.

    Example:
        >>> retry = RetryExecutor(max_attempts=3)
        >>> result = await retry.execute(lambda: adapter.search(params))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        classify: Classifier = classify_error,
        delay: Optional[DelayFn] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.classify = classify
        self.delay = delay or linear_backoff()
        self._sleep = sleep

    async def execute(self, thunk: Callable[[], Awaitable[T]]) -> T:
        """Invoke ``thunk`` until it succeeds, fails terminally or runs out of attempts."""
        attempt = 1
        while True:
            try:
                return await thunk()
            except Exception as error:
                if self.classify(error) is ErrorClass.TERMINAL or attempt >= self.max_attempts:
                    raise
                wait = self._wait_for(error, attempt)
                logger.warning(
                    f"Transient failure, retrying in {wait:.2f}s: {error}",
                    attempt=f"{attempt}/{self.max_attempts}",
                )
                await self._sleep(wait)
                attempt += 1

    def _wait_for(self, error: BaseException, attempt: int) -> float:
        wait = max(0.0, float(self.delay(attempt)))
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            wait = max(wait, float(error.retry_after))
        return wait

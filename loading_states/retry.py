"""Retry logic with exponential backoff for tracked operations.

Attempt ``i`` (1-indexed) that fails while attempts remain is followed by a
sleep of ``base_delay * 2 ** (i - 1)`` seconds. Attempts run strictly one
after another. The last error is re-raised unchanged.
"""

from __future__ import annotations

import inspect
import random
from typing import Any, Callable, Optional, TypeVar

from loading_states.clock import DEFAULT_CLOCK, OperationClock
from loading_states.config import LOADING
from loading_states.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


def calculate_backoff(attempt: int, base_delay: float, jitter: bool = False) -> float:
    """Calculate the delay after a failed attempt.

    Args:
        attempt: The attempt that just failed (1-indexed)
        base_delay: Delay after the first failure, in seconds
        jitter: Whether to randomize the delay (between 0 and twice the delay)

    Returns:
        Delay in seconds before the next attempt

    Example:
        >>> calculate_backoff(1, 1.0)
        1.0
        >>> calculate_backoff(3, 1.0)
        4.0
    """
    delay = base_delay * (2 ** (max(1, attempt) - 1))

    if jitter and delay > 0:
        delay = random.uniform(0, delay * 2)  # noqa: S311

    return delay


class RetryCoordinator:
    """Runs an operation with bounded, sequential retries.

    ``attempt`` and ``is_retrying`` can be read while an operation runs, e.g.
    to render "retrying (2/3)". Both return to their idle values once the
    operation settles.

    Attributes:
        attempts: Default maximum attempts, including the first
        base_delay: Default backoff base in seconds
        jitter: Randomize backoff delays (off by default)
        attempt: Current attempt number, 0 when idle
        is_retrying: True from the first failure until the operation settles
        last_error: Most recent failure, if any
    """

    def __init__(
        self,
        attempts: int = LOADING.RETRY_ATTEMPTS,
        base_delay: float = LOADING.RETRY_DELAY_SEC,
        clock: OperationClock = DEFAULT_CLOCK,
        jitter: bool = False,
        on_retry: Optional[RetryCallback] = None,
    ) -> None:
        self.attempts = attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self.on_retry = on_retry
        self.attempt = 0
        self.is_retrying = False
        self.last_error: Optional[BaseException] = None
        self._clock = clock

    async def execute_with_retry(
        self,
        operation: Callable[[], Any],
        attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> Any:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Callable returning an awaitable (or a plain value)
            attempts: Maximum attempts for this call (default: self.attempts)
            base_delay: Backoff base for this call (default: self.base_delay)

        Returns:
            The operation's result

        Raises:
            Exception: The last error once every attempt failed
        """
        max_attempts = max(1, int(self.attempts if attempts is None else attempts))
        delay_base = self.base_delay if base_delay is None else base_delay

        try:
            for attempt in range(1, max_attempts + 1):
                self.attempt = attempt
                try:
                    result = operation()
                    if inspect.isawaitable(result):
                        result = await result
                    return result
                except Exception as exc:
                    self.last_error = exc

                    if attempt >= max_attempts:
                        if max_attempts > 1:
                            logger.debug("Retry exhausted after %d attempts: %s", attempt, exc)
                        raise

                    delay = calculate_backoff(attempt, delay_base, self.jitter)
                    logger.debug(
                        "Attempt %d/%d failed, retrying in %.2fs: %s",
                        attempt,
                        max_attempts,
                        delay,
                        exc,
                    )

                    if self.on_retry:
                        self.on_retry(attempt, exc, delay)

                    self.is_retrying = True
                    await self._clock.sleep(delay)
        finally:
            self.attempt = 0
            self.is_retrying = False

        # Unreachable: the loop either returns or raises
        raise RuntimeError("execute_with_retry: no attempts executed")


async def execute_with_retry(
    operation: Callable[[], Any],
    attempts: int = LOADING.RETRY_ATTEMPTS,
    base_delay: float = LOADING.RETRY_DELAY_SEC,
) -> Any:
    """Run ``operation`` with a throwaway RetryCoordinator."""
    return await RetryCoordinator(attempts, base_delay).execute_with_retry(operation)

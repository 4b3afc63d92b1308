"""Timer primitives shared by the coordinator.

Thin wrappers over the running asyncio event loop: a monotonic ``now()``,
cancellable one-shot timers, sleeping, racing a task against a timeout and a
repeating background loop. Every other component takes an ``OperationClock``
so the timer source stays in one place.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from loading_states.logging_config import get_logger

logger = get_logger(__name__)


class Timer:
    """Handle for a one-shot callback scheduled on the event loop.

    Unlike a bare ``asyncio.TimerHandle`` it knows whether it already fired,
    so owners can tell a pending timer from a spent one.
    """

    def __init__(self, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        self._callback = callback
        self._args = args
        self._fired = False
        self._loop = asyncio.get_running_loop()
        self._handle = self._loop.call_later(delay, self._run)

    def _run(self) -> None:
        self._fired = True
        self._callback(*self._args)

    @property
    def active(self) -> bool:
        """True while the callback is still pending."""
        return not self._fired and not self._handle.cancelled()

    @property
    def remaining(self) -> float:
        """Seconds until the callback runs, 0 once it is no longer pending."""
        if not self.active:
            return 0.0
        return max(0.0, self._handle.when() - self._loop.time())

    def cancel(self) -> None:
        """Cancel the callback; a no-op once fired."""
        self._handle.cancel()


class OperationClock:
    """Wall-clock and timer source for the coordinator."""

    def now(self) -> float:
        """Monotonic time in seconds."""
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Timer:
        """Schedule ``callback(*args)`` after ``delay`` seconds.

        Must be called from inside a running event loop.
        """
        return Timer(max(0.0, delay), callback, *args)

    async def sleep(self, delay: float) -> None:
        """Suspend the current task for ``delay`` seconds."""
        if delay > 0:
            await asyncio.sleep(delay)

    async def wait(self, task: asyncio.Future, timeout: Optional[float]) -> bool:
        """Wait for ``task`` at most ``timeout`` seconds (None: no limit) without cancelling it.

        Returns:
            True if the task finished in time
        """
        done, _ = await asyncio.wait({task}, timeout=timeout)
        return task in done

    def run_every(
        self,
        interval: float,
        fn: Callable[[], Awaitable[Any]],
        name: str | None = None,
    ) -> asyncio.Task:
        """Run ``fn`` now and then every ``interval`` seconds until cancelled.

        Exceptions raised by ``fn`` are logged and the loop keeps going.
        """

        async def _loop() -> None:
            while True:
                try:
                    await fn()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: generic-exception
                    logger.warning("Periodic task %s failed: %s", name or fn, exc)
                await asyncio.sleep(interval)

        return asyncio.get_running_loop().create_task(_loop(), name=name)


DEFAULT_CLOCK = OperationClock()

"""Debounced loading flag.

Raising the flag is delayed; lowering it is immediate and cancels a pending
raise, so work that finishes inside the delay never shows a spinner.
"""

from __future__ import annotations

from typing import Optional

from loading_states.clock import DEFAULT_CLOCK, OperationClock, Timer
from loading_states.config import LOADING


class DebouncedFlag:
    """A boolean that turns on only after staying requested for ``delay`` seconds."""

    def __init__(self, delay: float = LOADING.SHOW_DELAY_SEC, clock: OperationClock = DEFAULT_CLOCK) -> None:
        self.delay = delay
        self._clock = clock
        self._value = False
        self._timer: Optional[Timer] = None

    @property
    def value(self) -> bool:
        return self._value

    def __bool__(self) -> bool:
        return self._value

    @property
    def pending(self) -> bool:
        return self._timer is not None and self._timer.active

    def set(self, loading: bool) -> None:
        """Request the flag on (after the delay) or turn it off now.

        Must be called from inside a running event loop when ``loading`` is True
        and the delay is positive.
        """
        self._cancel()
        if not loading:
            self._value = False
        elif self.delay <= 0:
            self._value = True
        else:
            self._timer = self._clock.call_later(self.delay, self._raise)

    def close(self) -> None:
        """Cancel a pending raise without touching the current value."""
        self._cancel()

    def _raise(self) -> None:
        self._timer = None
        self._value = True

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

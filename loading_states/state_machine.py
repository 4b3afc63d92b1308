"""Per-key loading state machine.

States:
- IDLE: nothing pending, or a pending operation not yet shown
- LOADING: an operation is pending and visible
- SUCCESS / ERROR / EMPTY: terminal results, returning to IDLE after a delay

Transitions:
- IDLE -> LOADING (start)
- LOADING -> SUCCESS | ERROR | EMPTY (succeed, fail, empty, timeout)
- IDLE -> SUCCESS | ERROR | EMPTY (a pending operation settled before it was shown)
- SUCCESS | ERROR | EMPTY -> IDLE (auto reset), -> LOADING (start), or to a
  new result when a later operation settles before it was shown

Timers are cancellable handles owned by the machine. Entering any state
cancels the timers that no longer apply, so a stale callback never acts on a
newer state.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional

from loading_states.clock import DEFAULT_CLOCK, OperationClock, Timer
from loading_states.config import LOADING
from loading_states.exceptions import OperationTimeoutError, as_exception
from loading_states.logging_config import get_logger

logger = get_logger(__name__)


class LoadingState(Enum):
    """Loading states"""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    EMPTY = "empty"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({LoadingState.SUCCESS, LoadingState.ERROR, LoadingState.EMPTY})

_ALLOWED = {
    LoadingState.IDLE: frozenset(
        {LoadingState.LOADING, LoadingState.SUCCESS, LoadingState.ERROR, LoadingState.EMPTY}
    ),
    LoadingState.LOADING: frozenset(
        {LoadingState.SUCCESS, LoadingState.ERROR, LoadingState.EMPTY, LoadingState.IDLE}
    ),
    # A new pending operation may settle before it is shown
    LoadingState.SUCCESS: frozenset({LoadingState.LOADING, LoadingState.IDLE}) | _TERMINAL,
    LoadingState.ERROR: frozenset({LoadingState.LOADING, LoadingState.IDLE}) | _TERMINAL,
    LoadingState.EMPTY: frozenset({LoadingState.LOADING, LoadingState.IDLE}) | _TERMINAL,
}

# Timer names
SHOW = "show"
HOLD = "hold"
RESET = "reset"
TIMEOUT = "timeout"

# Timers cancelled by every transition; TIMEOUT is only cleared on terminal ones
_TRANSIENT_TIMERS = (SHOW, HOLD, RESET)


class LoadingStateMachine:
    """Finite state machine for one loading key.

    Attributes:
        key: The loading key this machine tracks
        auto_reset_delay: Seconds a terminal state is kept before returning to idle
    """

    def __init__(
        self,
        key: str,
        clock: OperationClock = DEFAULT_CLOCK,
        auto_reset_delay: float = LOADING.AUTO_RESET_SEC,
        on_change: Optional[Callable[["LoadingStateMachine"], None]] = None,
    ) -> None:
        self.key = key
        self.auto_reset_delay = auto_reset_delay
        self._clock = clock
        self._on_change = on_change
        self._state = LoadingState.IDLE
        self._error: Optional[BaseException] = None
        self._progress = 0
        self._timers: dict[str, Timer] = {}

    @property
    def state(self) -> LoadingState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def progress(self) -> int:
        return self._progress

    # ==================== Timers ====================

    def set_timer(self, name: str, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule a named timer, replacing any pending timer of that name."""
        self.clear_timer(name)
        self._timers[name] = self._clock.call_later(delay, self._fire, name, callback, args)

    def clear_timer(self, name: str) -> None:
        timer = self._timers.pop(name, None)
        if timer is not None:
            timer.cancel()

    def clear_timers(self) -> None:
        for name in list(self._timers):
            self.clear_timer(name)

    def has_timer(self, name: str) -> bool:
        timer = self._timers.get(name)
        return timer is not None and timer.active

    def timer_remaining(self, name: str) -> Optional[float]:
        """Seconds until timer ``name`` fires, or None if it is not pending."""
        timer = self._timers.get(name)
        if timer is None or not timer.active:
            return None
        return timer.remaining

    @property
    def has_pending_timers(self) -> bool:
        return any(timer.active for timer in self._timers.values())

    def _fire(self, name: str, callback: Callable[..., Any], args: tuple) -> None:
        self._timers.pop(name, None)
        callback(*args)

    def arm_timeout(self, timeout: float, on_timeout: Optional[Callable[[], None]] = None) -> None:
        """Fail the machine with OperationTimeoutError unless it settles in time.

        Args:
            timeout: Seconds to wait; 0 or less disarms any pending timeout
            on_timeout: Called after the timeout transition took place
        """
        if timeout <= 0:
            self.clear_timer(TIMEOUT)
            return
        self.set_timer(TIMEOUT, timeout, self._expire, timeout, on_timeout)

    def _expire(self, timeout: float, on_timeout: Optional[Callable[[], None]]) -> None:
        if self.fail(OperationTimeoutError(self.key, timeout)) and on_timeout is not None:
            on_timeout()

    # ==================== Transitions ====================

    def start(self) -> bool:
        """Enter LOADING: progress back to 0, error cleared."""
        if self._state is LoadingState.LOADING:
            return False
        return self._transition(LoadingState.LOADING, error=None, progress=0)

    def succeed(self) -> bool:
        return self._transition(LoadingState.SUCCESS, error=None, progress=100)

    def fail(self, error: Any) -> bool:
        """Enter ERROR, recording ``error`` (non-exceptions are boxed)."""
        return self._transition(LoadingState.ERROR, error=as_exception(error), progress=0)

    def empty(self) -> bool:
        return self._transition(LoadingState.EMPTY, error=None, progress=0)

    def reset(self) -> bool:
        """Return to IDLE and drop every timer, including the timeout."""
        self.clear_timers()
        if self._state is LoadingState.IDLE:
            return False
        return self._transition(LoadingState.IDLE, error=None, progress=0)

    def set_progress(self, value: float) -> None:
        progress = int(min(100, max(0, round(value))))
        if progress != self._progress:
            self._progress = progress
            self._notify()

    def _transition(self, target: LoadingState, *, error: Optional[BaseException], progress: int) -> bool:
        if target not in _ALLOWED[self._state]:
            logger.debug(
                "Ignoring transition %s -> %s for %r", self._state.value, target.value, self.key
            )
            return False

        previous = self._state
        for name in _TRANSIENT_TIMERS:
            self.clear_timer(name)
        if target.is_terminal or target is LoadingState.IDLE:
            self.clear_timer(TIMEOUT)

        self._state = target
        self._error = error
        self._progress = progress

        if target.is_terminal and self.auto_reset_delay > 0:
            self.set_timer(RESET, self.auto_reset_delay, self._auto_reset)

        logger.debug("Loading key %r: %s -> %s", self.key, previous.value, target.value)
        self._notify()
        return True

    def _auto_reset(self) -> None:
        if self._state.is_terminal:
            self._transition(LoadingState.IDLE, error=None, progress=0)

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

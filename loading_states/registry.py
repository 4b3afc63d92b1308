"""Scoped loading registry.

Keeps one LoadingStateMachine per caller-chosen key and decides when a pending
operation becomes visible:

- ``start`` shows the key immediately, ``start_delayed`` schedules the
  transition itself, so an operation that ends inside the delay is never
  observed as loading.
- ``stop`` keeps a visible key loading until ``min_duration`` has passed since
  it became visible.
- ``fail`` shows the error at once, with no padding.

Keys are reference counted: every start adds an active operation, every
stop/fail/empty/cancel removes one, and the key stays loading while any
operation is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from loading_states.clock import DEFAULT_CLOCK, OperationClock
from loading_states.config import LOADING
from loading_states.logging_config import get_logger
from loading_states.models import EntrySnapshot, RegistrySnapshot
from loading_states.state_machine import HOLD, SHOW, TIMEOUT, LoadingState, LoadingStateMachine

logger = get_logger(__name__)

Listener = Callable[[str, EntrySnapshot], None]


@dataclass
class ScopedEntry:
    """Registry bookkeeping for one key.

    Attributes:
        key: The loading key
        machine: State machine holding state, error, progress and timers
        active: Number of operations currently running under the key
        visible_since: Clock time the key last became visibly loading
        min_duration: Minimum visible time applied when the key is stopped
    """

    key: str
    machine: LoadingStateMachine
    active: int = 0
    visible_since: Optional[float] = None
    min_duration: float = LOADING.MIN_DURATION_SEC

    @property
    def state(self) -> LoadingState:
        return self.machine.state

    @property
    def error(self) -> Optional[BaseException]:
        return self.machine.error

    @property
    def progress(self) -> int:
        return self.machine.progress

    @property
    def is_loading(self) -> bool:
        return self.machine.state is LoadingState.LOADING

    def snapshot(self) -> EntrySnapshot:
        return {
            "key": self.key,
            "state": self.state.value,
            "isLoading": self.is_loading,
            "error": str(self.error) if self.error is not None else None,
            "progress": self.progress,
            "activeOperations": self.active,
        }


class LoadingRegistry:
    """Keyed collection of loading state machines.

    Attributes:
        min_duration: Default minimum visible time for keys started without one
        auto_reset_delay: Seconds a result is kept before the key returns to idle
    """

    def __init__(
        self,
        clock: OperationClock = DEFAULT_CLOCK,
        min_duration: float = LOADING.MIN_DURATION_SEC,
        auto_reset_delay: float = LOADING.AUTO_RESET_SEC,
    ) -> None:
        self.min_duration = min_duration
        self.auto_reset_delay = auto_reset_delay
        self._clock = clock
        self._entries: Dict[str, ScopedEntry] = {}
        self._listeners: List[Listener] = []
        self._global_loading = False

    # ==================== Entries ====================

    def _entry(self, key: str) -> ScopedEntry:
        entry = self._entries.get(key)
        if entry is None:
            machine = LoadingStateMachine(
                key,
                clock=self._clock,
                auto_reset_delay=self.auto_reset_delay,
                on_change=self._changed,
            )
            entry = ScopedEntry(key=key, machine=machine, min_duration=self.min_duration)
            self._entries[key] = entry
        return entry

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    # ==================== Operations ====================

    def start(
        self,
        key: str,
        *,
        min_duration: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Begin an operation and show the key as loading right away.

        Args:
            key: Loading key
            min_duration: Minimum visible time for this key (registry default if None)
            timeout: Fail the key with OperationTimeoutError after this many seconds

        A key has a single deadline. When operations sharing the key ask for
        different timeouts the earliest deadline is kept, and when it fires
        every operation on the key ends with the timeout error.
        """
        entry = self._begin(key, min_duration, timeout)
        self._show(entry)

    def start_delayed(
        self,
        key: str,
        delay: float,
        *,
        min_duration: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Begin an operation, showing the key only if it is still pending after ``delay``."""
        if delay <= 0:
            self.start(key, min_duration=min_duration, timeout=timeout)
            return

        entry = self._begin(key, min_duration, timeout)
        if entry.is_loading:
            # Already visible for another operation, or held after one ended
            self._show(entry)
            return
        if not entry.machine.has_timer(SHOW):
            entry.machine.set_timer(SHOW, delay, self._show, entry)

    def stop(self, key: str, *, hold: bool = True) -> None:
        """End one operation successfully.

        When the last operation ends, a key that never became visible moves
        straight to success. A visible key stays loading until its minimum
        duration has passed (unless ``hold`` is False), then moves to success.
        """
        entry = self._end(key)
        if entry is None or entry.active > 0:
            return

        machine = entry.machine
        machine.clear_timer(SHOW)
        if entry.is_loading:
            remaining = self._remaining(entry, entry.min_duration) if hold else 0.0
            if remaining > 0:
                machine.set_timer(HOLD, remaining, self._settle, entry)
            else:
                self._settle(entry)
        elif entry.state is LoadingState.IDLE:
            machine.succeed()
        # An error or empty result reported by another operation stays visible

    def fail(self, key: str, error: Any) -> None:
        """End one operation with ``error``, shown immediately."""
        entry = self._entry(key)
        if entry.active > 0:
            entry.active -= 1
        entry.machine.fail(error)
        logger.debug("Loading key %r failed: %s", key, entry.error)

    def empty(self, key: str) -> None:
        """End one operation with an empty result."""
        entry = self._end(key)
        if entry is None or entry.active > 0:
            return
        entry.machine.empty()

    def cancel(self, key: str) -> None:
        """End one operation without a result; the last one returns the key to idle."""
        entry = self._end(key)
        if entry is None or entry.active > 0:
            return
        entry.machine.clear_timer(SHOW)
        if not entry.state.is_terminal:
            entry.machine.reset()

    def reset(self, key: str) -> None:
        """Force ``key`` back to idle, dropping active operations and timers."""
        entry = self._entries.get(key)
        if entry is None:
            return
        entry.active = 0
        entry.machine.reset()

    def remove(self, key: str) -> bool:
        """Reset ``key`` and forget it.

        Returns:
            True if the key was known
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        self.reset(key)
        del self._entries[key]
        return True

    def prune(self) -> int:
        """Drop idle entries with no active operations and no pending timers.

        Returns:
            Number of entries removed
        """
        stale = [
            key
            for key, entry in self._entries.items()
            if entry.state is LoadingState.IDLE
            and entry.active == 0
            and not entry.machine.has_pending_timers
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def close(self) -> None:
        """Cancel every pending timer, e.g. before the event loop shuts down."""
        for entry in self._entries.values():
            entry.machine.clear_timers()

    # ==================== Reads ====================

    def get_state(self, key: str) -> LoadingState:
        entry = self._entries.get(key)
        return entry.state if entry is not None else LoadingState.IDLE

    def is_loading(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_loading

    def has_error(self, key: str) -> bool:
        return self.get_state(key) is LoadingState.ERROR

    def get_error(self, key: str) -> Optional[BaseException]:
        entry = self._entries.get(key)
        return entry.error if entry is not None else None

    def get_progress(self, key: str) -> int:
        entry = self._entries.get(key)
        return entry.progress if entry is not None else 0

    def set_progress(self, key: str, value: float) -> None:
        """Set progress for ``key``, clamped to 0-100."""
        self._entry(key).machine.set_progress(value)

    def active_operations(self, key: str) -> int:
        entry = self._entries.get(key)
        return entry.active if entry is not None else 0

    def is_any_loading(self) -> bool:
        return any(entry.is_loading for entry in self._entries.values())

    def has_any_error(self) -> bool:
        return any(entry.state is LoadingState.ERROR for entry in self._entries.values())

    def remaining_min_duration(self, key: str, min_duration: Optional[float] = None) -> float:
        """Seconds ``key`` must still stay visible; 0 if it never became visible."""
        entry = self._entries.get(key)
        if entry is None:
            return 0.0
        return self._remaining(entry, entry.min_duration if min_duration is None else min_duration)

    def snapshot(self, key: Optional[str] = None) -> RegistrySnapshot:
        """Snapshot of one key (if given) or every known key."""
        if key is not None:
            entry = self._entries.get(key)
            return {key: entry.snapshot()} if entry is not None else {}
        return {k: entry.snapshot() for k, entry in self._entries.items()}

    # ==================== Global overlay ====================

    @property
    def global_loading(self) -> bool:
        return self._global_loading

    def set_global_loading(self, loading: bool) -> None:
        """Raise or lower the application-wide loading overlay flag."""
        self._global_loading = bool(loading)

    # ==================== Subscriptions ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(key, snapshot)`` on every state or progress change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Internals ====================

    def _begin(self, key: str, min_duration: Optional[float], timeout: Optional[float]) -> ScopedEntry:
        entry = self._entry(key)
        if entry.state.is_terminal:
            # A new operation supersedes the previous result
            entry.machine.reset()
        entry.active += 1
        if min_duration is not None:
            entry.min_duration = min_duration
        if timeout:
            # One deadline per key: the earliest requested one wins
            pending = entry.machine.timer_remaining(TIMEOUT)
            if pending is None or timeout < pending:
                entry.machine.arm_timeout(timeout, on_timeout=lambda: self._expired(entry))
        return entry

    def _end(self, key: str) -> Optional[ScopedEntry]:
        entry = self._entries.get(key)
        if entry is None or entry.active == 0:
            logger.debug("Ignoring end of %r: no active operation", key)
            return None
        entry.active -= 1
        return entry

    def _show(self, entry: ScopedEntry) -> None:
        if entry.active <= 0:
            return
        entry.machine.clear_timer(SHOW)
        entry.machine.clear_timer(HOLD)
        if not entry.is_loading:
            entry.machine.start()

    def _settle(self, entry: ScopedEntry) -> None:
        if entry.active == 0 and entry.is_loading:
            entry.machine.succeed()

    def _expired(self, entry: ScopedEntry) -> None:
        logger.info("Loading key %r timed out", entry.key)
        entry.active = 0

    def _remaining(self, entry: ScopedEntry, min_duration: float) -> float:
        if not entry.is_loading or entry.visible_since is None:
            return 0.0
        return max(0.0, entry.visible_since + min_duration - self._clock.now())

    def _changed(self, machine: LoadingStateMachine) -> None:
        entry = self._entries.get(machine.key)
        if entry is None:
            return
        if machine.state is LoadingState.LOADING:
            if entry.visible_since is None:
                entry.visible_since = self._clock.now()
        else:
            entry.visible_since = None

        snapshot = entry.snapshot()
        for listener in list(self._listeners):
            try:
                listener(entry.key, snapshot)
            except Exception:  # noqa: generic-exception
                logger.exception("Loading listener failed for %r", entry.key)


_default_registry: Optional[LoadingRegistry] = None


def get_default_registry() -> LoadingRegistry:
    """Process-wide registry for applications that do not wire their own."""
    global _default_registry
    if _default_registry is None:
        _default_registry = LoadingRegistry()
    return _default_registry

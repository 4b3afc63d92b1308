"""Execution orchestrator.

``execute_with_loading`` is the entry point UI code uses to run async work
under the coordinator. It composes the registry (visibility), the retry
coordinator (attempts and backoff) and the network monitor (timing policy).

Every invocation ends with exactly one registry call: ``stop`` on success,
``fail`` on error or timeout, ``cancel`` when the caller is cancelled.
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from loading_states.clock import DEFAULT_CLOCK, OperationClock
from loading_states.config import DEFAULT_OPERATION_CONFIG, OperationConfig
from loading_states.exceptions import OperationTimeoutError
from loading_states.logging_config import get_logger
from loading_states.network_monitor import NetworkQualityMonitor
from loading_states.registry import LoadingRegistry, get_default_registry
from loading_states.retry import RetryCoordinator

logger = get_logger(__name__)

T = TypeVar("T")


def _discard_late_result(key: str, task: asyncio.Future) -> None:
    """Retrieve the outcome of work whose caller already gave up on it."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Discarding late failure of %r: %s", key, exc)
    else:
        logger.debug("Discarding late result of %r", key)


class ExecutionOrchestrator:
    """Runs async work while driving the loading state of a key.

    Attributes:
        registry: Registry whose keys reflect running operations
        monitor: Network monitor adjusting timing (None leaves configs untouched)
        config: Default configuration for calls that pass none
    """

    def __init__(
        self,
        registry: Optional[LoadingRegistry] = None,
        monitor: Optional[NetworkQualityMonitor] = None,
        config: OperationConfig = DEFAULT_OPERATION_CONFIG,
        clock: OperationClock = DEFAULT_CLOCK,
    ) -> None:
        self.registry = registry if registry is not None else get_default_registry()
        self.monitor = monitor
        self.config = config
        self._clock = clock
        self._coordinators: Dict[str, RetryCoordinator] = {}

    def effective_config(self, config: Optional[OperationConfig] = None, **overrides: Any) -> OperationConfig:
        """Resolve the configuration a call would run with.

        Overrides are applied first, then the network adjustment.
        """
        base = (config or self.config).with_overrides(**overrides)
        if self.monitor is not None:
            base = self.monitor.adjust(base)
        return base.validate()

    def retry_coordinator(self, key: str) -> Optional[RetryCoordinator]:
        """Coordinator of the call running for ``key``, for attempt/is_retrying display.

        Returns None once that call has settled.
        """
        return self._coordinators.get(key)

    async def execute_with_loading(
        self,
        key: str,
        fn: Callable[[], Awaitable[T]],
        config: Optional[OperationConfig] = None,
        **overrides: Any,
    ) -> T:
        """Run ``fn`` under loading key ``key``.

        Args:
            key: Loading key to drive
            fn: Async callable performing the work; called once per attempt
            config: Operation configuration (orchestrator default if None)
            **overrides: Individual OperationConfig fields to override

        Returns:
            The result of ``fn``

        Raises:
            OperationTimeoutError: If the work did not settle within the timeout
            Exception: The last error raised by ``fn`` once retries are exhausted
        """
        effective = self.effective_config(config, **overrides)

        if effective.show_delay > 0:
            self.registry.start_delayed(key, effective.show_delay, min_duration=effective.min_duration)
        else:
            self.registry.start(key, min_duration=effective.min_duration)

        coordinator = RetryCoordinator(
            effective.retry_attempts, effective.retry_delay, clock=self._clock
        )
        self._coordinators[key] = coordinator
        try:
            return await self._run(key, coordinator, fn, effective)
        finally:
            if self._coordinators.get(key) is coordinator:
                del self._coordinators[key]

    async def _run(
        self,
        key: str,
        coordinator: RetryCoordinator,
        fn: Callable[[], Awaitable[T]],
        effective: OperationConfig,
    ) -> T:
        task = asyncio.ensure_future(coordinator.execute_with_retry(fn))

        try:
            # The caller waits on the work but never owns it: cancelling the
            # caller leaves the task running
            finished = await self._clock.wait(task, effective.timeout if effective.timeout > 0 else None)
            if finished:
                result = task.result()
        except asyncio.CancelledError:
            if not task.done():
                task.add_done_callback(partial(_discard_late_result, key))
            self.registry.cancel(key)
            raise
        except Exception as exc:
            self.registry.fail(key, exc)
            raise

        if not finished:
            # The work keeps running; only its outcome is ignored
            error = OperationTimeoutError(key, effective.timeout)
            task.add_done_callback(partial(_discard_late_result, key))
            logger.info("Operation %r timed out after %gs", key, effective.timeout)
            self.registry.fail(key, error)
            raise error

        try:
            await self._clock.sleep(self.registry.remaining_min_duration(key, effective.min_duration))
        except asyncio.CancelledError:
            self.registry.cancel(key)
            raise
        # Already padded above
        self.registry.stop(key, hold=False)
        return result


_default_orchestrator: Optional[ExecutionOrchestrator] = None


async def execute_with_loading(
    key: str,
    fn: Callable[[], Awaitable[T]],
    config: Optional[OperationConfig] = None,
    **overrides: Any,
) -> T:
    """Run ``fn`` through a process-wide orchestrator bound to the default registry."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = ExecutionOrchestrator()
    return await _default_orchestrator.execute_with_loading(key, fn, config, **overrides)

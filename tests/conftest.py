"""
Pytest configuration and shared fixtures for loading states tests.

Coordinator components schedule timers on the running event loop, so tests
wrap their bodies in a coroutine and drive it with ``asyncio.run``. Timings
are real but short; assertions leave generous margins for slow CI machines.
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Tuple
from unittest.mock import AsyncMock

import pytest

from loading_states.network_monitor import ConnectionSpeed, NetworkQualityMonitor
from loading_states.registry import LoadingRegistry

# ==================== Registry Fixtures ====================


@pytest.fixture
def registry() -> LoadingRegistry:
    """
    Create an isolated registry for a single test.

    The auto reset delay is long enough that results stay observable for
    the whole test.
    """
    return LoadingRegistry(min_duration=0.2, auto_reset_delay=5.0)


# ==================== Network Fixtures ====================


@pytest.fixture
def fast_monitor() -> NetworkQualityMonitor:
    """Online monitor with a probe that answers instantly."""
    return NetworkQualityMonitor(probe=AsyncMock(return_value=204), online=True)


@pytest.fixture
def slow_monitor() -> NetworkQualityMonitor:
    """Online monitor already classified as slow."""
    monitor = NetworkQualityMonitor(probe=AsyncMock(return_value=204), online=True)
    monitor._speed = ConnectionSpeed.SLOW
    return monitor


@pytest.fixture
def offline_monitor() -> NetworkQualityMonitor:
    """Monitor that starts offline."""
    return NetworkQualityMonitor(probe=AsyncMock(return_value=204), online=False)


# ==================== Timing Helpers ====================


class Timeline:
    """Samples of a boolean observation: (seconds since start, value) pairs."""

    def __init__(self, samples: List[Tuple[float, bool]]):
        self.samples = samples

    @property
    def ever_true(self) -> bool:
        return any(value for _, value in self.samples)

    def first_true(self) -> float:
        """Time of the first sample where the value was True."""
        return next(t for t, value in self.samples if value)

    def last_true(self) -> float:
        """Time of the last sample where the value was True."""
        return max(t for t, value in self.samples if value)


@pytest.fixture
def delayed() -> Callable[..., Callable[[], Awaitable]]:
    """
    Factory for async operations that sleep, then return a result or raise.

    The returned operation takes no arguments and can be called repeatedly,
    which is what retrying callers need.
    """

    def factory(seconds: float, result=None, error: BaseException = None):
        async def operation():
            await asyncio.sleep(seconds)
            if error is not None:
                raise error
            return result

        return operation

    return factory


@pytest.fixture
def sample_while():
    """
    Record ``predicate()`` every few milliseconds until an awaitable settles.

    Usage:
        result, timeline = await sample_while(lambda: registry.is_loading("k"), work())

    If the awaitable raises, the exception propagates.
    """

    async def sampler(
        predicate: Callable[[], bool], awaitable: Awaitable, interval: float = 0.005
    ) -> Tuple[object, Timeline]:
        started = time.monotonic()
        samples: List[Tuple[float, bool]] = []
        task = asyncio.ensure_future(awaitable)
        while not task.done():
            samples.append((time.monotonic() - started, predicate()))
            await asyncio.sleep(interval)
        samples.append((time.monotonic() - started, predicate()))
        return task.result(), Timeline(samples)

    return sampler


# ==================== Markers ====================


def pytest_configure(config):
    """
    Register custom pytest markers.
    """
    config.addinivalue_line("markers", "unit: Unit tests with mocked external dependencies")
    config.addinivalue_line("markers", "timing: Tests asserting on real event loop timing")
    config.addinivalue_line(
        "markers", "network: Tests that require network access (should be mocked)"
    )

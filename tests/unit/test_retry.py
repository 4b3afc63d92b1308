"""Tests for retry with exponential backoff."""

from __future__ import annotations

import asyncio
from unittest import mock

import pytest

from loading_states.clock import OperationClock
from loading_states.retry import RetryCoordinator, calculate_backoff, execute_with_retry


class RecordingClock(OperationClock):
    """Clock that records requested sleeps instead of waiting."""

    def __init__(self):
        self.sleeps = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


@pytest.mark.unit
class TestCalculateBackoff:
    """Tests for calculate_backoff function."""

    def test_first_attempt(self):
        """Test delay after the first failure equals the base delay."""
        assert calculate_backoff(1, 1.0) == 1.0

    def test_doubles_each_attempt(self):
        """Test delay doubles with each failed attempt."""
        assert [calculate_backoff(i, 0.1) for i in (1, 2, 3)] == [0.1, 0.2, 0.4]

    def test_zero_base_delay(self):
        """Test zero base delay means no waiting."""
        assert calculate_backoff(3, 0) == 0

    def test_jitter_within_bounds(self):
        """Test jittered delays stay between 0 and twice the delay."""
        delays = [calculate_backoff(2, 1.0, jitter=True) for _ in range(50)]
        assert all(0 <= d <= 4.0 for d in delays)

    def test_jitter_uses_random(self):
        """Test jitter draws from random.uniform."""
        with mock.patch("loading_states.retry.random.uniform", return_value=0.5) as uniform:
            assert calculate_backoff(1, 1.0, jitter=True) == 0.5
        uniform.assert_called_once_with(0, 2.0)


@pytest.mark.unit
class TestRetryCoordinator:
    """Tests for RetryCoordinator.execute_with_retry."""

    def test_success_first_try(self):
        """Test a successful operation runs once."""
        clock = RecordingClock()
        coordinator = RetryCoordinator(attempts=3, base_delay=0.1, clock=clock)
        operation = mock.AsyncMock(return_value="ok")

        result = asyncio.run(coordinator.execute_with_retry(operation))

        assert result == "ok"
        assert operation.await_count == 1
        assert clock.sleeps == []

    def test_success_after_failures(self):
        """Test delays of 0.1s and 0.2s separate three attempts."""
        clock = RecordingClock()
        coordinator = RetryCoordinator(attempts=3, base_delay=0.1, clock=clock)
        operation = mock.AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])

        result = asyncio.run(coordinator.execute_with_retry(operation))

        assert result == "ok"
        assert operation.await_count == 3
        assert clock.sleeps == [0.1, 0.2]

    def test_exhausted_reraises_last_error(self):
        """Test the last error is raised unchanged after every attempt failed."""
        clock = RecordingClock()
        coordinator = RetryCoordinator(attempts=3, base_delay=0.1, clock=clock)
        last = ConnectionError("third")
        operation = mock.AsyncMock(side_effect=[ValueError("first"), ValueError("second"), last])

        with pytest.raises(ConnectionError) as exc_info:
            asyncio.run(coordinator.execute_with_retry(operation))

        assert exc_info.value is last
        assert operation.await_count == 3
        assert coordinator.last_error is last

    def test_single_attempt_does_not_sleep(self):
        """Test attempts=1 means one try and no backoff."""
        clock = RecordingClock()
        coordinator = RetryCoordinator(clock=clock)
        operation = mock.AsyncMock(side_effect=ValueError("no"))

        with pytest.raises(ValueError):
            asyncio.run(coordinator.execute_with_retry(operation, attempts=1))

        assert operation.await_count == 1
        assert clock.sleeps == []

    def test_zero_attempts_still_tries_once(self):
        """Test attempt counts below one are treated as one."""
        coordinator = RetryCoordinator(clock=RecordingClock())
        operation = mock.AsyncMock(return_value=1)

        assert asyncio.run(coordinator.execute_with_retry(operation, attempts=0)) == 1

    def test_per_call_overrides(self):
        """Test attempts and base_delay can be overridden per call."""
        clock = RecordingClock()
        coordinator = RetryCoordinator(attempts=5, base_delay=1.0, clock=clock)
        operation = mock.AsyncMock(side_effect=ValueError("x"))

        with pytest.raises(ValueError):
            asyncio.run(coordinator.execute_with_retry(operation, attempts=2, base_delay=0.5))

        assert operation.await_count == 2
        assert clock.sleeps == [0.5]

    def test_sync_operation(self):
        """Test plain (non-awaitable) results are returned as is."""
        coordinator = RetryCoordinator(clock=RecordingClock())
        calls = []

        def operation():
            calls.append(1)
            if len(calls) < 2:
                raise ValueError("once")
            return 42

        assert asyncio.run(coordinator.execute_with_retry(operation)) == 42
        assert len(calls) == 2

    def test_on_retry_callback(self):
        """Test on_retry receives attempt, error and delay."""
        clock = RecordingClock()
        on_retry = mock.Mock()
        coordinator = RetryCoordinator(attempts=3, base_delay=0.1, clock=clock, on_retry=on_retry)
        error = ValueError("boom")
        operation = mock.AsyncMock(side_effect=[error, "ok"])

        asyncio.run(coordinator.execute_with_retry(operation))

        on_retry.assert_called_once_with(1, error, 0.1)

    def test_attempt_and_is_retrying_are_observable(self):
        """Test attempt and is_retrying reflect progress and reset afterwards."""
        coordinator = RetryCoordinator(attempts=3, base_delay=0, clock=RecordingClock())
        observed = []

        async def operation():
            observed.append((coordinator.attempt, coordinator.is_retrying))
            if coordinator.attempt < 3:
                raise ValueError("again")
            return "done"

        assert asyncio.run(coordinator.execute_with_retry(operation)) == "done"
        assert observed == [(1, False), (2, True), (3, True)]
        assert coordinator.attempt == 0
        assert coordinator.is_retrying is False

    def test_state_reset_after_failure(self):
        """Test observable state returns to idle when retries run out."""
        coordinator = RetryCoordinator(attempts=2, base_delay=0, clock=RecordingClock())

        with pytest.raises(ValueError):
            asyncio.run(coordinator.execute_with_retry(mock.AsyncMock(side_effect=ValueError())))

        assert coordinator.attempt == 0
        assert coordinator.is_retrying is False

    def test_cancellation_is_not_retried(self):
        """Test CancelledError propagates without further attempts."""
        coordinator = RetryCoordinator(attempts=3, base_delay=0, clock=RecordingClock())
        operation = mock.AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(coordinator.execute_with_retry(operation))

        assert operation.await_count == 1

    def test_attempts_run_sequentially(self):
        """Test a retry never starts while the previous attempt is running."""
        coordinator = RetryCoordinator(attempts=3, base_delay=0.01)
        running = []
        overlaps = []

        async def operation():
            if running:
                overlaps.append(True)
            running.append(True)
            await asyncio.sleep(0.01)
            running.pop()
            raise ValueError("fail")

        with pytest.raises(ValueError):
            asyncio.run(coordinator.execute_with_retry(operation))

        assert overlaps == []


@pytest.mark.unit
@pytest.mark.timing
class TestExecuteWithRetryFunction:
    """Tests for the module-level helper using the real clock."""

    def test_real_backoff_timing(self):
        """Test attempts start at roughly 0s, 0.1s and 0.3s."""
        loop_times = []

        async def run_test():
            loop = asyncio.get_running_loop()
            started = loop.time()

            async def operation():
                loop_times.append(loop.time() - started)
                raise ValueError("down")

            with pytest.raises(ValueError):
                await execute_with_retry(operation, attempts=3, base_delay=0.1)

        asyncio.run(run_test())

        assert len(loop_times) == 3
        assert loop_times[0] < 0.05
        assert 0.09 <= loop_times[1] < 0.2
        assert 0.28 <= loop_times[2] < 0.45

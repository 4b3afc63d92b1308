"""Tests for the debounced loading flag."""

from __future__ import annotations

import asyncio

import pytest

from loading_states.debounce import DebouncedFlag


@pytest.mark.unit
class TestDebouncedFlag:
    """Tests for DebouncedFlag."""

    def test_raise_is_delayed(self):
        async def run_test():
            flag = DebouncedFlag(delay=0.03)
            flag.set(True)
            before = (flag.value, flag.pending)
            await asyncio.sleep(0.06)
            return before, (flag.value, flag.pending)

        before, after = asyncio.run(run_test())
        assert before == (False, True)
        assert after == (True, False)

    def test_lower_cancels_pending_raise(self):
        async def run_test():
            flag = DebouncedFlag(delay=0.03)
            flag.set(True)
            flag.set(False)
            await asyncio.sleep(0.06)
            return bool(flag)

        assert asyncio.run(run_test()) is False

    def test_lower_is_immediate(self):
        flag = DebouncedFlag(delay=0)
        flag.set(True)
        assert flag.value is True
        flag.set(False)
        assert flag.value is False

    def test_close_keeps_value(self):
        async def run_test():
            flag = DebouncedFlag(delay=0.03)
            flag.set(True)
            flag.close()
            await asyncio.sleep(0.06)
            return flag.value, flag.pending

        assert asyncio.run(run_test()) == (False, False)

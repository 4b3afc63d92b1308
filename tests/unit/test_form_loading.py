"""Tests for per-field form loading tracking."""

from __future__ import annotations

import asyncio

import pytest

from loading_states.form_loading import FormLoadingTracker


@pytest.fixture
def form():
    return FormLoadingTracker()


@pytest.mark.unit
class TestFormLoadingTracker:
    """Tests for FormLoadingTracker."""

    def test_initial_state(self, form):
        assert form.is_any_field_loading() is False
        assert form.is_field_loading("email") is False
        assert form.get_field_error("email") is None

    def test_field_loading_flags(self, form):
        form.set_field_loading("email", True)
        form.set_field_loading("name", True)
        form.set_field_loading("name", False)

        assert form.loading_fields == {"email": True}
        assert form.is_any_field_loading() is True

    def test_set_error_ends_loading(self, form):
        form.set_field_loading("email", True)
        form.set_field_error("email", "Already taken")

        assert form.is_field_loading("email") is False
        assert form.get_field_error("email") == "Already taken"

        form.clear_field_error("email")
        assert form.errors == {}

    def test_execute_success(self, form):
        seen = []

        async def check():
            seen.append(form.is_field_loading("email"))
            return "available"

        assert asyncio.run(form.execute_field_operation("email", check)) == "available"
        assert seen == [True]
        assert form.is_field_loading("email") is False

    def test_execute_failure_records_message(self, form):
        async def check():
            raise ValueError("Already taken")

        with pytest.raises(ValueError):
            asyncio.run(form.execute_field_operation("email", check))

        assert form.get_field_error("email") == "Already taken"
        assert form.is_field_loading("email") is False

    def test_execute_clears_previous_error(self, form):
        form.set_field_error("email", "old")

        asyncio.run(form.execute_field_operation("email", lambda: None))

        assert form.get_field_error("email") is None

    def test_cancelled_operation_stops_loading(self, form):
        async def run_test():
            task = asyncio.ensure_future(form.execute_field_operation("email", lambda: asyncio.sleep(1)))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run_test())
        assert form.is_field_loading("email") is False
        assert form.get_field_error("email") is None

    def test_snapshot(self, form):
        form.set_field_loading("name", True)
        form.set_field_error("email", "Invalid")

        assert form.snapshot() == {
            "email": {"loading": False, "error": "Invalid"},
            "name": {"loading": True},
        }

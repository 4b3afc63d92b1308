"""Per-field loading and error tracking for forms.

Lighter than the registry: no delays, minimum durations or retries. A field is
loading while an operation runs for it, and keeps the message of its last
failure until cleared or until its next operation starts.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Optional

from loading_states.logging_config import get_logger
from loading_states.models import FormFieldState

logger = get_logger(__name__)


class FormLoadingTracker:
    """Loading flags and error messages keyed by form field name."""

    def __init__(self) -> None:
        self._loading: Dict[str, bool] = {}
        self._errors: Dict[str, str] = {}

    @property
    def loading_fields(self) -> Dict[str, bool]:
        return dict(self._loading)

    @property
    def errors(self) -> Dict[str, str]:
        return dict(self._errors)

    def is_any_field_loading(self) -> bool:
        return any(self._loading.values())

    def is_field_loading(self, field: str) -> bool:
        return self._loading.get(field, False)

    def get_field_error(self, field: str) -> Optional[str]:
        return self._errors.get(field)

    def set_field_loading(self, field: str, loading: bool) -> None:
        if loading:
            self._loading[field] = True
        else:
            self._loading.pop(field, None)

    def set_field_error(self, field: str, error: str) -> None:
        """Record an error message for ``field``; also ends its loading state."""
        self._errors[field] = error
        self.set_field_loading(field, False)

    def clear_field_error(self, field: str) -> None:
        self._errors.pop(field, None)

    async def execute_field_operation(self, field: str, operation: Callable[[], Any]) -> Any:
        """Run ``operation`` with ``field`` marked as loading.

        The previous error is cleared first. On failure the error's message is
        stored for the field and the error is re-raised.
        """
        self.set_field_loading(field, True)
        self.clear_field_error(field)

        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            logger.debug("Field operation for %r failed: %s", field, exc)
            self.set_field_error(field, str(exc))
            raise
        except BaseException:
            self.set_field_loading(field, False)
            raise

        self.set_field_loading(field, False)
        return result

    def snapshot(self) -> Dict[str, FormFieldState]:
        fields = set(self._loading) | set(self._errors)
        snapshot: Dict[str, FormFieldState] = {}
        for field in sorted(fields):
            state: FormFieldState = {"loading": self.is_field_loading(field)}
            if field in self._errors:
                state["error"] = self._errors[field]
            snapshot[field] = state
        return snapshot

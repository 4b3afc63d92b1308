"""
Centralized configuration for the loading states coordinator.

This module provides timing constants for loading indicators, network quality
probing and the per-operation configuration consumed by the orchestrator.
All durations are in seconds.
"""

from dataclasses import dataclass, fields, replace
from typing import Any

from loading_states.exceptions import ValidationError


@dataclass(frozen=True)
class LoadingConfig:
    """Default timing for loading indicators."""

    # Grace period before a pending operation is shown
    SHOW_DELAY_SEC: float = 0.2
    # Floor on how long a shown indicator stays up
    MIN_DURATION_SEC: float = 0.5
    TIMEOUT_SEC: float = 30.0

    RETRY_ATTEMPTS: int = 3
    RETRY_DELAY_SEC: float = 1.0

    # success/error/empty return to idle after this long
    AUTO_RESET_SEC: float = 3.0


@dataclass(frozen=True)
class NetworkConfig:
    """Network quality probing and slow-connection policy."""

    PROBE_URL: str = "https://www.gstatic.com/generate_204"
    PROBE_INTERVAL_SEC: float = 30.0
    SLOW_THRESHOLD_SEC: float = 4.0
    CONNECTIVITY_POLL_SEC: float = 5.0

    SLOW_SHOW_DELAY_SEC: float = 0.1
    SLOW_MIN_DURATION_SEC: float = 1.0
    SLOW_TIMEOUT_FACTOR: float = 2.0


# Global configuration instances (frozen/immutable)
LOADING = LoadingConfig()
NETWORK = NetworkConfig()


@dataclass(frozen=True)
class OperationConfig:
    """
    Per-operation timing and retry policy.

    Attributes:
        show_delay: Time an operation must stay pending before it is shown
        min_duration: Minimum time a shown indicator stays visible
        timeout: Time after which a pending operation fails (0 disables)
        retry_attempts: Maximum attempts, including the first
        retry_delay: Base delay for exponential backoff between attempts
    """

    show_delay: float = LOADING.SHOW_DELAY_SEC
    min_duration: float = LOADING.MIN_DURATION_SEC
    timeout: float = LOADING.TIMEOUT_SEC
    retry_attempts: int = LOADING.RETRY_ATTEMPTS
    retry_delay: float = LOADING.RETRY_DELAY_SEC

    def validate(self) -> "OperationConfig":
        """
        Check the configuration for impossible values.

        Returns:
            self, so calls can be chained

        Raises:
            ValidationError: If a duration is negative or retry_attempts < 1
        """
        for name in ("show_delay", "min_duration", "timeout", "retry_delay"):
            value = getattr(self, name)
            if value < 0:
                raise ValidationError("Duration must not be negative", name, value)
        if self.retry_attempts < 1:
            raise ValidationError(
                "At least one attempt is required", "retry_attempts", self.retry_attempts
            )
        return self

    def with_overrides(self, **overrides: Any) -> "OperationConfig":
        """
        Return a copy with the given fields replaced.

        None values are skipped so callers can forward optional arguments.

        Raises:
            ValidationError: If an unknown field is given or the result is invalid
        """
        known = {f.name for f in fields(self)}
        changes = {}
        for name, value in overrides.items():
            if name not in known:
                raise ValidationError("Unknown configuration option", name, value)
            if value is not None:
                changes[name] = value
        if not changes:
            return self
        return replace(self, **changes).validate()


DEFAULT_OPERATION_CONFIG = OperationConfig()

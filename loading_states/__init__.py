"""Asynchronous operation and loading-state coordinator."""

from __future__ import annotations

from loading_states.__version__ import __version__
from loading_states.bulk_tracker import BulkOperation, BulkOperationTracker, BulkStatus
from loading_states.clock import OperationClock, Timer
from loading_states.config import DEFAULT_OPERATION_CONFIG, LOADING, NETWORK, OperationConfig
from loading_states.debounce import DebouncedFlag
from loading_states.exceptions import (
    LoadingStatesError,
    NetworkError,
    OperationError,
    OperationTimeoutError,
    ValidationError,
)
from loading_states.form_loading import FormLoadingTracker
from loading_states.network_monitor import (
    ConnectionSpeed,
    HttpProbe,
    NetworkQualityMonitor,
    detect_online,
)
from loading_states.orchestrator import ExecutionOrchestrator, execute_with_loading
from loading_states.registry import LoadingRegistry, ScopedEntry, get_default_registry
from loading_states.retry import RetryCoordinator, calculate_backoff, execute_with_retry
from loading_states.state_machine import LoadingState, LoadingStateMachine

__all__ = [
    "__version__",
    # Bulk
    "BulkOperation",
    "BulkOperationTracker",
    "BulkStatus",
    # Clock
    "OperationClock",
    "Timer",
    # Config
    "DEFAULT_OPERATION_CONFIG",
    "LOADING",
    "NETWORK",
    "OperationConfig",
    # Debounce / forms
    "DebouncedFlag",
    "FormLoadingTracker",
    # Errors
    "LoadingStatesError",
    "NetworkError",
    "OperationError",
    "OperationTimeoutError",
    "ValidationError",
    # Network
    "ConnectionSpeed",
    "HttpProbe",
    "NetworkQualityMonitor",
    "detect_online",
    # Orchestration
    "ExecutionOrchestrator",
    "execute_with_loading",
    # Registry / state machine
    "LoadingRegistry",
    "LoadingState",
    "LoadingStateMachine",
    "ScopedEntry",
    "get_default_registry",
    # Retry
    "RetryCoordinator",
    "calculate_backoff",
    "execute_with_retry",
]

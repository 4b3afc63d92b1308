#!/usr/bin/env python3
"""
Bulk Operation Tracker
Thread-safe progress tracking for long-running multi-item jobs
"""

import math
import threading
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional

from loading_states.exceptions import ValidationError
from loading_states.logging_config import get_logger
from loading_states.models import BulkOperationInfo

logger = get_logger(__name__)


class BulkStatus(Enum):
    """Bulk operation status"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BulkOperation:
    """Counts for one bulk job"""
    id: str
    total: int
    completed: int = 0
    failed: int = 0
    status: BulkStatus = BulkStatus.IDLE

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def progress(self) -> int:
        """Percentage of processed items (0-100)"""
        # Halves round up (12.5 -> 13)
        return math.floor(self.processed * 100 / self.total + 0.5)

    def to_dict(self) -> BulkOperationInfo:
        data = asdict(self)
        data['status'] = self.status.value
        data['progress'] = self.progress
        return data


def derive_status(total: int, completed: int, failed: int) -> BulkStatus:
    """
    Derive a bulk operation's status from its counts

    Args:
        total: Declared number of items
        completed: Items that succeeded
        failed: Items that failed

    Returns:
        COMPLETED when every item succeeded, FAILED when every item was
        processed and at least one failed, RUNNING otherwise
    """
    if completed + failed >= total:
        return BulkStatus.FAILED if failed > 0 else BulkStatus.COMPLETED
    return BulkStatus.RUNNING


class BulkOperationTracker:
    """Thread-safe tracker for multi-item jobs (e.g. batch export)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._operations: Dict[str, BulkOperation] = {}

    def start(self, operation_id: str, total: int) -> BulkOperation:
        """
        Start tracking a bulk operation, replacing any previous one with the same id

        Args:
            operation_id: Caller-chosen operation id
            total: Number of items the job will process

        Returns:
            A copy of the new operation

        Raises:
            ValidationError: If total is below 1
        """
        if total < 1:
            raise ValidationError("Bulk operation needs at least one item", "total", total)

        with self._lock:
            operation = BulkOperation(id=operation_id, total=total, status=BulkStatus.RUNNING)
            self._operations[operation_id] = operation
            logger.debug("Bulk operation %s started (%d items)", operation_id, total)
            return BulkOperation(**asdict(operation))

    def update_progress(self, operation_id: str, completed: int, failed: int = 0) -> Optional[BulkOperation]:
        """
        Record absolute counts for an operation

        Passing the same counts twice leaves the operation unchanged.
        Unknown ids are ignored.

        Args:
            operation_id: Operation id
            completed: Total items completed so far (not a delta)
            failed: Total items failed so far (not a delta)

        Returns:
            A copy of the updated operation, or None for unknown ids

        Raises:
            ValidationError: If a count is negative or completed + failed exceeds total
        """
        if completed < 0:
            raise ValidationError("Count must not be negative", "completed", completed)
        if failed < 0:
            raise ValidationError("Count must not be negative", "failed", failed)

        with self._lock:
            operation = self._operations.get(operation_id)
            if operation is None:
                logger.debug("Ignoring progress for unknown bulk operation %s", operation_id)
                return None

            if completed + failed > operation.total:
                raise ValidationError(
                    f"Processed items exceed total of {operation.total}",
                    "completed+failed",
                    completed + failed,
                )

            operation.completed = completed
            operation.failed = failed
            operation.status = derive_status(operation.total, completed, failed)

            if operation.status is not BulkStatus.RUNNING:
                logger.info(
                    "Bulk operation %s %s (%d ok, %d failed)",
                    operation_id,
                    operation.status.value,
                    completed,
                    failed,
                )
            return BulkOperation(**asdict(operation))

    def get_progress(self, operation_id: str) -> int:
        """
        Get percentage of processed items

        Args:
            operation_id: Operation id

        Returns:
            (completed + failed) / total as a rounded percentage, or 0 for unknown ids
        """
        with self._lock:
            operation = self._operations.get(operation_id)
            return operation.progress if operation else 0

    def get_operation(self, operation_id: str) -> Optional[BulkOperation]:
        """Get a copy of an operation, or None if unknown"""
        with self._lock:
            operation = self._operations.get(operation_id)
            return BulkOperation(**asdict(operation)) if operation else None

    def list_operations(self) -> List[BulkOperationInfo]:
        """Get all operations as dicts"""
        with self._lock:
            return [operation.to_dict() for operation in self._operations.values()]

    def remove(self, operation_id: str) -> bool:
        """Stop tracking an operation"""
        with self._lock:
            return self._operations.pop(operation_id, None) is not None

    def clear(self):
        """Forget all operations"""
        with self._lock:
            self._operations.clear()

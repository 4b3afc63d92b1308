"""
Data models for the loading states coordinator
Defines TypedDict shapes for the snapshots handed to the rendering layer
"""

from typing import Dict, Literal, Optional, TypedDict


# ==================== Scoped Loading ====================

class EntrySnapshot(TypedDict):
    """Read-only view of one registry key"""
    key: str
    state: Literal["idle", "loading", "success", "error", "empty"]
    isLoading: bool
    error: Optional[str]
    progress: int  # 0-100
    activeOperations: int


RegistrySnapshot = Dict[str, EntrySnapshot]  # key -> entry snapshot


# ==================== Bulk Operations ====================

class BulkOperationInfo(TypedDict):
    """Progress of a multi-item job"""
    id: str
    total: int
    completed: int
    failed: int
    status: Literal["idle", "running", "completed", "failed"]
    progress: int  # 0-100


# ==================== Network ====================

class NetworkStatus(TypedDict):
    """Current network quality estimate"""
    online: bool
    speed: Literal["fast", "slow", "offline"]
    lastLatency: Optional[float]  # seconds
    checkedAt: Optional[str]  # ISO 8601
    simplifyAnimations: bool
    simpleSkeletons: bool


# ==================== Forms ====================

class FormFieldState(TypedDict, total=False):
    """Loading/error state of one form field"""
    loading: bool
    error: str

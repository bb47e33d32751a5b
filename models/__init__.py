"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.catalog import (
    RecordStatus,
    MatchType,
    SourceItem,
    DestinationVariant,
    DestinationRecord,
    MatchResult,
)
from models.sync import (
    JobKind,
    RunStatus,
    InventoryUpdate,
    InventoryAction,
    CreateAction,
    DiscontinueAction,
    PendingAction,
    action_size,
    FailsafeState,
    RunSummary,
    SyncStats,
    LogEntry,
    FailsafeStatus,
    SyncStatus,
    JobStartResponse,
    ControlResponse,
)

__all__ = [
    "BaseSchema",
    # Catalog
    "RecordStatus",
    "MatchType",
    "SourceItem",
    "DestinationVariant",
    "DestinationRecord",
    "MatchResult",
    # Sync
    "JobKind",
    "RunStatus",
    "InventoryUpdate",
    "InventoryAction",
    "CreateAction",
    "DiscontinueAction",
    "PendingAction",
    "action_size",
    "FailsafeState",
    "RunSummary",
    "SyncStats",
    "LogEntry",
    "FailsafeStatus",
    "SyncStatus",
    "JobStartResponse",
    "ControlResponse",
]

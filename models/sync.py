"""
Sync job models and schemas.

Covers job kinds, failsafe state, pending actions held across a halt,
run summaries and the operator status payload.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from pydantic import Field

from models.base import BaseSchema
from models.catalog import DestinationRecord, SourceItem


class JobKind(str, Enum):
    """Reconciliation job kinds. Each has its own lock and run summary."""
    INVENTORY_SYNC = "inventory-sync"
    CREATE_NEW = "create-new"
    DISCONTINUE = "discontinue"
    DEDUPLICATE = "deduplicate"
    SKU_REMAP = "sku-remap"


class RunStatus(str, Enum):
    """How a run ended."""
    COMPLETED = "completed"
    HALTED = "halted"      # Failsafe tripped, waiting for an operator
    ABORTED = "aborted"    # Paused or aborted mid-run
    FAILED = "failed"      # Snapshot fetch or unexpected error


class InventoryUpdate(BaseSchema):
    """One pending inventory correction."""

    title: str
    sku: str
    variant_id: Optional[str] = None
    inventory_item_id: str
    current_inventory: int
    new_inventory: int
    inventory_managed: bool = True


# ===================
# PENDING ACTIONS
# ===================

class InventoryAction(BaseSchema):
    """Apply these inventory corrections."""
    kind: Literal[JobKind.INVENTORY_SYNC] = JobKind.INVENTORY_SYNC
    updates: list[InventoryUpdate]


class CreateAction(BaseSchema):
    """Create these source items in the store."""
    kind: Literal[JobKind.CREATE_NEW] = JobKind.CREATE_NEW
    items: list[SourceItem]


class DiscontinueAction(BaseSchema):
    """Retire these store records."""
    kind: Literal[JobKind.DISCONTINUE] = JobKind.DISCONTINUE
    records: list[DestinationRecord]


PendingAction = Annotated[
    Union[InventoryAction, CreateAction, DiscontinueAction],
    Field(discriminator="kind"),
]


def action_size(action: "PendingAction") -> int:
    """Number of mutations a pending action would issue."""
    if isinstance(action, InventoryAction):
        return len(action.updates)
    if isinstance(action, CreateAction):
        return len(action.items)
    return len(action.records)


# ===================
# STATE & SUMMARIES
# ===================

class FailsafeState(BaseSchema):
    """Circuit breaker state. Lives until an operator resolves it."""

    triggered: bool = False
    reason: str = ""
    kind: Optional[JobKind] = None
    triggered_at: Optional[datetime] = None
    pending_action: Optional[PendingAction] = None


class RunSummary(BaseSchema):
    """Outcome of the most recently finished run of one job kind."""

    kind: JobKind
    started_at: datetime
    finished_at: datetime
    status: RunStatus
    counts: dict[str, int] = Field(default_factory=dict)
    error_count: int = 0
    error: Optional[str] = None


class SyncStats(BaseSchema):
    """Lifetime counters since process start."""

    new_products: int = 0
    inventory_updates: int = 0
    discontinued: int = 0
    duplicates_deleted: int = 0
    skus_remapped: int = 0
    errors: int = 0
    last_sync: Optional[datetime] = None


class LogEntry(BaseSchema):
    """Activity log line shown on the status surface."""

    timestamp: datetime
    message: str
    level: str = "info"
    job_type: str = "system"


# ===================
# API RESPONSES
# ===================

class FailsafeStatus(BaseSchema):
    """Failsafe state without the (potentially large) pending batch."""

    triggered: bool
    reason: str
    kind: Optional[JobKind] = None
    triggered_at: Optional[datetime] = None
    pending_count: int = 0


class SyncStatus(BaseSchema):
    """Everything the operator dashboard needs."""

    paused: bool
    running_jobs: list[JobKind]
    stats: SyncStats
    last_runs: dict[JobKind, RunSummary]
    history: list[RunSummary]
    logs: list[LogEntry]
    failsafe: FailsafeStatus
    error_tally: dict[str, int]


class JobStartResponse(BaseSchema):
    """Result of a manual job trigger."""

    kind: JobKind
    started: bool
    message: str


class ControlResponse(BaseSchema):
    """Result of an operator control action."""

    success: bool
    message: str

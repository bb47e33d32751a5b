"""
Business logic services.

Each service handles one part of catalog reconciliation.
"""

from services.activity_service import ActivityService
from services.matching_service import MatchingEngine, word_overlap_ratio
from services.failsafe_service import FailsafeGuard
from services.job_orchestrator import JobOrchestrator, CancellationToken
from services.pipeline_base import ReconciliationPipeline, RunContext, sku_index
from services.inventory_sync_service import InventorySyncService
from services.product_creation_service import ProductCreationService
from services.discontinue_service import DiscontinueService
from services.deduplication_service import DeduplicationService
from services.sku_remap_service import SkuRemapService
from services.sync_service import SyncService, get_sync_service, parse_job_kind

__all__ = [
    "ActivityService",
    "MatchingEngine",
    "word_overlap_ratio",
    "FailsafeGuard",
    "JobOrchestrator",
    "CancellationToken",
    "ReconciliationPipeline",
    "RunContext",
    "sku_index",
    "InventorySyncService",
    "ProductCreationService",
    "DiscontinueService",
    "DeduplicationService",
    "SkuRemapService",
    "SyncService",
    "get_sync_service",
    "parse_job_kind",
]

"""
Discontinue: retire active store records the supplier no longer lists.

Retiring sets the record to draft; nothing is deleted. A SKU has to be
missing for `discontinue_miss_runs` consecutive runs before it is retired,
so a single truncated feed does not pull products.
"""

from typing import Optional
import structlog

from models.catalog import DestinationRecord, RecordStatus
from models.sync import DiscontinueAction, JobKind
from services.pipeline_base import ReconciliationPipeline, RunContext

logger = structlog.get_logger(__name__)


class DiscontinueService(ReconciliationPipeline):
    """discontinue job."""

    kind = JobKind.DISCONTINUE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Lower-cased SKU → consecutive runs missing from the feed
        self.miss_counts: dict[str, int] = {}

    def _run(self, ctx: RunContext) -> None:
        snapshot = self.fetch_snapshots(ctx)
        if snapshot is None:
            return
        items, records = snapshot

        if not self.guard.check_snapshot(len(items), len(records), self.kind):
            self.halt(ctx)
            return

        subset = self.supplier_subset(records, active_only=True)
        feed_skus = {i.sku.strip().lower() for i in items}
        missing = [
            r for r in subset
            if r.sku and r.sku.strip().lower() not in feed_skus
        ]
        candidates = self._count_misses(missing)

        ctx.counts["missing"] = len(missing)
        ctx.counts["candidates"] = len(candidates)
        self.log(
            f"{len(missing)} active records missing from the feed, "
            f"{len(candidates)} missing for {self.settings.discontinue_miss_runs}+ runs"
        )

        action = DiscontinueAction(records=candidates)
        if not self.guard.evaluate(len(candidates), len(subset), self.kind, action):
            self.halt(ctx)
            return

        self._apply(action, ctx)

    def _count_misses(self, missing: list[DestinationRecord]) -> list[DestinationRecord]:
        """Advance miss counters; SKUs back in the feed start over."""
        previous = self.miss_counts
        self.miss_counts = {}
        for record in missing:
            key = record.sku.strip().lower()
            self.miss_counts[key] = previous.get(key, 0) + 1

        threshold = self.settings.discontinue_miss_runs
        return [r for r in missing if self.miss_counts[r.sku.strip().lower()] >= threshold]

    def _apply(self, action: DiscontinueAction, ctx: RunContext) -> None:
        self.apply_each(
            ctx,
            action.records,
            self._discontinue_one,
            describe=lambda r: f"discontinue {r.title} ({r.sku})",
            success="discontinued",
            stat="discontinued",
        )

    def _discontinue_one(self, record: DestinationRecord, ctx: RunContext) -> Optional[str]:
        self.destination.update_status(record.id, RecordStatus.DRAFT)
        self.miss_counts.pop((record.sku or "").strip().lower(), None)
        self.log(f"✓ Discontinued {record.title} ({record.sku})", "success")
        return None

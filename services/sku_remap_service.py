"""
SKU remap: repair store records linked to the wrong (or no) supplier SKU.

Every feed item is matched against the whole store with the full matching
engine (SKU, handle, title, fuzzy title), one tier at a time across the
feed. Within a tier feed order decides priority: a record claimed by an
earlier item is invisible to later ones. Manually triggered and not gated
by the failsafe.
"""

from typing import Optional
import structlog

from models.catalog import DestinationRecord, MatchResult, SourceItem
from models.sync import JobKind
from services.matching_service import MatchingEngine
from services.pipeline_base import ReconciliationPipeline, RunContext

logger = structlog.get_logger(__name__)

Remap = tuple[SourceItem, MatchResult]


def plan_remaps(
    items: list[SourceItem],
    engine: MatchingEngine,
    counts: Optional[dict] = None,
) -> list[Remap]:
    """
    Match the whole feed and collect the SKU corrections.

    Args:
        items: Feed items, highest priority first
        engine: Matching engine over the store snapshot
        counts: Optional counter receiving match-type tallies

    Returns:
        (item, match) pairs whose record SKU differs from the item SKU,
        in feed order
    """
    remaps: list[Remap] = []

    for item, result in zip(items, engine.match_all(items)):
        if counts is not None:
            key = "match_" + result.match_type.value.replace("-", "_")
            counts[key] = counts.get(key, 0) + 1
        if result.record is None:
            continue
        if result.record.variant.sku != item.sku:
            remaps.append((item, result))

    return remaps



class SkuRemapService(ReconciliationPipeline):
    """sku-remap job."""

    kind = JobKind.SKU_REMAP

    def _run(self, ctx: RunContext) -> None:
        snapshot = self.fetch_snapshots(ctx)
        if snapshot is None:
            return
        items, records = snapshot

        engine = MatchingEngine(records, self.settings.fuzzy_match_threshold)
        remaps = plan_remaps(items, engine, ctx.counts)

        self.log(f"{len(remaps)} store records need their SKU corrected")

        self.apply_each(
            ctx,
            remaps,
            self._remap_one,
            describe=lambda r: f"remap {r[1].record.title} to {r[0].sku}",
            success="remapped",
            stat="skus_remapped",
        )

    def _remap_one(self, remap: Remap, ctx: RunContext) -> Optional[str]:
        item, result = remap
        record: DestinationRecord = result.record
        if not record.variant.id:
            raise ValueError(f"record {record.id} has no variant to update")

        self.destination.update_sku(record.variant.id, item.sku)
        self.log(
            f"✓ Remapped {record.title}: {record.variant.sku or '(none)'} → {item.sku} "
            f"[{result.label}]",
            "success"
        )
        return None

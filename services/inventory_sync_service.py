"""
Inventory sync: bring store stock levels in line with the supplier feed.

Matching is by SKU only; linking records that lack the right SKU is the
sku-remap job's responsibility.
"""

from typing import Optional
import structlog

from models.catalog import DestinationRecord, SourceItem
from models.sync import InventoryAction, InventoryUpdate, JobKind
from services.pipeline_base import ReconciliationPipeline, RunContext, sku_index

logger = structlog.get_logger(__name__)


def build_inventory_updates(
    items: list[SourceItem],
    index: dict[str, DestinationRecord],
    levels: dict[str, int],
) -> tuple[list[InventoryUpdate], int]:
    """
    Pair feed items with store records and keep the ones that drifted.

    A record with no known level counts as 0.

    Returns:
        (updates, number of pairs already in sync)
    """
    updates: list[InventoryUpdate] = []
    in_sync = 0

    for item in items:
        record = index.get(item.sku.strip().lower())
        if record is None or not record.variant.inventory_item_id:
            continue

        current = levels.get(record.variant.inventory_item_id, 0)
        if current == item.inventory_level:
            in_sync += 1
            continue

        updates.append(InventoryUpdate(
            title=record.title or item.title,
            sku=item.sku,
            variant_id=record.variant.id,
            inventory_item_id=record.variant.inventory_item_id,
            current_inventory=current,
            new_inventory=item.inventory_level,
            inventory_managed=record.variant.inventory_managed,
        ))

    return updates, in_sync


class InventorySyncService(ReconciliationPipeline):
    """inventory-sync job."""

    kind = JobKind.INVENTORY_SYNC

    def _run(self, ctx: RunContext) -> None:
        snapshot = self.fetch_snapshots(ctx)
        if snapshot is None:
            return
        items, records = snapshot

        if not self.guard.check_snapshot(len(items), len(records), self.kind):
            self.halt(ctx)
            return

        subset = self.supplier_subset(records)
        index = sku_index(subset)
        item_ids = [
            r.variant.inventory_item_id for r in subset if r.variant.inventory_item_id
        ]
        levels = self.destination.fetch_inventory_levels(item_ids)

        if ctx.should_abort():
            self.abort(ctx, "after inventory fetch")
            return

        updates, in_sync = build_inventory_updates(items, index, levels)
        ctx.counts["in_sync"] = in_sync
        ctx.counts["changes_needed"] = len(updates)
        self.log(
            f"Inventory updates prepared: {len(updates)} changes needed, "
            f"{in_sync} already in sync"
        )

        action = InventoryAction(updates=updates)
        if not self.guard.evaluate(len(updates), len(subset), self.kind, action):
            self.halt(ctx)
            return

        self._apply(action, ctx)

    def _apply(self, action: InventoryAction, ctx: RunContext) -> None:
        self.apply_each(
            ctx,
            action.updates,
            self._update_one,
            describe=lambda u: f"inventory update for {u.title} ({u.sku})",
            success="updated",
            stat="inventory_updates",
        )

    def _update_one(self, update: InventoryUpdate, ctx: RunContext) -> Optional[str]:
        if not update.inventory_managed and update.variant_id:
            self.destination.enable_inventory_tracking(update.variant_id)
            self.log(f"Enabled inventory tracking for {update.title}")
            self.pause()

        self.destination.set_inventory(update.inventory_item_id, update.new_inventory)
        self.log(
            f"✓ Updated {update.title} "
            f"({update.current_inventory} → {update.new_inventory})",
            "success"
        )
        return None

"""
Create-new: add feed items the store does not have yet.

An item is new when no supplier-tagged record matches it exactly by SKU,
handle or title. Items found only by handle or title are not created; they
are counted as unlinked and left for sku-remap to attach the SKU. Fuzzy
matches are not consulted, so a similar-but-different product is still
created.
"""

from typing import Optional
import structlog

from models.catalog import DestinationRecord, MatchType, RecordStatus, SourceItem
from models.sync import CreateAction, JobKind
from services.matching_service import MatchingEngine
from services.pipeline_base import ReconciliationPipeline, RunContext

logger = structlog.get_logger(__name__)


def build_product_payload(item: SourceItem, supplier_tag: str) -> dict:
    """Store product payload for a new single-variant record."""
    return {
        "title": item.title,
        "handle": item.handle,
        "body_html": item.description,
        "status": RecordStatus.ACTIVE.value,
        "tags": supplier_tag,
        "variants": [{
            "sku": item.sku,
            "price": str(item.price),
            "inventory_management": "shopify",
        }],
        "images": [{"src": src} for src in item.images],
    }


def find_new_items(
    items: list[SourceItem],
    records: list[DestinationRecord],
) -> tuple[list[SourceItem], list[SourceItem]]:
    """
    Split feed items into new ones and ones the store holds under another SKU.

    Each record links to at most one item. SKU matches are claimed for the
    whole feed first, so an item whose SKU the store holds is never new.

    Returns:
        (new items, items matched by handle or title only)
    """
    engine = MatchingEngine(records)
    new_items: list[SourceItem] = []
    unlinked: list[SourceItem] = []

    for item, result in zip(items, engine.match_all(items, fuzzy=False)):
        if result.record is None:
            new_items.append(item)
        elif result.match_type != MatchType.SKU:
            unlinked.append(item)

    return new_items, unlinked


class ProductCreationService(ReconciliationPipeline):
    """create-new job."""

    kind = JobKind.CREATE_NEW

    def _run(self, ctx: RunContext) -> None:
        snapshot = self.fetch_snapshots(ctx)
        if snapshot is None:
            return
        items, records = snapshot

        if not self.guard.check_snapshot(len(items), len(records), self.kind):
            self.halt(ctx)
            return

        candidates, unlinked = find_new_items(items, self.supplier_subset(records))
        batch = candidates[:self.settings.max_create_per_run]

        ctx.counts["candidates"] = len(candidates)
        ctx.counts["unlinked"] = len(unlinked)
        if unlinked:
            self.log(
                f"{len(unlinked)} feed items match a store record by handle or title "
                f"but not SKU; run sku-remap to link them",
                "warning"
            )
        self.log(
            f"Found {len(candidates)} new products, "
            f"creating up to {self.settings.max_create_per_run} this run"
        )

        action = CreateAction(items=batch)
        if not self.guard.evaluate(len(candidates), None, self.kind, action):
            self.halt(ctx)
            return

        self._apply(action, ctx)

    def _apply(self, action: CreateAction, ctx: RunContext) -> None:
        self.apply_each(
            ctx,
            action.items,
            self._create_one,
            describe=lambda i: f"create {i.title} ({i.sku})",
            success="created",
            stat="new_products",
        )

    def _create_one(self, item: SourceItem, ctx: RunContext) -> Optional[str]:
        record = self.destination.create_record(
            build_product_payload(item, self.settings.supplier_tag)
        )
        self.pause()

        # The record exists from here on; a failure below is not rolled back
        try:
            if not record.variant.inventory_item_id:
                raise ValueError("created record has no inventory item")
            self.destination.set_inventory(record.variant.inventory_item_id, item.inventory_level)
        except Exception as e:
            ctx.errors += 1
            self.log(
                f"⚠ Created {item.title} ({item.sku}) as {record.id} "
                f"but setting inventory failed: {e}",
                "error",
                split_failure=True
            )
            self.activity.record_error(f"split failure: {e}", self.kind.value)
            return "split_failures"

        self.log(f"✓ Created {item.title} ({item.sku}) with {item.inventory_level} in stock", "success")
        return None

"""
Deduplicate: delete store records that share a normalized title.

The oldest record of each group is kept. This maintenance job is triggered
manually and is not gated by the failsafe.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional
import structlog

from models.catalog import DestinationRecord
from models.sync import JobKind
from services.pipeline_base import ReconciliationPipeline, RunContext
from utils.text_utils import normalize_text

logger = structlog.get_logger(__name__)

DEDUP_FIELDS = ("id", "handle", "title", "tags", "status", "created_at", "variants")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(record: DestinationRecord) -> tuple:
    created = record.created_at
    if created is None:
        # Unknown creation time sorts last so it is never the keeper
        return (1, _EPOCH, record.id)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (0, created, record.id)


def find_duplicate_groups(
    records: list[DestinationRecord],
) -> list[tuple[DestinationRecord, list[DestinationRecord]]]:
    """
    Group records by normalized title.

    Returns:
        (keeper, duplicates oldest first) per group with more than one
        member, in first-seen order. Records with an empty normalized
        title are never grouped.
    """
    groups: dict[str, list[DestinationRecord]] = defaultdict(list)
    for record in records:
        key = normalize_text(record.title)
        if key:
            groups[key].append(record)

    result = []
    for members in groups.values():
        if len(members) < 2:
            continue
        ordered = sorted(members, key=_created_key)
        result.append((ordered[0], ordered[1:]))
    return result


class DeduplicationService(ReconciliationPipeline):
    """deduplicate job."""

    kind = JobKind.DEDUPLICATE

    def _run(self, ctx: RunContext) -> None:
        records = self.destination.fetch_all(DEDUP_FIELDS)
        self.log(f"Fetched {len(records)} store records")

        if ctx.should_abort():
            self.abort(ctx, "after fetch")
            return

        groups = find_duplicate_groups(records)
        deletions = [dup for _, dups in groups for dup in dups]

        ctx.counts["groups"] = len(groups)
        self.log(f"Found {len(groups)} duplicate groups, {len(deletions)} records to delete")
        for keeper, dups in groups:
            logger.info(
                "duplicate_group",
                title=keeper.title,
                keep=keeper.id,
                delete=[d.id for d in dups]
            )

        self.apply_each(
            ctx,
            deletions,
            self._delete_one,
            describe=lambda r: f"delete duplicate {r.title} ({r.id})",
            success="deleted",
            stat="duplicates_deleted",
        )

    def _delete_one(self, record: DestinationRecord, ctx: RunContext) -> Optional[str]:
        self.destination.delete(record.id)
        self.log(f"✓ Deleted duplicate {record.title} ({record.id})", "success")
        return None

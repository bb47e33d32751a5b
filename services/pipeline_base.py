"""
Shared machinery for the reconciliation pipelines.

A pipeline run:
1. checks its token, fetches both snapshots concurrently, checks again
2. computes what must change
3. (gated kinds) asks the failsafe; a halt ends the run
4. applies mutations one by one, checking the token before each item and
   pausing after each remote write; too many failures halt the batch
5. publishes exactly one RunSummary, whatever the exit path
"""

import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional, Sequence, TypeVar
import structlog

from config.settings import Settings, get_settings
from integrations.protocols import DestinationCatalog, SourceCatalog
from models.catalog import DestinationRecord, RecordStatus, SourceItem
from models.sync import JobKind, PendingAction, RunStatus, RunSummary
from parsers.feed_parser import parse_feed
from services.activity_service import ActivityService, utcnow
from services.failsafe_service import FailsafeGuard
from services.job_orchestrator import CancellationToken

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RunContext:
    """Mutable bookkeeping for one run."""

    def __init__(self, kind: JobKind, token: CancellationToken):
        self.kind = kind
        self.token = token
        self.started_at = utcnow()
        self.counts: Counter = Counter()
        self.errors = 0
        self.status = RunStatus.COMPLETED

    def should_abort(self) -> bool:
        return self.token.should_abort()

    def summary(self, status: Optional[RunStatus] = None, error: Optional[str] = None) -> RunSummary:
        return RunSummary(
            kind=self.kind,
            started_at=self.started_at,
            finished_at=utcnow(),
            status=status or self.status,
            counts=dict(self.counts),
            error_count=self.errors + (1 if error else 0),
            error=error,
        )


class ReconciliationPipeline:
    """Base class for one job kind."""

    kind: JobKind

    def __init__(
        self,
        source: SourceCatalog,
        destination: DestinationCatalog,
        guard: FailsafeGuard,
        activity: ActivityService,
        settings: Optional[Settings] = None,
    ):
        self.source = source
        self.destination = destination
        self.guard = guard
        self.activity = activity
        self.settings = settings or get_settings()

    # ===================
    # ENTRY POINTS
    # ===================

    def run(self, token: CancellationToken) -> RunSummary:
        """Full run: fetch, diff, gate, apply."""
        return self._execute(token, self._run)

    def apply(self, action: PendingAction, token: CancellationToken) -> RunSummary:
        """Apply a batch an operator confirmed after a failsafe halt."""
        if action.kind != self.kind:
            raise ValueError(f"{self.kind.value} cannot apply a {action.kind.value} action")
        self.log(f"Applying confirmed batch for {self.kind.value}", "warning")
        return self._execute(token, lambda ctx: self._apply(action, ctx))

    def _execute(self, token: CancellationToken, body: Callable[[RunContext], None]) -> RunSummary:
        ctx = RunContext(self.kind, token)
        try:
            if ctx.should_abort():
                self.abort(ctx, "before start")
            else:
                body(ctx)
        except Exception as e:
            self.activity.record_run(ctx.summary(RunStatus.FAILED, error=str(e)))
            raise

        summary = ctx.summary()
        self.activity.record_run(summary)
        self.log(
            f"{self.kind.value} {summary.status.value}: "
            + (", ".join(f"{k}={v}" for k, v in sorted(summary.counts.items())) or "no changes")
            + f", errors={summary.error_count}",
            "success" if summary.status == RunStatus.COMPLETED else "warning",
        )
        return summary

    def _run(self, ctx: RunContext) -> None:
        raise NotImplementedError

    def _apply(self, action: PendingAction, ctx: RunContext) -> None:
        raise NotImplementedError(f"{self.kind.value} has no confirmable action")

    # ===================
    # HELPERS
    # ===================

    def log(self, message: str, level: str = "info", **context) -> None:
        self.activity.log(message, level, self.kind.value, **context)

    def abort(self, ctx: RunContext, where: str) -> None:
        ctx.status = RunStatus.ABORTED
        self.log(f"{self.kind.value} aborted {where}", "warning")

    def halt(self, ctx: RunContext) -> None:
        ctx.status = RunStatus.HALTED

    def pause(self) -> None:
        """Minimum spacing between remote writes."""
        if self.settings.api_call_delay_seconds > 0:
            time.sleep(self.settings.api_call_delay_seconds)

    def fetch_snapshots(
        self,
        ctx: RunContext,
        fields: Optional[Sequence[str]] = None,
    ) -> Optional[tuple[list[SourceItem], list[DestinationRecord]]]:
        """
        Fetch the feed and the store side by side.

        Fetch errors propagate and fail the run.

        Returns:
            (source items, store records), or None when cancelled meanwhile
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix=f"fetch-{self.kind.value}") as pool:
            source_future = pool.submit(self.source.fetch_all)
            destination_future = pool.submit(self.destination.fetch_all, fields)
            raw_source = source_future.result()
            records = destination_future.result()

        items = parse_feed(raw_source, self.settings.source_url_prefix).items
        self.log(f"Fetched {len(items)} feed items and {len(records)} store records")

        if ctx.should_abort():
            self.abort(ctx, "after fetch")
            return None
        return items, records

    def supplier_subset(
        self,
        records: Iterable[DestinationRecord],
        active_only: bool = False,
    ) -> list[DestinationRecord]:
        """Records tagged as owned by this integration."""
        tag = self.settings.supplier_tag
        return [
            r for r in records
            if tag in r.tags and (not active_only or r.status == RecordStatus.ACTIVE)
        ]

    def apply_each(
        self,
        ctx: RunContext,
        items: Sequence[T],
        operation: Callable[[T, RunContext], Optional[str]],
        describe: Callable[[T], str],
        success: str,
        stat: Optional[str] = None,
    ) -> None:
        """
        Apply operation to items one at a time.

        The token is checked before every item. A failing item is logged,
        tallied and skipped; the rest of the batch still runs unless the
        share of failed attempts exceeds max_error_rate_percentage, which
        trips the failsafe and halts the run.

        Args:
            ctx: Run bookkeeping
            items: Batch to apply
            operation: Remote mutation; may return an outcome name
                overriding success
            describe: Item label for logs
            success: Outcome name counted per applied item
            stat: Lifetime SyncStats counter bumped per applied item
        """
        for item in items:
            if ctx.should_abort():
                self.abort(ctx, f"with {len(items) - ctx.counts['attempted']} items left")
                return

            ctx.counts["attempted"] += 1
            try:
                outcome = operation(item, ctx) or success
            except Exception as e:
                ctx.errors += 1
                ctx.counts["failed"] += 1
                self.log(f"✗ {describe(item)}: {e}", "error")
                self.activity.record_error(str(e), self.kind.value)
                if self._error_rate_exceeded(ctx):
                    self._stop_on_error_rate(ctx, len(items))
                    return
            else:
                ctx.counts[outcome] += 1
                if stat:
                    self.activity.increment(stat)
            self.pause()

    def _error_rate_exceeded(self, ctx: RunContext) -> bool:
        attempted = ctx.counts["attempted"]
        if attempted < self.settings.error_rate_min_attempts:
            return False
        return ctx.counts["failed"] * 100 > self.settings.max_error_rate_percentage * attempted

    def _stop_on_error_rate(self, ctx: RunContext, batch_size: int) -> None:
        failed, attempted = ctx.counts["failed"], ctx.counts["attempted"]
        logger.error(
            "error_rate_exceeded",
            kind=self.kind.value,
            failed=failed,
            attempted=attempted,
            remaining=batch_size - attempted
        )
        self.guard.trip(
            self.kind,
            f"{failed} of {attempted} writes failed "
            f"({failed / attempted * 100:.1f}%), above the "
            f"{self.settings.max_error_rate_percentage:g}% error limit; "
            f"{batch_size - attempted} items not attempted"
        )
        self.halt(ctx)


def sku_index(records: Iterable[DestinationRecord]) -> dict[str, DestinationRecord]:
    """Lower-cased SKU → record. The first record wins on collisions."""
    index: dict[str, DestinationRecord] = {}
    for record in records:
        if record.sku:
            index.setdefault(record.sku.strip().lower(), record)
    return index

"""
Failsafe circuit breaker for bulk mutations.

Every gated pipeline asks evaluate() once per run, before its first
mutation. When the batch is larger than the configured blast radius the
guard keeps the exact batch as a pending action, raises an alert and
halts. Nothing in that batch is applied until an operator confirms,
aborts or clears.

Limits:
- inventory-sync, discontinue: percentage of the tagged store subset.
  Exactly at the limit is allowed; strictly above halts.
- discontinue: also an absolute number of records retired per run.
- create-new: absolute number of new records, same boundary rule.

Only one halt is expected at a time: a halted pipeline stops before it
could evaluate again, and every token reports abort while triggered.
"""

import threading
from typing import Callable, Optional
import structlog

from config.settings import Settings, get_settings
from integrations.protocols import Notifier
from integrations.telegram_messages import get_message
from models.sync import FailsafeState, FailsafeStatus, JobKind, PendingAction, action_size
from services.activity_service import ActivityService, utcnow

logger = structlog.get_logger(__name__)

PERCENTAGE_KINDS = (JobKind.INVENTORY_SYNC, JobKind.DISCONTINUE)
ABSOLUTE_KINDS = (JobKind.CREATE_NEW,)


class FailsafeGuard:
    """Holds the single process-wide FailsafeState."""

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        activity: Optional[ActivityService] = None,
        settings: Optional[Settings] = None,
        on_abort: Optional[Callable[[], None]] = None,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier
        self.activity = activity
        # Installed by the orchestrator owner to advance the cancellation epoch
        self.on_abort = on_abort
        self._lock = threading.Lock()
        self._state = FailsafeState()

    # ===================
    # STATE
    # ===================

    @property
    def triggered(self) -> bool:
        with self._lock:
            return self._state.triggered

    @property
    def pending_action(self) -> Optional[PendingAction]:
        with self._lock:
            return self._state.pending_action

    def get_status(self) -> FailsafeStatus:
        with self._lock:
            state = self._state
            return FailsafeStatus(
                triggered=state.triggered,
                reason=state.reason,
                kind=state.kind,
                triggered_at=state.triggered_at,
                pending_count=action_size(state.pending_action) if state.pending_action else 0,
            )

    def limit_for(self, kind: JobKind) -> float:
        if kind == JobKind.INVENTORY_SYNC:
            return self.settings.max_inventory_update_percentage
        if kind == JobKind.DISCONTINUE:
            return self.settings.max_discontinue_percentage
        if kind == JobKind.CREATE_NEW:
            return self.settings.max_new_products
        raise ValueError(f"{kind.value} is not gated by the failsafe")

    # ===================
    # EVALUATION
    # ===================

    def evaluate(
        self,
        affected: int,
        total: Optional[int],
        kind: JobKind,
        action: PendingAction,
    ) -> bool:
        """
        Decide whether a batch may proceed.

        Args:
            affected: Mutations the batch would issue
            total: Size of the record set the batch is drawn from
                (ignored for absolute kinds)
            kind: Job kind issuing the batch
            action: The exact batch, kept for confirm() on halt

        Returns:
            True to proceed, False when halted
        """
        limit = self.limit_for(kind)

        if kind in ABSOLUTE_KINDS:
            if affected <= limit:
                return True
            reason = (
                f"{kind.value}: {affected} new records exceed the limit of {limit:g} per run"
            )
        else:
            reason = self._percentage_breach(affected, total, kind, limit)
            cap = self.settings.max_discontinue_count
            if reason is None and kind == JobKind.DISCONTINUE and affected > cap:
                reason = f"{kind.value}: {affected} records exceed the limit of {cap} retired per run"
            if reason is None:
                return True

        self._halt(kind, reason, action)
        return False

    @staticmethod
    def _percentage_breach(
        affected: int,
        total: Optional[int],
        kind: JobKind,
        limit: float,
    ) -> Optional[str]:
        # Compared as affected * 100 <= limit * total so 3 of 10 is exactly 30%
        if total:
            if affected * 100 <= limit * total:
                return None
            percentage = affected / total * 100
        else:
            if not affected:
                return None
            percentage = 100.0
        return (
            f"{kind.value}: {affected} of {total or 0} records "
            f"({percentage:.1f}%) exceed the {limit:g}% limit"
        )

    def trip(self, kind: JobKind, reason: str) -> None:
        """
        Informational halt raised while a batch is already running.

        No pending action is kept; resolve with clear().
        """
        self._halt(kind, f"{kind.value}: {reason}", None)

    def check_snapshot(self, source_count: int, destination_count: int, kind: JobKind) -> bool:
        """
        Informational halt when a snapshot is suspiciously small.

        A truncated feed would otherwise look like mass discontinuation.
        No pending action is kept; resolve with clear().

        Returns:
            True when both snapshots are large enough
        """
        problems = []
        if source_count < self.settings.min_source_items:
            problems.append(
                f"source feed has {source_count} items (minimum {self.settings.min_source_items})"
            )
        if destination_count < self.settings.min_destination_records:
            problems.append(
                f"store has {destination_count} records "
                f"(minimum {self.settings.min_destination_records})"
            )
        if not problems:
            return True

        self._halt(kind, f"{kind.value}: " + "; ".join(problems), None)
        return False

    def _halt(self, kind: JobKind, reason: str, action: Optional[PendingAction]) -> None:
        with self._lock:
            self._state = FailsafeState(
                triggered=True,
                reason=reason,
                kind=kind,
                triggered_at=utcnow(),
                pending_action=action,
            )

        logger.error(
            "failsafe_triggered",
            kind=kind.value,
            reason=reason,
            pending=action_size(action) if action else 0
        )
        if self.activity:
            self.activity.log(f"FAILSAFE TRIGGERED: {reason}", "error", kind.value)
        self._notify(get_message("failsafe_triggered", job=kind.value, reason=reason))

    def _notify(self, text: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(text)
        except Exception as e:
            logger.error("failsafe_notification_failed", error=str(e))

    # ===================
    # OPERATOR RESOLUTION
    # ===================

    def confirm(self, dispatch: Callable[[PendingAction], bool]) -> bool:
        """
        Run the pending action and clear the halt.

        The state is cleared before dispatching so the confirmed run is not
        itself cancelled by the halt. When dispatch cannot start the run
        the halt is restored unchanged.

        Args:
            dispatch: Starts the owning pipeline's apply; returns False if
                it could not start

        Returns:
            True if the action was dispatched; False (no-op) without one
        """
        with self._lock:
            previous = self._state
            action = previous.pending_action
            if action is None:
                return False
            self._state = FailsafeState()

        logger.info("failsafe_confirmed", kind=action.kind.value, count=action_size(action))
        if self.activity:
            self.activity.log(
                f"Failsafe confirmed: applying {action_size(action)} pending changes",
                "warning",
                action.kind.value
            )

        if not dispatch(action):
            with self._lock:
                if not self._state.triggered:
                    self._state = previous
            logger.warning("failsafe_confirm_not_dispatched", kind=action.kind.value)
            return False

        self._notify(get_message(
            "failsafe_confirmed", job=action.kind.value, count=action_size(action)
        ))
        return True

    def abort(self) -> bool:
        """
        Discard the pending action, clear the halt and cancel running loops.

        Returns:
            True if a halt was active
        """
        with self._lock:
            previous = self._state
            self._state = FailsafeState()

        if self.on_abort:
            self.on_abort()

        if not previous.triggered:
            return False

        job = previous.kind.value if previous.kind else "system"
        count = action_size(previous.pending_action) if previous.pending_action else 0
        logger.warning("failsafe_aborted", kind=job, discarded=count)
        if self.activity:
            self.activity.log(f"Failsafe aborted: {count} pending changes discarded", "warning", job)
        self._notify(get_message("failsafe_aborted", job=job, count=count))
        return True

    def clear(self) -> bool:
        """
        Clear the halt without running the pending action.

        Returns:
            True if a halt was active
        """
        with self._lock:
            previous = self._state
            self._state = FailsafeState()

        if not previous.triggered:
            return False

        job = previous.kind.value if previous.kind else "system"
        logger.info("failsafe_cleared", kind=job)
        if self.activity:
            self.activity.log("Failsafe cleared", "info", job)
        return True

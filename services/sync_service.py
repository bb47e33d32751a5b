"""
Sync service: the operator control surface.

Owns the one orchestrator, failsafe guard and activity record of the
process and the five pipelines built on them. Routes and the scheduler
talk to this class only.
"""

from typing import Optional
import structlog

from config.settings import Settings, get_settings
from exceptions import UnknownJobKindError
from integrations.protocols import DestinationCatalog, Notifier, SourceCatalog
from integrations.telegram_messages import get_message
from models.sync import JobKind, PendingAction, SyncStatus
from services.activity_service import ActivityService
from services.deduplication_service import DeduplicationService
from services.discontinue_service import DiscontinueService
from services.failsafe_service import FailsafeGuard
from services.inventory_sync_service import InventorySyncService
from services.job_orchestrator import JobOrchestrator
from services.pipeline_base import ReconciliationPipeline
from services.product_creation_service import ProductCreationService
from services.sku_remap_service import SkuRemapService

logger = structlog.get_logger(__name__)

LOG_LIMIT = 100


def parse_job_kind(value: str) -> JobKind:
    """
    Raises:
        UnknownJobKindError: If value is not a job kind
    """
    try:
        return JobKind(value)
    except ValueError:
        raise UnknownJobKindError(value, [k.value for k in JobKind])


class SyncService:
    """
    Catalog reconciliation control surface.

    pause()/resume(), start_job(), confirm/abort/clear of the failsafe and
    get_status().
    """

    def __init__(
        self,
        source: SourceCatalog,
        destination: DestinationCatalog,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.notifier = notifier
        self.activity = ActivityService(log_size=self.settings.activity_log_size)
        self.guard = FailsafeGuard(
            notifier=notifier,
            activity=self.activity,
            settings=self.settings,
        )
        self.orchestrator = JobOrchestrator(
            activity=self.activity,
            is_failsafe_triggered=lambda: self.guard.triggered,
        )
        self.guard.on_abort = self.orchestrator.advance_epoch

        pipeline_args = (source, destination, self.guard, self.activity, self.settings)
        self.pipelines: dict[JobKind, ReconciliationPipeline] = {
            JobKind.INVENTORY_SYNC: InventorySyncService(*pipeline_args),
            JobKind.CREATE_NEW: ProductCreationService(*pipeline_args),
            JobKind.DISCONTINUE: DiscontinueService(*pipeline_args),
            JobKind.DEDUPLICATE: DeduplicationService(*pipeline_args),
            JobKind.SKU_REMAP: SkuRemapService(*pipeline_args),
        }

    # ===================
    # JOBS
    # ===================

    def start_job(self, kind: JobKind) -> bool:
        """
        Start a job in the background.

        Returns:
            False if a job of this kind is already running
        """
        pipeline = self.pipelines[kind]
        return self.orchestrator.start_job(kind, self._alerting(kind, pipeline.run))

    def _dispatch(self, action: PendingAction) -> bool:
        pipeline = self.pipelines[action.kind]
        return self.orchestrator.start_job(
            action.kind,
            self._alerting(action.kind, lambda token: pipeline.apply(action, token)),
        )

    def _alerting(self, kind: JobKind, body):
        """Wrap a job body so an unexpected failure also reaches the notifier."""
        def run(token):
            try:
                return body(token)
            except Exception as e:
                self._notify(get_message("job_failed", job=kind.value, error=str(e)))
                raise
        return run

    # ===================
    # OPERATOR CONTROLS
    # ===================

    def pause(self) -> None:
        self.orchestrator.pause()
        self.activity.log("System paused", "warning")
        self._notify(get_message("system_paused"))

    def resume(self) -> None:
        self.orchestrator.resume()
        self.activity.log("System resumed")
        self._notify(get_message("system_resumed"))

    def confirm_failsafe(self) -> bool:
        """Apply the batch held by the failsafe. No-op without one."""
        return self.guard.confirm(self._dispatch)

    def abort_failsafe(self) -> bool:
        return self.guard.abort()

    def clear_failsafe(self) -> bool:
        return self.guard.clear()

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            paused=self.orchestrator.paused,
            running_jobs=self.orchestrator.running_jobs(),
            stats=self.activity.get_stats(),
            last_runs=self.activity.get_last_runs(),
            history=self.activity.get_history(),
            logs=self.activity.get_logs(LOG_LIMIT),
            failsafe=self.guard.get_status(),
            error_tally=self.activity.get_error_tally(),
        )

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        return self.orchestrator.wait_idle(timeout)

    def _notify(self, text: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.send(text)
        except Exception as e:
            logger.error("notification_failed", error=str(e))


_sync_service: Optional[SyncService] = None


def get_sync_service() -> SyncService:
    """Get or create the process-wide SyncService."""
    global _sync_service
    if _sync_service is None:
        from integrations.apify import ApifyClient
        from integrations.shopify import ShopifyClient
        from integrations.telegram import TelegramNotifier

        settings = get_settings()
        _sync_service = SyncService(
            source=ApifyClient(settings),
            destination=ShopifyClient(settings),
            notifier=TelegramNotifier(settings),
            settings=settings,
        )
    return _sync_service

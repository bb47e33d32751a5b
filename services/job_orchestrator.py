"""
Job orchestration: one run per job kind, cooperative cancellation.

Each started job runs on its own daemon thread. A kind's lock is taken
under the orchestrator lock (so a manual and a scheduled trigger cannot
both win) and released in a finally block on every exit path.

Cancellation is coarse: a job captures the current epoch in its token and
polls should_abort() between items. pause(), resume() and failsafe abort
advance the epoch, so every token issued before them goes stale.
"""

import threading
import time
from typing import Callable, Optional
import structlog

from models.sync import JobKind
from services.activity_service import ActivityService

logger = structlog.get_logger(__name__)


class CancellationToken:
    """Handed to a job body; checked at loop boundaries."""

    def __init__(self, orchestrator: "JobOrchestrator", kind: JobKind, epoch: int):
        self._orchestrator = orchestrator
        self.kind = kind
        self.epoch = epoch

    def should_abort(self) -> bool:
        return self._orchestrator.should_abort(self.epoch)

    def __repr__(self) -> str:
        return f"CancellationToken(kind={self.kind.value}, epoch={self.epoch})"


JobBody = Callable[[CancellationToken], object]


class JobOrchestrator:
    """Owns the job lock table, the cancellation epoch and the pause flag."""

    def __init__(
        self,
        activity: Optional[ActivityService] = None,
        is_failsafe_triggered: Optional[Callable[[], bool]] = None,
    ):
        self.activity = activity
        self._is_failsafe_triggered = is_failsafe_triggered or (lambda: False)
        self._lock = threading.Lock()
        self._running: dict[JobKind, bool] = {kind: False for kind in JobKind}
        self._threads: dict[JobKind, threading.Thread] = {}
        self._epoch = 0
        self._paused = False

    # ===================
    # STATE
    # ===================

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    @property
    def paused(self) -> bool:
        with self._lock:
            return self._paused

    def is_running(self, kind: JobKind) -> bool:
        with self._lock:
            return self._running[kind]

    def running_jobs(self) -> list[JobKind]:
        with self._lock:
            return [kind for kind, running in self._running.items() if running]

    def should_abort(self, epoch: int) -> bool:
        """True when paused, the failsafe is triggered, or the epoch moved on."""
        with self._lock:
            if self._paused or epoch != self._epoch:
                return True
        return self._is_failsafe_triggered()

    # ===================
    # CONTROL
    # ===================

    def advance_epoch(self) -> int:
        with self._lock:
            self._epoch += 1
            epoch = self._epoch
        logger.info("cancellation_epoch_advanced", epoch=epoch)
        return epoch

    def pause(self) -> None:
        with self._lock:
            self._paused = True
            self._epoch += 1
        logger.warning("sync_paused")

    def resume(self) -> None:
        with self._lock:
            self._paused = False
            self._epoch += 1
        logger.info("sync_resumed")

    def start_job(self, kind: JobKind, body: JobBody) -> bool:
        """
        Start body(token) as a detached job unless kind is already running.

        Args:
            kind: Job kind (lock key)
            body: Job body receiving a CancellationToken

        Returns:
            True if started, False if the kind was already running
        """
        with self._lock:
            already_running = self._running[kind]
            if not already_running:
                self._running[kind] = True
                token = CancellationToken(self, kind, self._epoch)
                thread = threading.Thread(
                    target=self._run,
                    args=(kind, body, token),
                    name=f"job-{kind.value}",
                    daemon=True,
                )
                self._threads[kind] = thread

        if already_running:
            logger.info("job_already_running", kind=kind.value)
            if self.activity:
                self.activity.log(f"{kind.value} already running, skipped", "warning", kind.value)
            return False

        try:
            thread.start()
        except Exception:
            self._release(kind)
            raise

        logger.info("job_started", kind=kind.value, epoch=token.epoch)
        return True

    def _run(self, kind: JobKind, body: JobBody, token: CancellationToken) -> None:
        try:
            body(token)
            logger.info("job_finished", kind=kind.value)
        except Exception as e:
            logger.exception("job_failed", kind=kind.value, error=str(e))
            if self.activity:
                self.activity.log(f"{kind.value} failed: {e}", "error", kind.value)
                self.activity.record_error(str(e), kind.value)
        finally:
            self._release(kind)

    def _release(self, kind: JobKind) -> None:
        with self._lock:
            self._running[kind] = False
            self._threads.pop(kind, None)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no job is running.

        Returns:
            True if idle, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.running_jobs():
            for thread in self._snapshot_threads():
                remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
                thread.join(remaining)
            if deadline is not None and time.monotonic() >= deadline:
                break
            # Picks up jobs started while joining
            time.sleep(0.01)
        return not self.running_jobs()

    def _snapshot_threads(self) -> list[threading.Thread]:
        with self._lock:
            return list(self._threads.values())

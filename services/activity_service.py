"""
Activity tracking for the sync service.

Holds everything the status surface reports about past work: lifetime
counters, the latest summary per job kind, a bounded run history, a bounded
activity log and the error-frequency tally. All access is serialized by
one lock; jobs write from their own threads.
"""

import threading
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Optional
import structlog

from models.sync import JobKind, LogEntry, RunStatus, RunSummary, SyncStats
from utils.error_utils import normalize_error_message

logger = structlog.get_logger(__name__)

HISTORY_SIZE = 50

# Activity levels mapped onto logging levels
_LOG_LEVELS = {
    "info": "info",
    "success": "info",
    "warning": "warning",
    "error": "error",
    "critical": "critical",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivityService:
    """Process-wide record of sync activity."""

    def __init__(self, log_size: int = 500):
        self._lock = threading.Lock()
        self._stats = SyncStats()
        self._last_runs: dict[JobKind, RunSummary] = {}
        self._history: deque[RunSummary] = deque(maxlen=HISTORY_SIZE)
        self._logs: deque[LogEntry] = deque(maxlen=log_size)
        self._error_tally: Counter = Counter()

    # ===================
    # WRITE OPERATIONS
    # ===================

    def log(
        self,
        message: str,
        level: str = "info",
        job_type: str = "system",
        **context
    ) -> None:
        """Emit a structured event and keep the line for the dashboard."""
        log_method = getattr(logger, _LOG_LEVELS.get(level, "info"))
        log_method("sync_activity", message=message, job_type=job_type, **context)

        entry = LogEntry(timestamp=utcnow(), message=message, level=level, job_type=job_type)
        with self._lock:
            self._logs.appendleft(entry)

    def record_error(self, message: str, job_type: str = "system") -> str:
        """
        Count an error under its normalized key.

        Returns:
            The tally key the error was counted under
        """
        key = normalize_error_message(message)
        with self._lock:
            self._stats.errors += 1
            self._error_tally[key] += 1
        logger.debug("error_tallied", key=key, job_type=job_type)
        return key

    def increment(self, stat: str, amount: int = 1) -> None:
        """Bump a lifetime counter on SyncStats."""
        with self._lock:
            setattr(self._stats, stat, getattr(self._stats, stat) + amount)

    def record_run(self, summary: RunSummary) -> None:
        """Publish a finished run. Replaces the kind's previous summary."""
        with self._lock:
            self._last_runs[summary.kind] = summary
            self._history.appendleft(summary)
            if summary.status == RunStatus.COMPLETED:
                self._stats.last_sync = summary.finished_at

        logger.info(
            "run_recorded",
            kind=summary.kind.value,
            status=summary.status.value,
            counts=summary.counts,
            errors=summary.error_count
        )

    # ===================
    # READ OPERATIONS
    # ===================

    def get_stats(self) -> SyncStats:
        with self._lock:
            return self._stats.model_copy()

    def get_last_run(self, kind: JobKind) -> Optional[RunSummary]:
        with self._lock:
            return self._last_runs.get(kind)

    def get_last_runs(self) -> dict[JobKind, RunSummary]:
        with self._lock:
            return dict(self._last_runs)

    def get_history(self) -> list[RunSummary]:
        with self._lock:
            return list(self._history)

    def get_logs(self, limit: Optional[int] = None) -> list[LogEntry]:
        """Newest first."""
        with self._lock:
            logs = list(self._logs)
        return logs[:limit] if limit else logs

    def get_error_tally(self) -> dict[str, int]:
        with self._lock:
            return dict(self._error_tally.most_common())

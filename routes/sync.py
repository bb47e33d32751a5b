"""
Sync API routes.

Operator control surface: status, manual job triggers, pause/resume and
failsafe resolution.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from models.sync import ControlResponse, JobStartResponse, SyncStatus
from services.sync_service import get_sync_service, parse_job_kind
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/sync", tags=["Sync"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# STATUS
# ===================

@router.get("/status", response_model=SyncStatus)
async def get_status():
    """
    Current sync state.

    Returns stats, last run per job kind, recent history and logs,
    failsafe state and the error tally.
    """
    try:
        return get_sync_service().get_status()

    except Exception as e:
        return handle_error(e)


# ===================
# JOBS
# ===================

@router.post("/jobs/{kind}", response_model=JobStartResponse)
async def start_job(kind: str):
    """
    Start a job in the background.

    Kinds: inventory-sync, create-new, discontinue, deduplicate, sku-remap.
    A kind that is already running is not started again.
    """
    try:
        job_kind = parse_job_kind(kind)
        started = get_sync_service().start_job(job_kind)

        return JobStartResponse(
            kind=job_kind,
            started=started,
            message=f"{job_kind.value} started" if started else f"{job_kind.value} is already running",
        )

    except Exception as e:
        return handle_error(e)


# ===================
# SYSTEM CONTROL
# ===================

@router.post("/pause", response_model=ControlResponse)
async def pause():
    """Pause all jobs. Running jobs stop before their next item."""
    try:
        get_sync_service().pause()
        return ControlResponse(success=True, message="System paused")

    except Exception as e:
        return handle_error(e)


@router.post("/resume", response_model=ControlResponse)
async def resume():
    """Resume after a pause."""
    try:
        get_sync_service().resume()
        return ControlResponse(success=True, message="System resumed")

    except Exception as e:
        return handle_error(e)


# ===================
# FAILSAFE
# ===================

@router.post("/failsafe/confirm", response_model=ControlResponse)
async def confirm_failsafe():
    """Apply the batch the failsafe is holding."""
    try:
        dispatched = get_sync_service().confirm_failsafe()
        return ControlResponse(
            success=dispatched,
            message="Pending action dispatched" if dispatched else "No pending action to confirm",
        )

    except Exception as e:
        return handle_error(e)


@router.post("/failsafe/abort", response_model=ControlResponse)
async def abort_failsafe():
    """Discard the held batch and cancel running loops."""
    try:
        aborted = get_sync_service().abort_failsafe()
        return ControlResponse(
            success=aborted,
            message="Failsafe aborted" if aborted else "Failsafe was not triggered",
        )

    except Exception as e:
        return handle_error(e)


@router.post("/failsafe/clear", response_model=ControlResponse)
async def clear_failsafe():
    """Clear the halt without applying anything."""
    try:
        cleared = get_sync_service().clear_failsafe()
        return ControlResponse(
            success=cleared,
            message="Failsafe cleared" if cleared else "Failsafe was not triggered",
        )

    except Exception as e:
        return handle_error(e)

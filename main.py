"""
Supplier Catalog Sync: Main Application

FastAPI application entry point.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import Settings, settings


def configure_logging(app_settings: Settings) -> None:
    """
    Configure structured logging.

    structlog hands events to the stdlib root logger, so LOG_LEVEL set on
    the root is what filter_by_level drops against.
    """
    logging.basicConfig(format="%(message)s")
    logging.getLogger().setLevel(app_settings.log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer() if app_settings.is_production
                else structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(settings)

logger = structlog.get_logger(__name__)

SHUTDOWN_GRACE_SECONDS = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup: Report which collaborators are configured
    Shutdown: Stop running jobs at their next item
    """
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        shopify_configured=settings.shopify_configured,
        apify_configured=bool(settings.apify_token),
        telegram_configured=settings.telegram_configured,
    )

    yield

    from services.sync_service import get_sync_service

    service = get_sync_service()
    if service.orchestrator.running_jobs():
        logger.info("stopping_running_jobs", jobs=[k.value for k in service.orchestrator.running_jobs()])
        service.orchestrator.advance_epoch()
        service.wait_idle(timeout=SHUTDOWN_GRACE_SECONDS)

    logger.info("application_shutting_down")


# Create FastAPI app
app = FastAPI(
    title="Supplier Catalog Sync",
    description="Reconciles the supplier feed with the store catalog",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# ===================
# ROUTES
# ===================

@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Basic health status and collaborator configuration
    """
    return {
        "status": "healthy" if settings.shopify_configured and settings.apify_token else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "shopify_configured": settings.shopify_configured,
        "apify_configured": bool(settings.apify_token),
        "telegram_configured": settings.telegram_configured,
    }


@app.get("/")
async def root():
    """
    Root endpoint.

    Returns:
        API information and available endpoints
    """
    return {
        "name": "Supplier Catalog Sync API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "status": "/api/sync/status",
            "jobs": "/api/sync/jobs/{kind}",
            "pause": "/api/sync/pause",
            "resume": "/api/sync/resume",
            "failsafe": "/api/sync/failsafe/{confirm|abort|clear}",
        }
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler.

    Catches unhandled exceptions and returns standard error format.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


# ===================
# INCLUDE ROUTERS
# ===================
from routes.sync import router as sync_router

app.include_router(sync_router)  # Prefix already in router


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )

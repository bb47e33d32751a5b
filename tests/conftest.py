"""
Shared test fixtures.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest
from unittest.mock import MagicMock
from typing import Callable

from config.settings import Settings
from models.sync import JobKind
from services.activity_service import ActivityService
from services.failsafe_service import FailsafeGuard
from services.job_orchestrator import CancellationToken, JobOrchestrator
from tests.factories import FakeDestinationCatalog, FakeSourceCatalog, SUPPLIER_TAG


# ===================
# SETTINGS
# ===================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with no pacing delay and default failsafe limits."""
    return Settings(
        _env_file=None,
        supplier_tag=SUPPLIER_TAG,
        api_call_delay_seconds=0,
        max_inventory_update_percentage=5,
        max_discontinue_percentage=30,
        max_discontinue_count=100,
        max_new_products=100,
        max_create_per_run=200,
        fuzzy_match_threshold=60,
        max_error_rate_percentage=20,
        error_rate_min_attempts=10,
    )


# ===================
# COLLABORATORS
# ===================

@pytest.fixture
def notifier() -> MagicMock:
    """Notifier mock; .send records alerts."""
    mock = MagicMock()
    mock.send.return_value = True
    return mock


@pytest.fixture
def source() -> FakeSourceCatalog:
    return FakeSourceCatalog()


@pytest.fixture
def destination() -> FakeDestinationCatalog:
    return FakeDestinationCatalog()


# ===================
# CORE STATE
# ===================

@pytest.fixture
def activity() -> ActivityService:
    return ActivityService(log_size=100)


@pytest.fixture
def guard(notifier, activity, test_settings) -> FailsafeGuard:
    return FailsafeGuard(notifier=notifier, activity=activity, settings=test_settings)


@pytest.fixture
def orchestrator(activity, guard) -> JobOrchestrator:
    orchestrator = JobOrchestrator(
        activity=activity,
        is_failsafe_triggered=lambda: guard.triggered,
    )
    guard.on_abort = orchestrator.advance_epoch
    return orchestrator


@pytest.fixture
def token_for(orchestrator) -> Callable[[JobKind], CancellationToken]:
    """
    Build a token at the current epoch, for running pipelines inline.

    Usage:
        summary = pipeline.run(token_for(JobKind.INVENTORY_SYNC))
    """
    def _make(kind: JobKind) -> CancellationToken:
        return CancellationToken(orchestrator, kind, orchestrator.epoch)
    return _make


@pytest.fixture
def make_pipeline(source, destination, guard, activity, test_settings):
    """
    Build a pipeline wired to the fake catalogs.

    Usage:
        pipeline = make_pipeline(InventorySyncService)
    """
    def _make(cls):
        return cls(source, destination, guard, activity, test_settings)
    return _make


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def sync_service(source, destination, notifier, test_settings):
    """SyncService wired to the fake catalogs."""
    from services.sync_service import SyncService

    service = SyncService(
        source=source,
        destination=destination,
        notifier=notifier,
        settings=test_settings,
    )
    yield service
    service.orchestrator.pause()
    service.wait_idle(timeout=5)


@pytest.fixture
def test_client(sync_service):
    """
    FastAPI test client backed by the fake-wired SyncService.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/api/sync/status")
            assert response.status_code == 200
    """
    from unittest.mock import patch
    from fastapi.testclient import TestClient
    from main import app

    with patch("routes.sync.get_sync_service", return_value=sync_service):
        yield TestClient(app)

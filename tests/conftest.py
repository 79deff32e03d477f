from contextlib import asynccontextmanager

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from src.fleet_journal.config import get_settings
from src.fleet_journal.entity_store.dependencies import verify_entity_store
from src.fleet_journal.entity_store.memory import InMemoryEntityStore
from src.fleet_journal.journal.dependencies import get_sync_reconciler
from src.fleet_journal.main import app
from src.fleet_journal.sync.reconciler import TripSyncReconciler
from tests.mocks.config_mocks import mock_get_settings  # noqa: F401
from tests.mocks.journal_mocks import FakeIngestionService

# -----------------------------------------------------------------------------
# STORE & SERVICES
# -----------------------------------------------------------------------------


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def ingestion():
    return FakeIngestionService()


@pytest.fixture
def reconciler(store, ingestion, settings):
    return TripSyncReconciler(store, ingestion, settings)


# -----------------------------------------------------------------------------
# FASTAPI CLIENT FOR API TESTING
# -----------------------------------------------------------------------------


@pytest.fixture(scope="function")
async def async_client(store, reconciler):
    """
    Provide an async client backed by the in-memory store, without lifespan
    side effects.
    """

    @asynccontextmanager
    async def test_lifespan(_):
        yield

    async def _store():
        return store

    async def _reconciler():
        return reconciler

    app.router.lifespan_context = test_lifespan
    app.dependency_overrides[verify_entity_store] = _store
    app.dependency_overrides[get_sync_reconciler] = _reconciler
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    app.dependency_overrides.clear()

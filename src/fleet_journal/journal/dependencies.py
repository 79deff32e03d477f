from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header
from src.fleet_journal.autoprocess.service import JournalAutoProcessor
from src.fleet_journal.classification.service import ClassificationService
from src.fleet_journal.config import get_settings
from src.fleet_journal.entity_store.dependencies import (
    get_entity_store,
    verify_entity_store,
)
from src.fleet_journal.entity_store.interface import IEntityStore
from src.fleet_journal.geofences.repositories import GeofenceRepository
from src.fleet_journal.gps_provider.client import get_gps_client
from src.fleet_journal.ingestion.service import TripIngestionService
from src.fleet_journal.journal.repositories import (
    JournalPolicyRepository,
    JournalRepository,
    ProjectRepository,
)
from src.fleet_journal.journal.schemas import CurrentUser
from src.fleet_journal.journal.services import JournalReviewService
from src.fleet_journal.selector.service import UnregisteredTripSelector
from src.fleet_journal.sync.reconciler import TripSyncReconciler
from src.fleet_journal.vehicles.repositories import VehicleRepository


def get_current_user(
    x_user_email: str = Header(..., description="Email of the acting user"),
    x_user_name: Optional[str] = Header(None),
    x_user_role: str = Header("user"),
) -> CurrentUser:
    return CurrentUser(email=x_user_email, full_name=x_user_name, role=x_user_role)


@lru_cache()
def get_trip_reconciler() -> TripSyncReconciler:
    # One instance per process so per-vehicle sync locks are shared
    settings = get_settings()
    ingestion = TripIngestionService(get_gps_client(), settings.SYNC_MAX_CONCURRENCY)
    return TripSyncReconciler(get_entity_store(), ingestion, settings)


async def get_sync_reconciler(
    _: IEntityStore = Depends(verify_entity_store),
) -> TripSyncReconciler:
    return get_trip_reconciler()


def get_vehicle_repository(
    store: IEntityStore = Depends(verify_entity_store),
) -> VehicleRepository:
    return VehicleRepository(store)


def get_selector(
    store: IEntityStore = Depends(verify_entity_store),
) -> UnregisteredTripSelector:
    return UnregisteredTripSelector(JournalRepository(store))


def get_classification_service(
    store: IEntityStore = Depends(verify_entity_store),
) -> ClassificationService:
    return ClassificationService(
        JournalRepository(store),
        GeofenceRepository(store),
        ProjectRepository(store),
        JournalPolicyRepository(store),
        get_settings(),
    )


def get_review_service(
    store: IEntityStore = Depends(verify_entity_store),
) -> JournalReviewService:
    return JournalReviewService(JournalRepository(store))


def get_auto_processor(
    store: IEntityStore = Depends(verify_entity_store),
) -> JournalAutoProcessor:
    return JournalAutoProcessor(
        JournalRepository(store),
        JournalPolicyRepository(store),
        tz=get_settings().TIMEZONE,
    )

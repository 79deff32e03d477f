import logging
from http import HTTPStatus
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from src.fleet_journal.autoprocess.service import (
    AutoProcessResult,
    JournalAutoProcessor,
)
from src.fleet_journal.classification.schemas import (
    ClassificationSuggestion,
    CommitResult,
    RegisterRequest,
    SuggestRequest,
)
from src.fleet_journal.classification.service import ClassificationService
from src.fleet_journal.config import get_settings
from src.fleet_journal.gps_provider.exceptions import ProviderUnavailableException
from src.fleet_journal.ingestion.schemas import Period, TimeWindow
from src.fleet_journal.journal.dependencies import (
    get_auto_processor,
    get_classification_service,
    get_current_user,
    get_review_service,
    get_selector,
    get_sync_reconciler,
    get_vehicle_repository,
)
from src.fleet_journal.journal.exceptions import (
    JournalException,
    VehicleNotFoundException,
    VehicleWithoutDeviceException,
)
from src.fleet_journal.journal.schemas import CurrentUser, JournalEntry, ReviewRequest
from src.fleet_journal.journal.services import JournalReviewService
from src.fleet_journal.selector.schemas import UnregisteredTrips
from src.fleet_journal.selector.service import UnregisteredTripSelector
from src.fleet_journal.sync.reconciler import TripSyncReconciler
from src.fleet_journal.sync.schemas import SyncReport, SyncRequest, VehicleSyncResult
from src.fleet_journal.vehicles.repositories import VehicleRepository

logger = logging.getLogger(__name__)
journal_router = APIRouter(prefix="/journal", tags=["Driving Journal"])


@journal_router.post("/sync", response_model=SyncReport)
async def sync_all_trips(
    request: Optional[SyncRequest] = Body(None),
    reconciler: TripSyncReconciler = Depends(get_sync_reconciler),
    vehicle_repo: VehicleRepository = Depends(get_vehicle_repository),
    _: CurrentUser = Depends(get_current_user),
):
    settings = get_settings()
    request = request or SyncRequest()
    window = request.window(settings.SYNC_LOOKBACK_DAYS, settings.TIMEZONE)
    vehicles = await vehicle_repo.list_with_gps()
    logger.info(f"Syncing trips for {len(vehicles)} vehicles")
    return await reconciler.sync_vehicles(
        vehicles, window, max_vehicles=request.max_vehicles
    )


@journal_router.post("/sync/{vehicle_id}", response_model=VehicleSyncResult)
async def sync_vehicle_trips(
    vehicle_id: str,
    request: Optional[SyncRequest] = Body(None),
    reconciler: TripSyncReconciler = Depends(get_sync_reconciler),
    vehicle_repo: VehicleRepository = Depends(get_vehicle_repository),
    _: CurrentUser = Depends(get_current_user),
):
    vehicle = await vehicle_repo.get(vehicle_id)
    if vehicle is None:
        raise VehicleNotFoundException(vehicle_id)
    if not vehicle.has_gps:
        raise VehicleWithoutDeviceException(vehicle_id)

    settings = get_settings()
    window = (request or SyncRequest()).window(
        settings.SYNC_LOOKBACK_DAYS, settings.TIMEZONE
    )
    try:
        return await reconciler.sync_vehicle(vehicle, window)
    except ProviderUnavailableException as e:
        logger.error(f"Sync failed for vehicle {vehicle_id}: {e}")
        raise JournalException(status_code=HTTPStatus.BAD_GATEWAY, message=str(e))


@journal_router.get("/unregistered", response_model=UnregisteredTrips)
async def list_unregistered_trips(
    period: Period = Query(Period.WEEK),
    selector: UnregisteredTripSelector = Depends(get_selector),
    vehicle_repo: VehicleRepository = Depends(get_vehicle_repository),
):
    window = TimeWindow.for_period(period, tz=get_settings().TIMEZONE)
    groups = await selector.select(window, await vehicle_repo.list_with_gps())
    return UnregisteredTrips(start=window.start, end=window.end, groups=groups)


@journal_router.post("/suggestions", response_model=List[ClassificationSuggestion])
async def suggest_classifications(
    request: SuggestRequest,
    service: ClassificationService = Depends(get_classification_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await service.suggest(request.entry_ids, user, request.sources)


@journal_router.post("/register", response_model=CommitResult)
async def register_trips(
    request: RegisterRequest,
    service: ClassificationService = Depends(get_classification_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await service.register(request.items, user)


@journal_router.post("/entries/{entry_id}/review", response_model=JournalEntry)
async def review_entry(
    entry_id: str,
    request: ReviewRequest,
    service: JournalReviewService = Depends(get_review_service),
    user: CurrentUser = Depends(get_current_user),
):
    return await service.review(entry_id, request, user)


@journal_router.delete("/entries/{entry_id}", response_model=JournalEntry)
async def delete_entry(
    entry_id: str,
    service: JournalReviewService = Depends(get_review_service),
    _: CurrentUser = Depends(get_current_user),
):
    return await service.soft_delete(entry_id)


@journal_router.post("/auto-process", response_model=AutoProcessResult)
async def auto_process_journal(
    processor: JournalAutoProcessor = Depends(get_auto_processor),
):
    return await processor.run()

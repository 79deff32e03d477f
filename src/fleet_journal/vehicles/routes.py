import logging
from http import HTTPStatus
from typing import List

from fastapi import APIRouter, Depends
from src.fleet_journal.entity_store.dependencies import verify_entity_store
from src.fleet_journal.entity_store.interface import IEntityStore
from src.fleet_journal.gps_provider.client import get_gps_client
from src.fleet_journal.gps_provider.exceptions import GPSProviderException
from src.fleet_journal.journal.dependencies import get_current_user
from src.fleet_journal.journal.exceptions import JournalException
from src.fleet_journal.journal.schemas import CurrentUser
from src.fleet_journal.vehicles.repositories import VehicleRepository
from src.fleet_journal.vehicles.schemas import DeviceImportResult, VehiclePosition
from src.fleet_journal.vehicles.services import VehicleService

logger = logging.getLogger(__name__)
vehicles_router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


def get_vehicle_service(
    store: IEntityStore = Depends(verify_entity_store),
) -> VehicleService:
    return VehicleService(VehicleRepository(store), get_gps_client())


@vehicles_router.post("/sync-devices", response_model=DeviceImportResult)
async def sync_devices(
    service: VehicleService = Depends(get_vehicle_service),
    _: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.import_devices()
    except GPSProviderException as e:
        logger.error(f"Device import failed: {e}")
        raise JournalException(status_code=HTTPStatus.BAD_GATEWAY, message=str(e))


@vehicles_router.get("/positions", response_model=List[VehiclePosition])
async def last_positions(service: VehicleService = Depends(get_vehicle_service)):
    try:
        return await service.last_positions()
    except GPSProviderException as e:
        logger.error(f"Position lookup failed: {e}")
        raise JournalException(status_code=HTTPStatus.BAD_GATEWAY, message=str(e))

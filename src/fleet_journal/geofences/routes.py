import logging
from http import HTTPStatus
from typing import List

from fastapi import APIRouter, Depends
from src.fleet_journal.entity_store.dependencies import verify_entity_store
from src.fleet_journal.entity_store.interface import IEntityStore
from src.fleet_journal.geofences.repositories import GeofenceRepository
from src.fleet_journal.geofences.schemas import Geofence, GeofenceCreate
from src.fleet_journal.journal.dependencies import get_current_user
from src.fleet_journal.journal.schemas import CurrentUser

logger = logging.getLogger(__name__)
geofences_router = APIRouter(prefix="/geofences", tags=["Geofences"])


def get_geofence_repository(
    store: IEntityStore = Depends(verify_entity_store),
) -> GeofenceRepository:
    return GeofenceRepository(store)


@geofences_router.get("", response_model=List[Geofence])
async def list_geofences(repo: GeofenceRepository = Depends(get_geofence_repository)):
    return await repo.list_all()


@geofences_router.post("", response_model=Geofence, status_code=HTTPStatus.CREATED)
async def create_geofence(
    geofence: GeofenceCreate,
    repo: GeofenceRepository = Depends(get_geofence_repository),
    user: CurrentUser = Depends(get_current_user),
):
    logger.info(f"{user.email} created geofence {geofence.name}")
    return await repo.create(geofence)


@geofences_router.delete("/{geofence_id}")
async def delete_geofence(
    geofence_id: str,
    repo: GeofenceRepository = Depends(get_geofence_repository),
    _: CurrentUser = Depends(get_current_user),
):
    await repo.delete(geofence_id)
    return {"success": True}

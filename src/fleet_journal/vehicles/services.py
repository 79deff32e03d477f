import logging
from abc import ABC, abstractmethod
from typing import List

from src.fleet_journal.entity_store.exceptions import EntityStoreException
from src.fleet_journal.gps_provider.client import GPSProviderClient
from src.fleet_journal.vehicles.repositories import IVehicleRepository
from src.fleet_journal.vehicles.schemas import DeviceImportResult, VehiclePosition

logger = logging.getLogger(__name__)


class IVehicleService(ABC):
    @abstractmethod
    async def import_devices(self) -> DeviceImportResult:
        pass

    @abstractmethod
    async def last_positions(self) -> List[VehiclePosition]:
        pass


class VehicleService(IVehicleService):
    def __init__(self, vehicle_repo: IVehicleRepository, client: GPSProviderClient):
        self._repo = vehicle_repo
        self._client = client

    async def import_devices(self) -> DeviceImportResult:
        """Register a vehicle for every provider device the fleet does not know yet."""
        devices = await self._client.get_device_list(refresh=True)
        vehicles = await self._repo.list_all()
        known = {v.gps_device_id for v in vehicles if v.gps_device_id}

        created: List[str] = []
        skipped: List[str] = []
        errors: List[str] = []
        for device in devices:
            if device.deviceid in known:
                skipped.append(device.deviceid)
                continue
            try:
                vehicle = await self._repo.create(
                    {
                        "registration_number": device.devicename or device.deviceid,
                        "gps_device_id": device.deviceid,
                        "make": "Okänd",
                        "model": "GPS-enhet",
                        "status": "aktiv",
                        "notes": (
                            "Automatiskt importerad från GPS-system. "
                            f"Device type: {device.devicetype}"
                        ),
                    }
                )
            except EntityStoreException as e:
                logger.error(f"Failed to import device {device.deviceid}: {e}")
                errors.append(device.deviceid)
                continue
            known.add(device.deviceid)
            created.append(vehicle.id)

        logger.info(
            f"Device import: {len(created)} created, {len(skipped)} skipped, "
            f"{len(errors)} failed"
        )
        return DeviceImportResult(
            total=len(devices), created=created, skipped=skipped, errors=errors
        )

    async def last_positions(self) -> List[VehiclePosition]:
        vehicles = {v.gps_device_id: v for v in await self._repo.list_with_gps()}
        if not vehicles:
            return []
        records = await self._client.get_last_position(list(vehicles))
        positions = []
        for record in records:
            vehicle = vehicles.get(record.deviceid)
            if vehicle is None:
                continue
            positions.append(
                VehiclePosition(
                    vehicle_id=vehicle.id,
                    registration_number=vehicle.registration_number,
                    device_id=record.deviceid,
                    latitude=record.callat,
                    longitude=record.callon,
                    speed=record.speed,
                    updated_at=record.updatetime,
                )
            )
        return positions

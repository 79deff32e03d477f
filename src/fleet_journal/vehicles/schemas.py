from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Vehicle(BaseModel):
    """Fleet asset. Only vehicles with a gps_device_id take part in trip sync."""

    model_config = ConfigDict(extra="ignore")

    id: str
    registration_number: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    gps_device_id: Optional[str] = None
    assigned_driver: Optional[str] = None
    status: Optional[str] = None
    mileage: Optional[float] = None

    @property
    def has_gps(self) -> bool:
        return bool(self.gps_device_id)


class DeviceImportResult(BaseModel):
    total: int
    created: List[str]
    skipped: List[str]
    errors: List[str]


class VehiclePosition(BaseModel):
    vehicle_id: str
    registration_number: str
    device_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    updated_at: Optional[int] = None

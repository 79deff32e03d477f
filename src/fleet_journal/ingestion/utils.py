from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from src.fleet_journal.gps_provider.schemas import ProviderLocation, ProviderTrip
from src.fleet_journal.journal.schemas import JournalEntryCreate, Location, TripType
from src.fleet_journal.vehicles.schemas import Vehicle

Coordinate = Tuple[float, float]


def epoch_to_datetime(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def trip_key(trip: ProviderTrip, device_id: str) -> str:
    """Provider trip id, or a stable stand-in when the provider sends none."""
    return trip.tripid or f"{device_id}-{trip.begintime}"


def trip_coordinates(trips: List[ProviderTrip]) -> List[Coordinate]:
    coordinates: List[Coordinate] = []
    for trip in trips:
        for location in (trip.start_location, trip.end_location):
            if location and not location.address:
                coordinates.append((location.latitude, location.longitude))
    return list(dict.fromkeys(coordinates))


def to_location(
    location: Optional[ProviderLocation], addresses: Dict[Coordinate, str]
) -> Optional[Location]:
    if location is None:
        return None
    return Location(
        latitude=location.latitude,
        longitude=location.longitude,
        address=location.address
        or addresses.get((location.latitude, location.longitude)),
    )


def trip_to_entry(
    trip: ProviderTrip,
    vehicle: Vehicle,
    addresses: Optional[Dict[Coordinate, str]] = None,
) -> JournalEntryCreate:
    """Normalize a provider trip into a pending journal entry."""
    addresses = addresses or {}
    return JournalEntryCreate(
        vehicle_id=vehicle.id,
        registration_number=vehicle.registration_number,
        gps_trip_id=trip_key(trip, vehicle.gps_device_id or ""),
        start_time=epoch_to_datetime(trip.begintime),
        end_time=epoch_to_datetime(trip.endtime),
        start_location=to_location(trip.start_location, addresses),
        end_location=to_location(trip.end_location, addresses),
        distance_km=round(max(trip.mileage, 0.0), 2),
        duration_minutes=max(round((trip.endtime - trip.begintime) / 60), 0),
        trip_type=TripType.PENDING,
    )

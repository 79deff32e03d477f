import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel

from src.fleet_journal.geofences.schemas import Geofence
from src.fleet_journal.journal.schemas import JournalEntry, Location, TripType

EARTH_RADIUS_METERS = 6371e3

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class GeofenceMatch(BaseModel):
    geofence: Geofence
    distance_meters: float
    trip_type: Optional[TripType] = None
    project_code: Optional[str] = None
    customer: Optional[str] = None

    @property
    def has_directive(self) -> bool:
        return self.trip_type is not None


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _created(geofence: Geofence) -> datetime:
    created = geofence.created_date
    if created is None:
        return _EPOCH
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def classify_point(
    latitude: float, longitude: float, geofences: Iterable[Geofence]
) -> Optional[GeofenceMatch]:
    """
    Find the zone containing the point (distance <= radius). Overlaps resolve
    to the smallest radius, then to the most recently created zone. Inactive
    zones are ignored.
    """
    containing: List[GeofenceMatch] = []
    for geofence in geofences:
        if not geofence.is_active:
            continue
        distance = haversine_meters(
            latitude, longitude, geofence.latitude, geofence.longitude
        )
        if distance > geofence.radius_meters:
            continue
        business = geofence.auto_classify_as == TripType.BUSINESS
        containing.append(
            GeofenceMatch(
                geofence=geofence,
                distance_meters=distance,
                trip_type=geofence.auto_classify_as,
                project_code=geofence.default_project_code if business else None,
                customer=geofence.default_customer if business else None,
            )
        )
    if not containing:
        return None
    containing.sort(
        key=lambda m: (m.geofence.radius_meters, -_created(m.geofence).timestamp())
    )
    return containing[0]


def suggest_for_entry(
    entry: JournalEntry, geofences: Iterable[Geofence]
) -> Optional[GeofenceMatch]:
    """End point first, then start point; abstains unless a zone carries a directive."""
    zones = list(geofences)
    points: List[Optional[Location]] = [entry.end_location, entry.start_location]
    for point in points:
        if point is None or not point.has_coordinates:
            continue
        match = classify_point(point.latitude, point.longitude, zones)
        if match is not None and match.has_directive:
            return match
    return None

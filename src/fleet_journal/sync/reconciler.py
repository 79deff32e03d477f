import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.fleet_journal.config import Settings, get_settings
from src.fleet_journal.entity_store.exceptions import (
    EntityStoreException,
    StoreWriteException,
)
from src.fleet_journal.entity_store.interface import JOURNAL_ENTRIES, IEntityStore
from src.fleet_journal.gps_provider.geocoding import (
    coordinate_label,
    reverse_geocode_many,
)
from src.fleet_journal.gps_provider.schemas import ProviderTrip
from src.fleet_journal.ingestion.schemas import TimeWindow
from src.fleet_journal.ingestion.service import ITripIngestionService
from src.fleet_journal.ingestion.utils import (
    Coordinate,
    epoch_to_datetime,
    trip_coordinates,
    trip_key,
    trip_to_entry,
)
from src.fleet_journal.journal.repositories import JournalRepository
from src.fleet_journal.journal.schemas import (
    CurrentUser,
    JournalEntry,
    JournalEntryCreate,
)
from src.fleet_journal.sync.schemas import SyncReport, VehicleSyncResult
from src.fleet_journal.vehicles.repositories import VehicleRepository
from src.fleet_journal.vehicles.schemas import Vehicle

logger = logging.getLogger(__name__)

MISSING_DRIVER_REASON = "Förare kunde inte identifieras automatiskt"


class TripSyncReconciler:
    """
    Merge provider trips into the driving journal without duplicates.

    The set of known trip ids is loaded once per vehicle, before any fetched
    trip is evaluated. Syncs of the same vehicle are serialized within this
    process; two processes syncing one vehicle can still race.
    """

    def __init__(
        self,
        store: IEntityStore,
        ingestion: ITripIngestionService,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.ingestion = ingestion
        self.journal = JournalRepository(store)
        self.vehicles = VehicleRepository(store)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def sync_vehicle(
        self, vehicle: Vehicle, window: TimeWindow
    ) -> VehicleSyncResult:
        if not vehicle.has_gps:
            raise ValueError(f"Vehicle {vehicle.id} has no GPS device")

        async with self._locks[vehicle.id]:
            trips = await self.ingestion.fetch_trips(vehicle.gps_device_id, window)
            return await self._reconcile(vehicle, trips)

    async def sync_vehicles(
        self,
        vehicles: List[Vehicle],
        window: TimeWindow,
        max_vehicles: Optional[int] = None,
    ) -> SyncReport:
        """Sync every vehicle with a GPS device; failures stay per vehicle."""
        candidates = [v for v in vehicles if v.has_gps]
        if max_vehicles is not None:
            candidates = candidates[:max_vehicles]

        fetched = await self.ingestion.fetch_many(
            [v.gps_device_id for v in candidates], window
        )

        report = SyncReport()
        for vehicle in candidates:
            device_result = fetched[vehicle.gps_device_id]
            if not device_result.ok:
                logger.error(
                    f"Sync failed for vehicle {vehicle.registration_number}: "
                    f"{device_result.error}"
                )
                report.results.append(
                    VehicleSyncResult(
                        vehicle_id=vehicle.id,
                        registration_number=vehicle.registration_number,
                        error=device_result.error,
                    )
                )
                continue

            try:
                async with self._locks[vehicle.id]:
                    result = await self._reconcile(vehicle, device_result.trips)
            except (EntityStoreException, SQLAlchemyError) as e:
                logger.error(
                    f"Store error for vehicle {vehicle.registration_number}: {e}"
                )
                result = VehicleSyncResult(
                    vehicle_id=vehicle.id,
                    registration_number=vehicle.registration_number,
                    fetched=len(device_result.trips),
                    error=str(e),
                )
            report.results.append(result)

        logger.info(f"Trip sync finished: {report.summary}")
        return report

    async def _reconcile(
        self, vehicle: Vehicle, trips: List[ProviderTrip]
    ) -> VehicleSyncResult:
        device_id = vehicle.gps_device_id or ""
        result = VehicleSyncResult(
            vehicle_id=vehicle.id,
            registration_number=vehicle.registration_number,
            fetched=len(trips),
        )

        existing = await self.journal.list_for_vehicle(vehicle.id)
        known_ids = {e.gps_trip_id for e in existing if e.gps_trip_id}
        unlinked = [e for e in existing if not e.gps_trip_id and not e.is_deleted]

        new_trips = [t for t in trips if trip_key(t, device_id) not in known_ids]
        driver = await self._resolve_driver(vehicle) if new_trips else None
        addresses = await self._resolve_addresses(new_trips) if new_trips else {}

        for trip in sorted(trips, key=lambda t: t.begintime):
            key = trip_key(trip, device_id)
            if key in known_ids:
                logger.debug(f"Trip {key} already registered for {vehicle.id}")
                result.skipped += 1
                continue

            manual = self._match_unlinked(unlinked, trip)
            try:
                if manual is not None:
                    await self.journal.update(manual.id, {"gps_trip_id": key})
                    unlinked.remove(manual)
                    result.linked += 1
                else:
                    entry = self._build_entry(trip, vehicle, driver, addresses)
                    await self.journal.create(entry)
                    result.synced += 1
                known_ids.add(key)
            except EntityStoreException as e:
                logger.error(f"Failed to store trip {key} for {vehicle.id}: {e}")
                result.write_failures.append(key)

        if result.write_failures and result.synced + result.linked == 0:
            raise StoreWriteException(
                JOURNAL_ENTRIES,
                f"All {len(result.write_failures)} writes failed "
                f"for vehicle {vehicle.id}",
            )

        logger.info(
            f"Vehicle {vehicle.registration_number}: {result.synced} synced, "
            f"{result.linked} linked, {result.skipped} skipped, "
            f"{len(result.write_failures)} failed"
        )
        return result

    def _match_unlinked(
        self, unlinked: List[JournalEntry], trip: ProviderTrip
    ) -> Optional[JournalEntry]:
        tolerance = self.settings.MANUAL_MATCH_TOLERANCE_SECONDS
        trip_start = epoch_to_datetime(trip.begintime)
        for entry in unlinked:
            if _seconds_between(entry.start_time, trip_start) <= tolerance:
                return entry
        return None

    async def _resolve_driver(self, vehicle: Vehicle) -> Optional[CurrentUser]:
        if not vehicle.assigned_driver:
            return None
        try:
            user = await self.vehicles.find_user(vehicle.assigned_driver)
        except EntityStoreException as e:
            logger.warning(f"Could not look up driver {vehicle.assigned_driver}: {e}")
            user = None
        return user or CurrentUser(email=vehicle.assigned_driver)

    async def _resolve_addresses(
        self, trips: List[ProviderTrip]
    ) -> Dict[Coordinate, str]:
        coordinates = trip_coordinates(trips)
        if not self.settings.GEOCODING_ENABLED:
            return {c: coordinate_label(*c) for c in coordinates}
        return await reverse_geocode_many(
            coordinates, delay_seconds=self.settings.GEOCODER_DELAY_SECONDS
        )

    def _build_entry(
        self,
        trip: ProviderTrip,
        vehicle: Vehicle,
        driver: Optional[CurrentUser],
        addresses: Dict[Coordinate, str],
    ) -> JournalEntryCreate:
        entry = trip_to_entry(trip, vehicle, addresses)
        reasons: List[str] = []
        if driver is None:
            reasons.append(MISSING_DRIVER_REASON)
        else:
            entry.driver_email = driver.email
            entry.driver_name = driver.full_name
        if entry.distance_km > self.settings.ANOMALY_MAX_DISTANCE_KM:
            limit_km = self.settings.ANOMALY_MAX_DISTANCE_KM
            reasons.append(f"Ovanligt lång resa (över {limit_km:g} km)")
        if entry.duration_minutes > self.settings.ANOMALY_MAX_DURATION_MINUTES:
            hours = self.settings.ANOMALY_MAX_DURATION_MINUTES / 60
            reasons.append(f"Ovanligt lång tid (över {hours:g} timmar)")
        if reasons:
            entry.is_anomaly = True
            entry.anomaly_reason = ". ".join(reasons)
        return entry


def _seconds_between(a: datetime, b: datetime) -> float:
    if a.tzinfo is None:
        a = a.replace(tzinfo=timezone.utc)
    return abs((a - b).total_seconds())


async def sync_all_vehicles(
    reconciler: TripSyncReconciler, window: Optional[TimeWindow] = None
) -> SyncReport:
    settings = reconciler.settings
    window = window or TimeWindow.lookback(
        settings.SYNC_LOOKBACK_DAYS, tz=settings.TIMEZONE
    )
    vehicles = await reconciler.vehicles.list_with_gps()
    return await reconciler.sync_vehicles(vehicles, window)

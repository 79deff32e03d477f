import logging
from datetime import timezone
from typing import Dict, List

from src.fleet_journal.ingestion.schemas import TimeWindow
from src.fleet_journal.journal.repositories import IJournalRepository
from src.fleet_journal.journal.schemas import JournalEntry
from src.fleet_journal.selector.schemas import VehicleTrips
from src.fleet_journal.vehicles.schemas import Vehicle

logger = logging.getLogger(__name__)


def is_unregistered(entry: JournalEntry, window: TimeWindow) -> bool:
    """Not deleted, started inside the window, and still lacking a classification."""
    if entry.is_deleted:
        return False
    if not window.contains(entry.start_time):
        return False
    return entry.needs_classification


def _start_key(entry: JournalEntry):
    start = entry.start_time
    return start if start.tzinfo else start.replace(tzinfo=timezone.utc)


class UnregisteredTripSelector:
    def __init__(self, journal_repo: IJournalRepository):
        self._repo = journal_repo

    async def select(
        self, window: TimeWindow, vehicles: List[Vehicle]
    ) -> List[VehicleTrips]:
        """
        Group the entries still awaiting classification per vehicle, most recent
        first. Vehicles with nothing pending are left out, so an empty list
        means the journal is caught up for the window.
        """
        by_id: Dict[str, Vehicle] = {v.id: v for v in vehicles}
        entries = await self._repo.list_for_vehicles(list(by_id))

        grouped: Dict[str, List[JournalEntry]] = {}
        for entry in entries:
            if entry.vehicle_id in by_id and is_unregistered(entry, window):
                grouped.setdefault(entry.vehicle_id, []).append(entry)

        groups = []
        for vehicle in vehicles:
            pending = grouped.get(vehicle.id)
            if not pending:
                continue
            pending.sort(key=_start_key, reverse=True)
            groups.append(VehicleTrips(vehicle=vehicle, entries=pending))

        logger.info(
            f"{sum(len(g.entries) for g in groups)} unregistered trips "
            f"across {len(groups)} vehicles"
        )
        return groups

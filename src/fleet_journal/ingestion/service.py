import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List

from src.fleet_journal.gps_provider.client import GPSProviderClient
from src.fleet_journal.gps_provider.exceptions import (
    GPSProviderException,
    ProviderUnavailableException,
)
from src.fleet_journal.gps_provider.schemas import ProviderTrip
from src.fleet_journal.ingestion.schemas import DeviceTripsResult, TimeWindow

logger = logging.getLogger(__name__)


class ITripIngestionService(ABC):
    @abstractmethod
    async def fetch_trips(
        self, device_id: str, window: TimeWindow
    ) -> List[ProviderTrip]: ...

    @abstractmethod
    async def fetch_many(
        self, device_ids: Iterable[str], window: TimeWindow
    ) -> Dict[str, DeviceTripsResult]: ...


class TripIngestionService(ITripIngestionService):
    def __init__(self, client: GPSProviderClient, max_concurrency: int = 5):
        self.client = client
        self.max_concurrency = max(1, max_concurrency)

    async def fetch_trips(
        self, device_id: str, window: TimeWindow
    ) -> List[ProviderTrip]:
        """
        Fetch provider trips for one device. Order is the provider's; any
        provider failure surfaces as ProviderUnavailableException.
        """
        if not device_id or not device_id.strip():
            raise ValueError("device_id must be non-empty")
        if window.start > window.end:
            raise ValueError("window start must not be after window end")

        logger.info(
            f"Fetching trips for device {device_id} "
            f"({window.begintime} - {window.endtime})"
        )
        try:
            trips = await self.client.get_trips(
                device_id, window.begintime, window.endtime
            )
        except ProviderUnavailableException as e:
            logger.error(f"GPS provider error for device {device_id}: {e}")
            raise ProviderUnavailableException(
                e.details, device_id=device_id, status_code=e.status_code
            ) from e
        except GPSProviderException as e:
            logger.error(f"GPS provider error for device {device_id}: {e}")
            raise ProviderUnavailableException(str(e), device_id=device_id) from e

        logger.info(f"Found {len(trips)} trips for device {device_id}")
        return trips

    async def fetch_many(
        self, device_ids: Iterable[str], window: TimeWindow
    ) -> Dict[str, DeviceTripsResult]:
        """One request per device, issued concurrently; failures stay per device."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def fetch_one(device_id: str) -> DeviceTripsResult:
            async with semaphore:
                try:
                    trips = await self.fetch_trips(device_id, window)
                    return DeviceTripsResult(device_id=device_id, trips=trips)
                except (ProviderUnavailableException, ValueError) as e:
                    return DeviceTripsResult(device_id=device_id, error=str(e))

        unique_ids = list(dict.fromkeys(device_ids))
        results = await asyncio.gather(*(fetch_one(d) for d in unique_ids))
        return {r.device_id: r for r in results}

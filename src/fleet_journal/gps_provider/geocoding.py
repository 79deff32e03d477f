import asyncio
import logging
from typing import Dict, Iterable, Optional, Tuple

import aiohttp

from src.fleet_journal.config import get_settings
from src.fleet_journal.redis.decorators import cache_api_call

logger = logging.getLogger(__name__)

Coordinate = Tuple[float, float]


def coordinate_label(latitude: float, longitude: float) -> str:
    return f"{latitude}, {longitude}"


@cache_api_call(cache_key_prefix="geocode", ttl=30 * 24 * 3600)
async def fetch_address(latitude: float, longitude: float) -> Optional[str]:
    settings = get_settings()
    async with aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=10),
        headers={"User-Agent": settings.GEOCODER_USER_AGENT},
    ) as session:
        async with session.get(
            settings.GEOCODER_URL,
            params={
                "format": "json",
                "lat": str(latitude),
                "lon": str(longitude),
                "zoom": "18",
                "addressdetails": "1",
            },
        ) as response:
            if response.status != 200:
                logger.warning(
                    f"Geocoder returned {response.status} for {latitude}, {longitude}"
                )
                return None
            data = await response.json(content_type=None)
            if not isinstance(data, dict):
                logger.warning(
                    f"Geocoder reply for {latitude}, {longitude} has no address"
                )
                return None
            return data.get("display_name")


async def reverse_geocode(latitude: float, longitude: float) -> str:
    """Resolve an address, falling back to the coordinates themselves."""
    try:
        address = await fetch_address(latitude, longitude)
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.warning(f"Could not reverse geocode {latitude}, {longitude}: {e}")
        address = None
    return address or coordinate_label(latitude, longitude)


async def reverse_geocode_many(
    coordinates: Iterable[Coordinate], delay_seconds: float = 1.1
) -> Dict[Coordinate, str]:
    """Geocode unique coordinates one at a time; the public geocoder allows 1 req/s."""
    addresses: Dict[Coordinate, str] = {}
    for coordinate in coordinates:
        if coordinate in addresses:
            continue
        if addresses and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        addresses[coordinate] = await reverse_geocode(*coordinate)
    return addresses

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.fleet_journal.config import Settings, get_settings
from src.fleet_journal.gps_provider.exceptions import (
    ProviderAuthException,
    ProviderRateLimitException,
    ProviderResponseException,
    ProviderServerException,
    ProviderUnavailableException,
)
from src.fleet_journal.gps_provider.schemas import (
    Device,
    PositionRecord,
    ProviderTrip,
    parse_records,
)
from src.fleet_journal.redis.decorators import cache_api_call
from src.fleet_journal.redis.redis import redis_manager

logger = logging.getLogger(__name__)

DEVICE_LIST_CACHE_PREFIX = "gps_device_list"


def check_envelope(data: Any, action: str) -> Dict[str, Any]:
    """
    Apply the provider's error convention: a non-zero status, or a non-empty
    cause/error string, means the call failed even if HTTP said 200.
    """
    if not isinstance(data, dict):
        raise ProviderResponseException(f"Action {action} returned {type(data)}")
    status = data.get("status")
    if status is not None and status != 0:
        raise ProviderResponseException(
            f"Action {action} failed: {data.get('cause') or 'Unknown error'}",
            status_code=int(status) if isinstance(status, int) else -1,
        )
    for field in ("error", "cause"):
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            raise ProviderResponseException(f"Action {action} failed: {value}")
    return data


class GPSProviderClient:
    """Client for the GPS tracking provider's web API."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        timezone_offset: int = 1,
        timeout_seconds: float = 30.0,
        token_ttl_seconds: int = 23 * 60 * 60,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timezone_offset = timezone_offset
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.token_ttl_seconds = token_ttl_seconds
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._login_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GPSProviderClient":
        return cls(
            base_url=settings.GPS_API_URL,
            username=settings.GPS_USERNAME,
            password=settings.GPS_PASSWORD,
            timezone_offset=settings.GPS_TIMEZONE_OFFSET,
            timeout_seconds=settings.GPS_REQUEST_TIMEOUT_SECONDS,
            token_ttl_seconds=settings.GPS_TOKEN_TTL_SECONDS,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(
            (
                ProviderRateLimitException,
                ProviderServerException,
                aiohttp.ClientConnectionError,
            )
        ),
        reraise=True,
    )
    async def _post(
        self, action: str, payload: Dict[str, Any], token: Optional[str] = None
    ) -> Any:
        query = {"action": action}
        if token:
            query["token"] = token
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(
                f"{self.base_url}/webapi", params=query, json=payload
            ) as response:
                logger.debug(f"Calling GPS provider action {action}")
                if response.status == 429:
                    logger.warning(f"Rate limit exceeded for action {action}")
                    raise ProviderRateLimitException(action)
                text = await response.text()
                if response.status >= 500:
                    logger.error(f"Server error for action {action}: {text[:200]}")
                    raise ProviderServerException(
                        text[:200], status_code=response.status
                    )
                if response.status != 200:
                    raise ProviderUnavailableException(
                        f"Action {action} failed", status_code=response.status
                    )
                try:
                    return json.loads(text)
                except json.JSONDecodeError:
                    raise ProviderResponseException(
                        f"Action {action} returned non-JSON response: {text[:200]}"
                    )

    async def login(self) -> str:
        async with self._login_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token
            md5_password = hashlib.md5(self.password.encode()).hexdigest()
            data = await self._post(
                "login",
                {
                    "type": "USER",
                    "from": "WEB",
                    "username": self.username,
                    "password": md5_password,
                    "browser": "FleetJournal",
                },
            )
            try:
                check_envelope(data, "login")
            except ProviderResponseException as e:
                raise ProviderAuthException(e.details)
            token = data.get("token")
            if not token:
                raise ProviderAuthException("Login response carried no token")
            self._token = str(token)
            self._token_expires_at = time.monotonic() + self.token_ttl_seconds
            logger.info("Logged in to GPS provider")
            return self._token

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    async def call(self, action: str, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            token = await self.login()
            data = await self._post(action, params, token)
            return check_envelope(data, action)
        except ProviderResponseException:
            # An expired token shows up as an error envelope; log in again next time
            self.invalidate_token()
            raise
        except asyncio.TimeoutError:
            raise ProviderUnavailableException(f"Action {action} timed out")
        except aiohttp.ClientError as e:
            raise ProviderUnavailableException(f"Action {action}: {str(e)}")

    async def get_trips(
        self, device_id: str, begintime: int, endtime: int
    ) -> List[ProviderTrip]:
        data = await self.call(
            "querytrips",
            {
                "deviceid": device_id,
                "begintime": begintime,
                "endtime": endtime,
                "timezone": self.timezone_offset,
            },
        )
        return parse_records(ProviderTrip, data.get("totaltrips") or [])

    async def get_last_position(self, device_ids: List[str]) -> List[PositionRecord]:
        data = await self.call(
            "lastposition", {"deviceids": device_ids, "lastquerypositiontime": 0}
        )
        return parse_records(PositionRecord, data.get("records") or [])

    @cache_api_call(cache_key_prefix=DEVICE_LIST_CACHE_PREFIX, ttl=300, method=True)
    async def _device_list_raw(self) -> List[Dict[str, Any]]:
        data = await self.call("querymonitorlist", {"username": self.username})
        devices: List[Dict[str, Any]] = []
        for group in data.get("groups") or []:
            devices.extend(group.get("devices") or [])
        return devices

    async def get_device_list(self, refresh: bool = False) -> List[Device]:
        if refresh:
            await redis_manager.invalidate(DEVICE_LIST_CACHE_PREFIX)
        return parse_records(Device, await self._device_list_raw())


_client: Optional[GPSProviderClient] = None


def get_gps_client() -> GPSProviderClient:
    global _client
    if _client is None:
        _client = GPSProviderClient.from_settings(get_settings())
    return _client

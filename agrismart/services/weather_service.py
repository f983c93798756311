"""
Live Weather Service.

Fetches current conditions from the Open-Meteo forecast API (no API key)
for catalog locations. Used for display only; the estimation services do
not read it.

Failed requests are retried with exponential backoff. WeatherMonitor
refreshes tracked locations in the background and keeps the last good
reading, so request handlers never wait on a refresh.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Awaitable, Callable, Dict, Optional

import httpx

from agrismart.core import config as settings
from agrismart.services.location_catalog import LocationCatalog, location_catalog
from agrismart.services.validation import round_to_int

logger = logging.getLogger(__name__)

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code"


class WeatherServiceError(Exception):
    """Raised when weather data cannot be fetched or parsed."""
    pass


@dataclass
class WeatherReading:
    location: str
    temperature_c: int
    humidity_pct: float
    wind_speed_kmh: int
    weather_code: int
    description: str
    fetched_at: datetime


def describe_weather_code(code: int) -> str:
    """Map a WMO weather code to a short description."""
    if code == 0:
        return "Clear sky"
    if code <= 3:
        return "Partly cloudy"
    if code <= 48:
        return "Foggy"
    if code <= 67:
        return "Rainy"
    if code <= 77:
        return "Snowy"
    if code <= 82:
        return "Rain showers"
    return "Thunderstorm"


class WeatherService:
    """Open-Meteo client with retry and exponential backoff."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        catalog: Optional[LocationCatalog] = None,
        base_url: str = settings.WEATHER_API_URL,
        timezone: str = settings.WEATHER_TIMEZONE,
        timeout: float = settings.WEATHER_TIMEOUT_SECONDS,
        max_retries: int = settings.WEATHER_MAX_RETRIES,
        backoff_seconds: float = settings.WEATHER_BACKOFF_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.catalog = catalog or location_catalog
        self.base_url = base_url
        self.timezone = timezone
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    def _parse(self, location: str, payload: Dict) -> WeatherReading:
        current = payload.get("current")
        if not current:
            raise WeatherServiceError(f"Weather response for {location} has no 'current' block")
        try:
            code = int(current["weather_code"])
            return WeatherReading(
                location=location,
                temperature_c=round_to_int(current["temperature_2m"]),
                humidity_pct=current["relative_humidity_2m"],
                wind_speed_kmh=round_to_int(current["wind_speed_10m"]),
                weather_code=code,
                description=describe_weather_code(code),
                fetched_at=datetime.now(dt_timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherServiceError(f"Malformed weather response for {location}: {e}")

    async def fetch_current(self, location: str, latitude: float, longitude: float) -> WeatherReading:
        """
        Fetch current conditions for a coordinate.

        Retries up to max_retries times, sleeping backoff_seconds * 2**attempt
        between attempts.
        """
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": CURRENT_FIELDS,
            "timezone": self.timezone,
        }
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = await self.client.get(self.base_url, params=params)
                response.raise_for_status()
                return self._parse(location, response.json())
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                if attempt + 1 < self.max_retries:
                    delay = self.backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"Weather fetch for {location} failed (attempt {attempt + 1}/{self.max_retries}): "
                        f"{e}; retrying in {delay:.1f}s"
                    )
                    await self._sleep(delay)
        logger.error(f"Weather fetch for {location} failed after {self.max_retries} attempt(s): {last_error}")
        raise WeatherServiceError(f"Weather unavailable for {location}: {last_error}")

    async def fetch_for_location(self, name: str) -> WeatherReading:
        location = self.catalog.get(name)
        return await self.fetch_current(location.name, location.latitude, location.longitude)


def _location_key(name: str) -> str:
    return name.strip().lower()


class WeatherMonitor:
    """Background refresh of tracked locations, decoupled from request handling."""

    def __init__(self, service: WeatherService, refresh_seconds: float = settings.WEATHER_REFRESH_SECONDS):
        self.service = service
        self.refresh_seconds = refresh_seconds
        self._latest: Dict[str, WeatherReading] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def latest(self, name: str) -> Optional[WeatherReading]:
        return self._latest.get(_location_key(name))

    def store(self, reading: WeatherReading):
        self._latest[_location_key(reading.location)] = reading

    def is_tracking(self, name: str) -> bool:
        task = self._tasks.get(_location_key(name))
        return task is not None and not task.done()

    async def _refresh_loop(self, name: str):
        while True:
            await asyncio.sleep(self.refresh_seconds)
            try:
                self.store(await self.service.fetch_for_location(name))
            except WeatherServiceError as e:
                logger.warning(f"Keeping previous weather for {name}: {e}")

    def track(self, name: str):
        """Start refreshing a location in the background (fire-and-forget)."""
        if self.is_tracking(name):
            return
        self._tasks[_location_key(name)] = asyncio.create_task(self._refresh_loop(name))
        logger.info(f"Weather monitor tracking {name} every {self.refresh_seconds}s")

    async def stop(self):
        tasks, self._tasks = list(self._tasks.values()), {}
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info(f"Weather monitor stopped ({len(tasks)} location(s))")

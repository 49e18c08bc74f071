"""
Open-Meteo weather provider.

Fetches hourly cloud cover and direct radiation for the reference location.
Any upstream problem yields an empty list; the orchestrator decides whether
that is fatal.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx

from .base import WeatherProvider
from .models import WeatherHour

logger = logging.getLogger(__name__)

# Open-Meteo always returns whole days; ask for at least this many hours
MIN_FETCH_HOURS = 12


class OpenMeteoWeatherProvider(WeatherProvider):
    """
    Open-Meteo forecast client.

    No API key is needed. Timestamps come back in local time without an
    offset, so the configured timezone is attached to each of them.
    """

    def __init__(
        self,
        lat: float,
        lon: float,
        timezone: str = "Europe/Paris",
        endpoint: str = "https://api.open-meteo.com/v1/forecast",
        timeout: float = 25.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.lat = lat
        self.lon = lon
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)
        self._endpoint = endpoint
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": "sunscore/0.1"}
        )

    @property
    def source_name(self) -> str:
        return "open-meteo"

    async def fetch_hourly(self, reference_instant: datetime, hour_count: int) -> List[WeatherHour]:
        start = self._local_hour(reference_instant)
        end = start + timedelta(hours=max(hour_count, MIN_FETCH_HOURS))

        params = {
            "latitude": self.lat,
            "longitude": self.lon,
            "hourly": "cloudcover,direct_radiation",
            "timezone": self.timezone,
            "start_date": start.date().isoformat(),
            "end_date": end.date().isoformat(),
        }

        try:
            response = await self._client.get(self._endpoint, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Open-Meteo request failed: {e}")
            return []
        except ValueError as e:
            logger.error(f"Open-Meteo returned invalid JSON: {e}")
            return []

        try:
            hours = self._parse_hourly(data, start)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Open-Meteo payload: {e}")
            return []

        logger.debug(f"Open-Meteo returned {len(hours)} hours from {start.isoformat()}")
        return hours[:hour_count]

    def _local_hour(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self._tz)
        return instant.astimezone(self._tz).replace(minute=0, second=0, microsecond=0)

    def _parse_hourly(self, data: Dict[str, Any], start: datetime) -> List[WeatherHour]:
        hourly = data.get("hourly") or {}
        times = hourly.get("time") or []
        cloud_cover = hourly.get("cloudcover") or []
        direct_radiation = hourly.get("direct_radiation") or []

        result = []
        for idx, time_str in enumerate(times):
            timestamp = datetime.fromisoformat(time_str)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=self._tz)
            if timestamp < start:
                continue

            cloud = cloud_cover[idx] if idx < len(cloud_cover) else None
            radiation = direct_radiation[idx] if idx < len(direct_radiation) else None
            result.append(WeatherHour(
                timestamp=timestamp,
                cloud_cover_percent=min(100.0, max(0.0, float(cloud))) if cloud is not None else 0.0,
                direct_radiation_wm2=max(0.0, float(radiation)) if radiation is not None else 0.0,
            ))
        return result

    async def close(self) -> None:
        await self._client.aclose()

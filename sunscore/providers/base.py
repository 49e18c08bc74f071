"""
Base interfaces for the external collaborators of the score pipeline.

The orchestrator only talks to these contracts, so tests and alternative
upstream services can be swapped in without touching scoring code.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List

from .models import Place, SunPosition, SunTimes, WeatherHour


class AstronomyProvider(ABC):
    """
    Solar geometry for an instant and location.

    Implementations are pure and deterministic; callers may cache results
    freely.
    """

    @abstractmethod
    def position(self, instant: datetime, lat: float, lon: float) -> SunPosition:
        """
        Compute the sun position.

        Args:
            instant: Timezone-aware instant
            lat, lon: Observer coordinates (degrees)

        Returns:
            SunPosition with azimuth (south = 0, west positive) and elevation, in radians
        """
        pass

    def positions(self, instants: List[datetime], lat: float, lon: float) -> List[SunPosition]:
        """Sun positions for several instants at one location, in order."""
        return [self.position(instant, lat, lon) for instant in instants]

    @abstractmethod
    def sun_times(self, day: date, lat: float, lon: float) -> SunTimes:
        """
        Sunrise, sunset and solar noon for a local day.

        Returns:
            SunTimes; events that do not occur (polar day/night) are None
        """
        pass


class WeatherProvider(ABC):
    """Hourly weather at the reference location."""

    @abstractmethod
    async def fetch_hourly(self, reference_instant: datetime, hour_count: int) -> List[WeatherHour]:
        """
        Fetch weather for ``hour_count`` hours starting at the hour of
        ``reference_instant``.

        Returns:
            Ordered list of WeatherHour; an empty list means no data
        """
        pass

    @property
    def source_name(self) -> str:
        return type(self).__name__

    async def close(self) -> None:
        """Release network resources."""
        pass


class PlaceDirectory(ABC):
    """Source of the points of interest to score."""

    @abstractmethod
    async def fetch_places(self) -> List[Place]:
        """
        Fetch all known places.

        Returns:
            List of places; an empty list is a valid answer
        """
        pass

    @property
    def source_name(self) -> str:
        return type(self).__name__

    async def close(self) -> None:
        """Release network resources."""
        pass

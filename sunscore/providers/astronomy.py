"""
Astronomy provider backed by pvlib's solar position algorithms.
"""

import logging
import math
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

import pandas as pd
from pvlib import solarposition

from .base import AstronomyProvider
from .models import SunPosition, SunTimes

logger = logging.getLogger(__name__)


class PvlibAstronomyProvider(AstronomyProvider):
    """
    Sun position and daily sun events computed with pvlib (NREL SPA).

    pvlib reports azimuth clockwise from north; positions are converted to
    the south = 0, west positive convention used by the scorer.
    """

    def __init__(self, timezone: str = "Europe/Paris"):
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)

    def position(self, instant: datetime, lat: float, lon: float) -> SunPosition:
        return self.positions([instant], lat, lon)[0]

    def positions(self, instants: List[datetime], lat: float, lon: float) -> List[SunPosition]:
        if not instants:
            return []
        # One vectorized SPA call for the whole batch
        times = pd.DatetimeIndex([pd.Timestamp(self._aware(i)).tz_convert("UTC") for i in instants])
        frame = solarposition.get_solarposition(times, lat, lon)
        return [
            SunPosition(
                azimuth=math.radians(float(azimuth) - 180.0),
                elevation=math.radians(float(elevation)),
            )
            # Geometric elevation, without refraction
            for azimuth, elevation in zip(frame["azimuth"], frame["elevation"])
        ]

    def sun_times(self, day: date, lat: float, lon: float) -> SunTimes:
        times = pd.DatetimeIndex([pd.Timestamp(day.isoformat()).tz_localize(self.timezone)])
        frame = solarposition.sun_rise_set_transit_spa(times, lat, lon)
        row = frame.iloc[0]
        return SunTimes(
            sunrise=_to_datetime(row["sunrise"]),
            sunset=_to_datetime(row["sunset"]),
            solar_noon=_to_datetime(row["transit"]),
        )

    def _aware(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self._tz)
        return instant


def _to_datetime(value) -> Optional[datetime]:
    # NaT during polar day/night
    if pd.isna(value):
        return None
    return pd.Timestamp(value).to_pydatetime()

"""
Data models for the records returned by external providers.

Places, hourly weather and sun geometry are normalized to these models
regardless of which upstream service produced them.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class Place(BaseModel):
    """
    A point of interest to score.

    Only ``id``, ``lat`` and ``lon`` are needed for scoring; ``attributes``
    keeps the upstream tags (e.g. ``outdoor_seating``) for orientation hints.
    """
    id: str = Field(..., description="Unique identifier for this place")
    name: Optional[str] = Field(None, description="Display name")
    lat: float = Field(..., ge=-90, le=90, description="Latitude coordinate")
    lon: float = Field(..., ge=-180, le=180, description="Longitude coordinate")
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        alias="tags",
        description="Free-form upstream attributes"
    )

    model_config = ConfigDict(populate_by_name=True)


class WeatherHour(BaseModel):
    """Weather for one hour at the reference location."""
    timestamp: datetime = Field(..., description="Start of the hour, timezone aware")
    cloud_cover_percent: float = Field(..., ge=0, le=100)
    direct_radiation_wm2: float = Field(0.0, ge=0)


class SunPosition(BaseModel):
    """
    Solar geometry for one instant and location.

    Azimuth is measured from south (0) towards west (positive), in radians.
    """
    azimuth: float
    elevation: float

    model_config = ConfigDict(frozen=True)


class SunTimes(BaseModel):
    """Sun events for one local day; ``None`` during polar day or night."""
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    solar_noon: Optional[datetime] = None

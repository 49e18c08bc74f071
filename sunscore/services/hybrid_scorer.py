"""
Hybrid sun score for one point at one instant.

The score multiplies a shadow factor with facing, elevation, cloud and
radiation factors, so any single disqualifying factor pulls it to zero.
The shadow factor comes from a precomputed mask when one covers the point
and from a coarse location heuristic otherwise.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from ..models.scoring import ScoreResult
from ..models.shadow import ShadowPrecision
from ..utils.geo_utils import circular_difference, clamp, compass_to_south_azimuth
from .shadow_resolver import ShadowResolver

logger = logging.getLogger(__name__)

MIN_SUN_ELEVATION_DEG = 5.0
HEURISTIC_CONFIDENCE = 0.7


def is_dense_area(lat: float, lon: float) -> bool:
    """Central Paris, La Défense and Montparnasse have tall, dense buildings."""
    is_central = 48.85 < lat < 48.87 and 2.32 < lon < 2.37
    is_business_district = lat > 48.88 and lon < 2.25
    is_montparnasse = 48.84 < lat < 48.85 and 2.32 < lon < 2.33
    return is_central or is_business_district or is_montparnasse


def facing_score(sun_azimuth_rad: float, orientation_deg: float) -> float:
    """cos of the angle between the sun and the direction a point faces, floored at 0."""
    diff = circular_difference(sun_azimuth_rad, compass_to_south_azimuth(orientation_deg))
    return max(0.0, math.cos(diff))


def elevation_score(sun_elevation_deg: float) -> float:
    """Ramps in above 8 degrees and saturates at 28."""
    return clamp((sun_elevation_deg - 8) / 20)


def cloud_penalty(cloud_cover_pct: float) -> float:
    return 1 - cloud_cover_pct / 100


def radiation_bonus(direct_radiation_wm2: float) -> float:
    return 1.1 if direct_radiation_wm2 > 100 else 1.0


def heuristic_sun_score(
    sun_azimuth_rad: float,
    sun_elevation_rad: float,
    orientation_deg: float,
    cloud_cover_pct: float,
    direct_radiation_wm2: float,
    lat: float,
    lon: float,
) -> float:
    """
    Location-only estimate of the sun score, without precomputed shadows.

    Low sun, dense districts and north-facing terraces are penalized.
    """
    elevation_deg = math.degrees(sun_elevation_rad)

    time_risk = 0.8 if elevation_deg < 20 else 1.0
    location_penalty = 0.85 if is_dense_area(lat, lon) else 0.95
    orientation_penalty = 0.8 if orientation_deg == 0 else 1.0
    shadow_penalty = time_risk * location_penalty * orientation_penalty

    score = (
        facing_score(sun_azimuth_rad, orientation_deg)
        * elevation_score(elevation_deg)
        * cloud_penalty(cloud_cover_pct)
        * radiation_bonus(direct_radiation_wm2)
        * shadow_penalty
    )
    if elevation_deg < MIN_SUN_ELEVATION_DEG:
        score = 0.0
    return clamp(score)


class HybridScorer:
    """Combine precomputed or heuristic shadows with sun and weather factors."""

    def __init__(self, resolver: Optional[ShadowResolver] = None):
        self.resolver = resolver

    async def score(
        self,
        sun_azimuth_rad: float,
        sun_elevation_rad: float,
        orientation_deg: float,
        cloud_cover_pct: float,
        direct_radiation_wm2: float,
        lat: float,
        lon: float,
        instant: datetime,
        use_precision: bool = True,
    ) -> ScoreResult:
        """
        Score one point at one instant.

        Returns:
            ScoreResult with a score in [0, 1], the shadow method and its confidence
        """
        sun_elevation_deg = math.degrees(sun_elevation_rad)
        if sun_elevation_deg < MIN_SUN_ELEVATION_DEG:
            return ScoreResult(score=0.0, method=ShadowPrecision.HEURISTIC, confidence=1.0)

        shadow_factor = None
        method = ShadowPrecision.HEURISTIC
        confidence = HEURISTIC_CONFIDENCE

        if use_precision and self.resolver is not None:
            shadow = await self.resolver.resolve(lat, lon, instant)
            if shadow.precision == ShadowPrecision.PRECOMPUTED:
                shadow_factor = shadow.shadow_value
                method = ShadowPrecision.PRECOMPUTED
                confidence = shadow.confidence

        if shadow_factor is None:
            heuristic = heuristic_sun_score(
                sun_azimuth_rad,
                sun_elevation_rad,
                orientation_deg,
                cloud_cover_pct,
                direct_radiation_wm2,
                lat,
                lon,
            )
            # Deliberately coarse: only the sign of the heuristic matters
            shadow_factor = 0.8 if heuristic > 0 else 0.2

        final_score = clamp(
            shadow_factor
            * facing_score(sun_azimuth_rad, orientation_deg)
            * elevation_score(sun_elevation_deg)
            * cloud_penalty(cloud_cover_pct)
            * radiation_bonus(direct_radiation_wm2)
        )
        return ScoreResult(score=final_score, method=method, confidence=confidence)

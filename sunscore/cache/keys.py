"""
Cache key construction.

Keys are deterministic strings ``<namespace>:<part>:<part>...``. Coordinates
are geohash-rounded so nearby requests share entries, instants are bucketed
by UTC hour or day, and keys longer than ``MAX_KEY_LENGTH`` are condensed to
a hash of the full key.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional

from ..utils.geo_utils import encode_geohash

MAX_KEY_LENGTH = 100
GEOHASH_PRECISION = 9


@dataclass
class CacheKey:
    """Structure for generating consistent cache keys."""
    namespace: str
    parts: List[Any] = field(default_factory=list)

    def generate_key(self) -> str:
        """Generate the key; long keys are replaced by a digest of themselves."""
        normalized = [self._normalize_part(p) for p in self.parts]
        key = ":".join([self.namespace] + normalized)
        if len(key) > MAX_KEY_LENGTH:
            digest = hashlib.md5(key.encode("utf-8")).hexdigest()
            return f"{self.namespace}:{digest}"
        return key

    @staticmethod
    def _normalize_part(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, Enum):
            return str(value.value)
        if isinstance(value, str):
            # ':' separates parts, whitespace is collapsed
            return "_".join(value.replace(":", "_").split())
        return str(value)


def align_to_hour(instant: datetime) -> datetime:
    """Truncate an instant to the start of its hour."""
    return instant.replace(minute=0, second=0, microsecond=0)


def _utc_hour_bucket(instant: datetime) -> str:
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc)
    return align_to_hour(instant).strftime("%Y-%m-%dT%H")


def build_places_key(query: Optional[str] = None) -> str:
    return CacheKey("places", [query or "all"]).generate_key()


def build_sun_geometry_key(lat: float, lon: float, hour: datetime) -> str:
    geohash = encode_geohash(lat, lon, GEOHASH_PRECISION)
    return CacheKey("sungeom", [geohash, _utc_hour_bucket(hour)]).generate_key()


def build_sun_times_key(lat: float, lon: float, day: date) -> str:
    geohash = encode_geohash(lat, lon, GEOHASH_PRECISION)
    return CacheKey("suntimes", [geohash, day.isoformat()]).generate_key()


def build_weather_key(lat: float, lon: float, hour_bucket: datetime) -> str:
    geohash = encode_geohash(lat, lon, GEOHASH_PRECISION)
    return CacheKey("weather", [geohash, _utc_hour_bucket(hour_bucket)]).generate_key()


def build_score_key(
    mode: Any,
    hours: int,
    hour_bucket: datetime,
    point_ids: Optional[Iterable[str]] = None,
    point_limit: Optional[int] = None,
) -> str:
    """
    Key of an aggregate window.

    ``point_ids`` is only given when the caller supplied its own points; the
    ids are folded into a digest so different point sets never collide.
    """
    parts: List[Any] = [mode, hours, _utc_hour_bucket(hour_bucket)]
    if point_limit is not None:
        parts.append(f"n{point_limit}")
    if point_ids is not None:
        joined = "\n".join(sorted(point_ids))
        parts.append(hashlib.sha1(joined.encode("utf-8")).hexdigest()[:16])
    return CacheKey("sunscore", parts).generate_key()


def build_tile_metadata_key(ref: str) -> str:
    return CacheKey("voxmeta", [ref]).generate_key()


def build_mask_key(tile_id: str, month: int, slot: Any) -> str:
    return CacheKey("voxmask", [tile_id, month, slot]).generate_key()

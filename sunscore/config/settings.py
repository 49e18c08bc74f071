"""
Configuration settings for the sun score service using Pydantic Settings.

This module centralizes cache lifetimes, upstream endpoints, the reference
location and the shadow-data location, loading and validating them from
environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any, List

HOUR = 60 * 60
DAY = 24 * HOUR


class SunScoreSettings(BaseSettings):
    """
    Settings for the sun score service.

    Uses Pydantic Settings to load and validate configuration from
    environment variables with proper type checking and defaults.
    """

    # Cache storage
    cache_dir: str = Field(
        default=".cache/sunscore",
        alias="SUNSCORE_CACHE_DIR",
        description="Directory for the durable cache tier"
    )
    cache_memory_max_entries: int = Field(
        default=5000,
        alias="SUNSCORE_CACHE_MEMORY_MAX_ENTRIES",
        description="Maximum entries kept in the in-process cache tier"
    )
    cache_retention_days: int = Field(
        default=30,
        alias="SUNSCORE_CACHE_RETENTION_DAYS",
        description="Durable cache files older than this are removed by cleanup"
    )

    # Cache lifetimes (in seconds)
    cache_ttl_places: int = Field(
        default=14 * DAY,
        alias="SUNSCORE_CACHE_TTL_PLACES",
        description="Cache TTL for the place list"
    )
    cache_swr_places: int = Field(
        default=DAY,
        alias="SUNSCORE_CACHE_SWR_PLACES",
        description="Stale-while-revalidate window for the place list"
    )
    cache_ttl_places_seed: int = Field(
        default=DAY,
        alias="SUNSCORE_CACHE_TTL_PLACES_SEED",
        description="Cache TTL for the place list when it came from the seed file"
    )
    cache_swr_places_seed: int = Field(
        default=6 * HOUR,
        alias="SUNSCORE_CACHE_SWR_PLACES_SEED",
        description="Stale-while-revalidate window for seed places"
    )
    cache_ttl_weather: int = Field(
        default=HOUR,
        alias="SUNSCORE_CACHE_TTL_WEATHER",
        description="Cache TTL for weather and aggregate scores"
    )
    cache_swr_weather: int = Field(
        default=10 * 60,
        alias="SUNSCORE_CACHE_SWR_WEATHER",
        description="Stale-while-revalidate window for weather and aggregate scores"
    )
    cache_ttl_golden_hour: int = Field(
        default=15 * 60,
        alias="SUNSCORE_CACHE_TTL_GOLDEN_HOUR",
        description="Cache TTL used near sunrise, sunset and solar noon"
    )
    cache_ttl_sun_geometry: int = Field(
        default=DAY,
        alias="SUNSCORE_CACHE_TTL_SUN_GEOMETRY",
        description="Cache TTL for sun positions and sun event times"
    )
    cache_ttl_tile_metadata: int = Field(
        default=5 * 60,
        alias="SUNSCORE_CACHE_TTL_TILE_METADATA",
        description="Freshness window for the shadow tile directory"
    )
    cache_ttl_masks: int = Field(
        default=10 * 60,
        alias="SUNSCORE_CACHE_TTL_MASKS",
        description="Cache TTL for decoded shadow masks"
    )
    cache_max_masks: int = Field(
        default=512,
        alias="SUNSCORE_CACHE_MAX_MASKS",
        description="Maximum number of decoded masks kept in memory"
    )
    golden_window_minutes: int = Field(
        default=90,
        alias="SUNSCORE_GOLDEN_WINDOW_MINUTES",
        description="Minutes around sunrise, sunset and solar noon treated as golden hour"
    )

    # Reference location (weather and golden hour)
    reference_lat: float = Field(
        default=48.8566,
        alias="SUNSCORE_REFERENCE_LAT",
        description="Latitude of the weather reference location"
    )
    reference_lon: float = Field(
        default=2.3522,
        alias="SUNSCORE_REFERENCE_LON",
        description="Longitude of the weather reference location"
    )
    timezone: str = Field(
        default="Europe/Paris",
        alias="SUNSCORE_TIMEZONE",
        description="IANA timezone used for local hours, months and weather timestamps"
    )

    # Upstream providers
    open_meteo_endpoint: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="OPEN_METEO_ENDPOINT",
        description="Open-Meteo forecast endpoint"
    )
    overpass_endpoints: List[str] = Field(
        default=[
            "https://overpass-api.de/api/interpreter",
            "https://lz4.overpass-api.de/api/interpreter",
        ],
        alias="OVERPASS_ENDPOINTS",
        description="Overpass API endpoints, tried in order"
    )
    overpass_bbox: List[float] = Field(
        default=[48.8156, 2.2242, 48.9022, 2.4699],
        alias="OVERPASS_BBOX",
        description="Place search bounding box as [south, west, north, east]"
    )
    overpass_user_agent: str = Field(
        default="sunscore/0.1",
        alias="OVERPASS_USER_AGENT",
        description="User agent for Overpass requests"
    )
    places_seed_path: Optional[str] = Field(
        default=None,
        alias="SUNSCORE_PLACES_SEED",
        description="JSON seed file used when the place directory is unreachable"
    )
    provider_timeout_seconds: float = Field(
        default=25.0,
        alias="SUNSCORE_PROVIDER_TIMEOUT",
        description="Upper bound for any upstream provider call"
    )

    # Precomputed shadow data
    shadow_data_location: str = Field(
        default="public",
        alias="SUNSCORE_SHADOW_DATA",
        description="Local directory or http(s) base URL holding shadow tiles"
    )
    shadow_metadata_ref: str = Field(
        default="vox/metadata.json",
        alias="SUNSCORE_SHADOW_METADATA",
        description="Reference of the tile metadata document inside the shadow data location"
    )
    tile_size_deg: float = Field(
        default=0.0008,
        alias="SUNSCORE_TILE_SIZE_DEG",
        description="Tile edge in degrees when the metadata does not define it"
    )
    tile_origin_lat: float = Field(
        default=48.8566,
        alias="SUNSCORE_TILE_ORIGIN_LAT",
        description="Latitude of the tile grid origin when the metadata does not define it"
    )
    tile_origin_lon: float = Field(
        default=2.3522,
        alias="SUNSCORE_TILE_ORIGIN_LON",
        description="Longitude of the tile grid origin when the metadata does not define it"
    )

    # Scoring window
    max_hours: int = Field(
        default=12,
        alias="SUNSCORE_MAX_HOURS",
        description="Maximum number of hours per scoring window"
    )
    default_hours: int = Field(
        default=8,
        alias="SUNSCORE_DEFAULT_HOURS",
        description="Hours computed when the caller does not specify"
    )
    default_point_limit: int = Field(
        default=300,
        alias="SUNSCORE_POINT_LIMIT",
        description="Points scored when the caller does not specify"
    )
    max_point_limit: int = Field(
        default=1000,
        alias="SUNSCORE_MAX_POINT_LIMIT",
        description="Upper bound for the point limit"
    )
    score_concurrency: int = Field(
        default=32,
        alias="SUNSCORE_SCORE_CONCURRENCY",
        description="Points scored concurrently within one window"
    )

    # API configuration
    sunscore_host: str = Field(
        default="0.0.0.0",
        alias="SUNSCORE_HOST",
        description="API server host"
    )
    sunscore_port: int = Field(
        default=8001,
        alias="SUNSCORE_PORT",
        description="API server port"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def get_cache_ttl(self, namespace: str) -> int:
        """Get the standard cache TTL for a cache namespace."""
        ttl_config = {
            "places": self.cache_ttl_places,
            "weather": self.cache_ttl_weather,
            "sunscore": self.cache_ttl_weather,
            "sungeom": self.cache_ttl_sun_geometry,
            "suntimes": self.cache_ttl_sun_geometry,
            "voxmeta": self.cache_ttl_tile_metadata,
            "voxmask": self.cache_ttl_masks,
        }
        return ttl_config.get(namespace, HOUR)

    @property
    def retention_seconds(self) -> int:
        return self.cache_retention_days * DAY

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return self.model_dump()


# Global settings instance
_settings: Optional[SunScoreSettings] = None


def get_settings() -> SunScoreSettings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Validated SunScoreSettings instance
    """
    global _settings
    if _settings is None:
        _settings = SunScoreSettings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing)."""
    global _settings
    _settings = None

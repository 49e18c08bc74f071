"""
Pytest configuration and shared fixtures.

Provides a controllable clock, fake astronomy/weather/place providers, a
temporary shadow-data tree and a factory for fully wired orchestrators.
"""

import json
import math
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo

import pytest

from sunscore.cache.durable import FileCacheTier
from sunscore.cache.store import CacheStore
from sunscore.config.settings import SunScoreSettings
from sunscore.providers.base import AstronomyProvider, PlaceDirectory, WeatherProvider
from sunscore.providers.models import Place, SunPosition, SunTimes, WeatherHour
from sunscore.providers.storage import LocalBlobStore
from sunscore.services.background_refresh import BackgroundRefresher
from sunscore.services.hybrid_scorer import HybridScorer
from sunscore.services.place_service import PlaceService
from sunscore.services.score_orchestrator import ScoreOrchestrator
from sunscore.services.shadow_resolver import ShadowResolver
from sunscore.services.tile_index import TileIndex

PARIS = ZoneInfo("Europe/Paris")

# Tile "0_0" of a 0.008 degree grid anchored on (48.856, 2.352)
SCENARIO_TILE = {
    "tileId": "0_0",
    "bounds": {"north": 48.86, "south": 48.852, "east": 2.356, "west": 2.348},
    "resolution": 4,
    "pixelWidth": 22,
    "pixelHeight": 22,
    "center": {"lat": 48.856, "lon": 2.352},
}


class FakeClock:
    """Manually advanced clock returning seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAstronomy(AstronomyProvider):
    """
    Sun due south at a fixed elevation, with sunrise at 06:00, solar noon at
    13:50 and sunset at 21:30 local time.
    """

    def __init__(self, elevation_deg: float = 45.0, azimuth_rad: float = 0.0, fail_sun_times: bool = False):
        self.elevation_deg = elevation_deg
        self.azimuth_rad = azimuth_rad
        self.fail_sun_times = fail_sun_times
        self.position_calls = 0
        self.sun_times_calls = 0

    def position(self, instant: datetime, lat: float, lon: float) -> SunPosition:
        self.position_calls += 1
        return SunPosition(azimuth=self.azimuth_rad, elevation=math.radians(self.elevation_deg))

    def sun_times(self, day: date, lat: float, lon: float) -> SunTimes:
        self.sun_times_calls += 1
        if self.fail_sun_times:
            raise RuntimeError("ephemeris unavailable")
        return SunTimes(
            sunrise=datetime(day.year, day.month, day.day, 6, 0, tzinfo=PARIS),
            sunset=datetime(day.year, day.month, day.day, 21, 30, tzinfo=PARIS),
            solar_noon=datetime(day.year, day.month, day.day, 13, 50, tzinfo=PARIS),
        )


class FakeWeather(WeatherProvider):
    """Constant weather for every requested hour."""

    def __init__(self, cloud_cover: float = 0.0, radiation: float = 500.0, empty: bool = False):
        self.cloud_cover = cloud_cover
        self.radiation = radiation
        self.empty = empty
        self.calls = 0

    @property
    def source_name(self) -> str:
        return "fake-weather"

    async def fetch_hourly(self, reference_instant: datetime, hour_count: int) -> List[WeatherHour]:
        self.calls += 1
        if self.empty:
            return []
        start = reference_instant.astimezone(PARIS).replace(minute=0, second=0, microsecond=0)
        return [
            WeatherHour(
                timestamp=start + timedelta(hours=i),
                cloud_cover_percent=self.cloud_cover,
                direct_radiation_wm2=self.radiation,
            )
            for i in range(hour_count)
        ]


class FakePlaces(PlaceDirectory):
    def __init__(self, places: Optional[List[Place]] = None):
        self.places = places if places is not None else []
        self.calls = 0

    @property
    def source_name(self) -> str:
        return "fake-places"

    async def fetch_places(self) -> List[Place]:
        self.calls += 1
        return list(self.places)


def write_json(path: Path, document) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def shadow_data(tmp_path):
    """Shadow data root with tile "0_0" and a noon mask for June whose samples are all 200."""
    root = tmp_path / "public"
    metadata = {
        "version": "1.0",
        "generated": "2024-06-01T00:00:00Z",
        "coverage": {"north": 48.86, "south": 48.852, "east": 2.356, "west": 2.348},
        "tileSystem": {
            "tileSize": 0.008,
            "resolution": 4,
            "pixelsPerTile": 22,
            "origin": {"lat": 48.856, "lon": 2.352},
        },
        "tiles": [SCENARIO_TILE],
        "masks": [
            {
                "tileId": "0_0",
                "month": 6,
                "slot": "noon",
                "url": "/vox/tiles/0_0/2024-06-noon.json",
                "generated": "2024-06-01T00:00:00Z",
            }
        ],
    }
    write_json(root / "vox" / "metadata.json", metadata)
    write_json(root / "vox" / "tiles" / "0_0" / "2024-06-noon.json", {
        "tileId": "0_0",
        "month": 6,
        "timeSlot": "noon",
        "width": 22,
        "height": 22,
        "format": "uint8",
        "shadows": [200] * (22 * 22),
        "generated": "2024-06-01T00:00:00Z",
    })
    return root


@pytest.fixture
def settings(tmp_path, shadow_data):
    return SunScoreSettings(
        cache_dir=str(tmp_path / "cache"),
        shadow_data_location=str(shadow_data),
        places_seed_path=None,
        timezone="Europe/Paris",
    )


@pytest.fixture
def sample_places():
    return [
        Place(id="node/1", name="Café du Tile", lat=48.856, lon=2.352, tags={"amenity": "cafe"}),
        Place(id="node/2", name="Café Montmartre", lat=48.8867, lon=2.3431, tags={"amenity": "cafe"}),
        Place(id="node/3", name="Café Rive Gauche", lat=48.8500, lon=2.3400, tags={"amenity": "cafe"}),
    ]


@pytest.fixture
def tile_index(shadow_data, clock):
    return TileIndex(LocalBlobStore(shadow_data), CacheStore(clock=clock), ttl_seconds=300)


@pytest.fixture
def make_orchestrator(tmp_path, settings, clock, sample_places):
    """Factory for orchestrators wired from fakes; returns (orchestrator, parts)."""

    def _make(weather=None, places=None, astronomy=None, durable=True, now=None):
        cache = CacheStore(
            durable=FileCacheTier(tmp_path / "cache") if durable else None,
            clock=clock,
        )
        refresher = BackgroundRefresher()
        index = TileIndex(LocalBlobStore(settings.shadow_data_location), cache, ttl_seconds=300)
        resolver = ShadowResolver(index, mask_cache=CacheStore(clock=clock))
        weather = weather or FakeWeather()
        directory = places or FakePlaces(sample_places)
        astronomy = astronomy or FakeAstronomy()
        place_service = PlaceService(cache, directory, refresher=refresher)
        orchestrator = ScoreOrchestrator(
            cache,
            HybridScorer(resolver),
            astronomy,
            weather,
            place_service,
            settings=settings,
            refresher=refresher,
            geometry_cache=CacheStore(clock=clock),
            now=now,
        )
        parts = {
            "cache": cache,
            "weather": weather,
            "places": directory,
            "astronomy": astronomy,
            "refresher": refresher,
            "place_service": place_service,
        }
        return orchestrator, parts

    return _make

"""
Service wiring.

Builds the cache, providers and services from settings and owns their
lifecycle. The HTTP app and the CLI both go through ``build_container``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..cache.durable import FileCacheTier
from ..cache.store import CacheStore
from ..config.settings import SunScoreSettings, get_settings
from ..providers.astronomy import PvlibAstronomyProvider
from ..providers.base import AstronomyProvider, PlaceDirectory, WeatherProvider
from ..providers.places import OverpassPlaceDirectory, SeedPlaceDirectory
from ..providers.storage import BlobStore, create_blob_store
from ..providers.weather import OpenMeteoWeatherProvider
from .background_refresh import BackgroundRefresher
from .hybrid_scorer import HybridScorer
from .place_service import PlaceService
from .score_orchestrator import ScoreOrchestrator
from .shadow_resolver import ShadowResolver
from .tile_index import TileIndex

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: SunScoreSettings
    cache: CacheStore
    blob_store: BlobStore
    tile_index: TileIndex
    resolver: ShadowResolver
    scorer: HybridScorer
    weather: WeatherProvider
    place_directory: PlaceDirectory
    places: PlaceService
    orchestrator: ScoreOrchestrator
    refresher: BackgroundRefresher

    async def close(self) -> None:
        """Finish background refreshes and release HTTP clients."""
        await self.refresher.drain()
        await self.weather.close()
        await self.place_directory.close()
        await self.blob_store.close()
        logger.info("Service container closed")


def build_container(
    settings: Optional[SunScoreSettings] = None,
    weather: Optional[WeatherProvider] = None,
    place_directory: Optional[PlaceDirectory] = None,
    astronomy: Optional[AstronomyProvider] = None,
    blob_store: Optional[BlobStore] = None,
) -> ServiceContainer:
    """
    Build every service from settings.

    Providers can be passed in to replace the network-backed defaults.
    """
    settings = settings or get_settings()

    cache = CacheStore(
        durable=FileCacheTier(settings.cache_dir),
        max_entries=settings.cache_memory_max_entries,
        retention_seconds=settings.retention_seconds,
    )
    refresher = BackgroundRefresher()

    blob_store = blob_store or create_blob_store(
        settings.shadow_data_location,
        timeout=settings.provider_timeout_seconds,
    )
    tile_index = TileIndex(
        blob_store,
        cache,
        metadata_ref=settings.shadow_metadata_ref,
        ttl_seconds=settings.cache_ttl_tile_metadata,
        default_tile_size=settings.tile_size_deg,
        default_origin_lat=settings.tile_origin_lat,
        default_origin_lon=settings.tile_origin_lon,
    )
    resolver = ShadowResolver(
        tile_index,
        mask_cache=CacheStore(max_entries=settings.cache_max_masks),
        mask_ttl_seconds=settings.cache_ttl_masks,
        timezone=settings.timezone,
    )
    scorer = HybridScorer(resolver)

    weather = weather or OpenMeteoWeatherProvider(
        settings.reference_lat,
        settings.reference_lon,
        timezone=settings.timezone,
        endpoint=settings.open_meteo_endpoint,
        timeout=settings.provider_timeout_seconds,
    )
    place_directory = place_directory or OverpassPlaceDirectory(
        settings.overpass_endpoints,
        settings.overpass_bbox,
        user_agent=settings.overpass_user_agent,
        timeout=settings.provider_timeout_seconds,
    )
    seed = SeedPlaceDirectory(settings.places_seed_path) if settings.places_seed_path else None

    places = PlaceService(
        cache,
        place_directory,
        seed=seed,
        refresher=refresher,
        ttl_seconds=settings.cache_ttl_places,
        swr_seconds=settings.cache_swr_places,
        seed_ttl_seconds=settings.cache_ttl_places_seed,
        seed_swr_seconds=settings.cache_swr_places_seed,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    orchestrator = ScoreOrchestrator(
        cache,
        scorer,
        astronomy or PvlibAstronomyProvider(settings.timezone),
        weather,
        places,
        settings=settings,
        refresher=refresher,
    )

    logger.info(f"Services ready (cache: {settings.cache_dir}, shadow data: {blob_store.location})")
    return ServiceContainer(
        settings=settings,
        cache=cache,
        blob_store=blob_store,
        tile_index=tile_index,
        resolver=resolver,
        scorer=scorer,
        weather=weather,
        place_directory=place_directory,
        places=places,
        orchestrator=orchestrator,
        refresher=refresher,
    )

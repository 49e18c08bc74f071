"""
Cached place list with seed-file fallback.

Places change rarely, so the list is cached for days and refreshed in the
background once stale. When the live directory returns nothing the seed
file is used and cached for a shorter time so the live source is retried.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..cache.keys import build_places_key
from ..cache.store import CacheStore
from ..models.scoring import CacheStatus
from ..providers.base import PlaceDirectory
from ..providers.models import Place
from .background_refresh import BackgroundRefresher

logger = logging.getLogger(__name__)


@dataclass
class PlaceListing:
    places: List[Place] = field(default_factory=list)
    source: str = "none"
    updated_at: Optional[str] = None
    cache_status: CacheStatus = CacheStatus.MISS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updatedAt": self.updated_at,
            "count": len(self.places),
            "source": self.source,
            "places": [p.model_dump(mode="json", by_alias=True) for p in self.places],
        }


class PlaceService:
    """Serve the place list through the cache."""

    def __init__(
        self,
        cache: CacheStore,
        directory: PlaceDirectory,
        seed: Optional[PlaceDirectory] = None,
        refresher: Optional[BackgroundRefresher] = None,
        ttl_seconds: float = 14 * 24 * 3600,
        swr_seconds: float = 24 * 3600,
        seed_ttl_seconds: float = 24 * 3600,
        seed_swr_seconds: float = 6 * 3600,
        timeout_seconds: float = 25.0,
        query: Optional[str] = None,
    ):
        self._cache = cache
        self._directory = directory
        self._seed = seed
        self._refresher = refresher or BackgroundRefresher()
        self._ttl = ttl_seconds
        self._swr = swr_seconds
        self._seed_ttl = seed_ttl_seconds
        self._seed_swr = seed_swr_seconds
        self._timeout = timeout_seconds
        self.cache_key = build_places_key(query)

    async def get_places(self) -> PlaceListing:
        lookup = await self._cache.get(self.cache_key)
        if lookup.hit:
            listing = self._from_payload(lookup.value)
            if listing is not None:
                if lookup.should_refresh:
                    self._refresher.schedule(self.cache_key, self.fetch_fresh)
                    listing.cache_status = CacheStatus.STALE
                else:
                    listing.cache_status = CacheStatus.FRESH
                return listing

        return await self.fetch_fresh()

    async def fetch_fresh(self) -> PlaceListing:
        """Query the live directory, then the seed file, and cache what was found."""
        places = await self._fetch(self._directory)
        if places:
            return await self._store(places, self._directory.source_name, self._ttl, self._swr)

        if self._seed is not None:
            places = await self._fetch(self._seed)
            if places:
                logger.warning(f"Live place directory empty, using {len(places)} seed places")
                return await self._store(places, self._seed.source_name, self._seed_ttl, self._seed_swr)

        logger.error("No places available from any directory")
        return PlaceListing()

    async def _fetch(self, directory: PlaceDirectory) -> List[Place]:
        try:
            return await asyncio.wait_for(directory.fetch_places(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error(f"{directory.source_name} timed out after {self._timeout}s")
        except Exception as e:
            logger.error(f"{directory.source_name} failed: {e}", exc_info=True)
        return []

    async def _store(self, places: List[Place], source: str, ttl: float, swr: float) -> PlaceListing:
        listing = PlaceListing(
            places=places,
            source=source,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        await self._cache.set(self.cache_key, listing.to_dict(), ttl=ttl, swr=swr)
        return listing

    @staticmethod
    def _from_payload(payload: Any) -> Optional[PlaceListing]:
        if not isinstance(payload, dict):
            return None
        try:
            places = [Place.model_validate(p) for p in payload.get("places") or []]
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached place list: {e}")
            return None
        return PlaceListing(
            places=places,
            source=payload.get("source") or "cache",
            updated_at=payload.get("updatedAt"),
        )

"""
Precomputed shadow lookup for a point and instant.

The resolver maps a coordinate to its tile and pixel, picks the mask for the
local month and time slot, and reads one sample. Whenever precomputed data
cannot answer, it returns the heuristic sentinel instead of raising.
"""

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..cache.keys import build_mask_key
from ..cache.store import CacheStore
from ..models.shadow import (
    ShadowMask,
    ShadowMaskRef,
    ShadowPrecision,
    ShadowResult,
    TileDescriptor,
    TimeSlot,
)
from ..utils.geo_utils import pixel_for_point
from .tile_index import TileIndex

logger = logging.getLogger(__name__)

PRECOMPUTED_CONFIDENCE = 0.95


def slot_for_hour(hour: int) -> TimeSlot:
    """
    Time slot of a local hour.

    Masks exist for 8-10 (morning), 11-13 (noon) and 14-16 (afternoon);
    other hours snap to the nearest band by threshold.
    """
    if hour < 11:
        return TimeSlot.MORNING
    if hour < 14:
        return TimeSlot.NOON
    return TimeSlot.AFTERNOON


class ShadowResolver:
    """Resolve shadow values from precomputed tile masks."""

    def __init__(
        self,
        tile_index: TileIndex,
        mask_cache: Optional[CacheStore] = None,
        mask_ttl_seconds: float = 600,
        timezone: str = "Europe/Paris",
    ):
        """
        Args:
            tile_index: Directory of tiles and mask references
            mask_cache: Memory-only store for decoded masks
            mask_ttl_seconds: Lifetime of a decoded mask in the cache
            timezone: Local timezone used for month and slot
        """
        self.tile_index = tile_index
        self._mask_cache = mask_cache if mask_cache is not None else CacheStore(max_entries=512)
        self._mask_ttl_seconds = mask_ttl_seconds
        self._tz: tzinfo = ZoneInfo(timezone)

    async def resolve(self, lat: float, lon: float, instant: datetime) -> ShadowResult:
        snapshot = await self.tile_index.snapshot()
        if snapshot.is_empty:
            return ShadowResult.heuristic_sentinel()

        tile = snapshot.find_tile(lat, lon)
        if tile is None:
            return ShadowResult.heuristic_sentinel()

        # Rounding can put a point on the wrong side of a tile edge
        if not tile.bounds.contains(lat, lon):
            logger.debug(f"Point {lat},{lon} outside bounds of tile {tile.tile_id}")
            return ShadowResult.heuristic_sentinel()

        x, y = self.pixel_for(tile, lat, lon)

        local = self._to_local(instant)
        slot = slot_for_hour(local.hour)
        mask_ref = snapshot.find_mask(tile.tile_id, local.month, slot)
        if mask_ref is None:
            return ShadowResult.heuristic_sentinel()

        mask = await self.load_mask(mask_ref, tile)
        if mask is None:
            return ShadowResult.heuristic_sentinel()

        pixel_index = y * mask.width + x
        if x >= mask.width or pixel_index >= len(mask.samples):
            return ShadowResult.heuristic_sentinel()

        sample = mask.samples[pixel_index]
        return ShadowResult(
            precision=ShadowPrecision.PRECOMPUTED,
            shadow_value=max(0.0, min(1.0, sample / 255)),
            confidence=PRECOMPUTED_CONFIDENCE,
            tile_id=tile.tile_id,
            pixel_x=x,
            pixel_y=y,
        )

    @staticmethod
    def pixel_for(tile: TileDescriptor, lat: float, lon: float):
        b = tile.bounds
        return pixel_for_point(lat, lon, b.north, b.south, b.east, b.west, tile.pixel_width, tile.pixel_height)

    async def load_mask(self, mask_ref: ShadowMaskRef, tile: TileDescriptor) -> Optional[ShadowMask]:
        """
        Decoded mask for a reference, from the mask cache or blob storage.

        Returns None when the document is missing, malformed or does not
        match the tile's pixel grid.
        """
        key = build_mask_key(mask_ref.tile_id, mask_ref.month, mask_ref.slot)
        lookup = await self._mask_cache.get(key)
        if lookup.hit:
            return lookup.value

        document = await self.tile_index.blob_store.read_json(mask_ref.storage_ref)
        if document is None:
            logger.debug(f"Mask {mask_ref.storage_ref} unavailable")
            return None

        try:
            mask = ShadowMask.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Malformed mask {mask_ref.storage_ref}: {e}")
            return None

        if not mask.is_consistent:
            logger.warning(
                f"Mask {mask_ref.storage_ref} has {len(mask.samples)} samples "
                f"for a {mask.width}x{mask.height} grid"
            )
            return None
        # Row stride must be the tile width, so a transposed mask is rejected
        if mask.width != tile.pixel_width or mask.height != tile.pixel_height:
            logger.warning(
                f"Mask {mask_ref.storage_ref} is {mask.width}x{mask.height}, "
                f"tile {tile.tile_id} is {tile.pixel_width}x{tile.pixel_height}"
            )
            return None

        await self._mask_cache.set(key, mask, ttl=self._mask_ttl_seconds)
        return mask

    def _to_local(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self._tz)
        return instant.astimezone(self._tz)

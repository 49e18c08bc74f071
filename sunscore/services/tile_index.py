"""
Directory of precomputed shadow tiles.

The metadata document lists every tile descriptor and every mask reference.
It is read from blob storage, published to the cache for a few minutes, and
indexed in memory so tile and mask lookups are dictionary hits.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from ..cache.keys import build_tile_metadata_key
from ..cache.store import CacheStore
from ..models.shadow import ShadowMaskRef, TileDescriptor, TileMetadata, TimeSlot
from ..providers.storage import BlobStore
from ..utils.geo_utils import tile_id_for

logger = logging.getLogger(__name__)

MaskIndexKey = Tuple[str, int, TimeSlot]


@dataclass
class TileSnapshot:
    """An indexed, immutable view of one metadata document."""
    metadata: TileMetadata
    tile_size: float
    origin_lat: float
    origin_lon: float
    tiles: Dict[str, TileDescriptor] = field(default_factory=dict)
    masks: Dict[MaskIndexKey, ShadowMaskRef] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.tiles

    def tile_id_for(self, lat: float, lon: float) -> str:
        return tile_id_for(lat, lon, self.origin_lat, self.origin_lon, self.tile_size)

    def find_tile(self, lat: float, lon: float) -> Optional[TileDescriptor]:
        return self.tiles.get(self.tile_id_for(lat, lon))

    def find_mask(self, tile_id: str, month: int, slot: TimeSlot) -> Optional[ShadowMaskRef]:
        return self.masks.get((tile_id, month, TimeSlot(slot)))


class TileIndex:
    """
    Loads and indexes the shadow tile directory.

    A missing or malformed metadata document yields an empty snapshot, so
    every lookup misses and scoring degrades to the heuristic path.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        cache: CacheStore,
        metadata_ref: str = "vox/metadata.json",
        ttl_seconds: float = 300,
        default_tile_size: float = 0.0008,
        default_origin_lat: float = 48.8566,
        default_origin_lon: float = 2.3522,
    ):
        self.blob_store = blob_store
        self._cache = cache
        self._metadata_ref = metadata_ref
        self._ttl_seconds = ttl_seconds
        self._default_tile_size = default_tile_size
        self._default_origin = (default_origin_lat, default_origin_lon)
        self._cache_key = build_tile_metadata_key(metadata_ref)

        self._snapshot: Optional[TileSnapshot] = None
        self._snapshot_source: Optional[Any] = None
        self._reload_lock = asyncio.Lock()

    async def load(self) -> TileMetadata:
        """Return the current tile directory, reloading it when the cached copy is old."""
        snapshot = await self.snapshot()
        return snapshot.metadata

    async def snapshot(self) -> TileSnapshot:
        """Return the current indexed snapshot."""
        lookup = await self._cache.get(self._cache_key)
        if lookup.hit and not lookup.is_stale:
            return self._snapshot_from_cached(lookup.value)

        async with self._reload_lock:
            # Another task may have reloaded while we waited
            lookup = await self._cache.get(self._cache_key)
            if lookup.hit and not lookup.is_stale:
                return self._snapshot_from_cached(lookup.value)

            metadata = await self._read_metadata()
            document = metadata.model_dump(mode="json", by_alias=True)
            await self._cache.set(self._cache_key, document, ttl=self._ttl_seconds)
            self._snapshot = self._build_snapshot(metadata)
            self._snapshot_source = document
            return self._snapshot

    def find_tile(self, lat: float, lon: float) -> Optional[TileDescriptor]:
        """Tile covering a coordinate in the last loaded snapshot."""
        if self._snapshot is None:
            return None
        return self._snapshot.find_tile(lat, lon)

    def find_mask(self, tile_id: str, month: int, slot: TimeSlot) -> Optional[ShadowMaskRef]:
        """Mask reference for an exact (tile, month, slot) in the last loaded snapshot."""
        if self._snapshot is None:
            return None
        return self._snapshot.find_mask(tile_id, month, slot)

    def get_stats(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            return {"loaded": False, "tiles": 0, "masks": 0}
        return {
            "loaded": True,
            "version": snapshot.metadata.version,
            "generated": snapshot.metadata.generated,
            "tiles": len(snapshot.tiles),
            "masks": len(snapshot.masks),
        }

    def _snapshot_from_cached(self, document: Any) -> TileSnapshot:
        # The fast tier hands back the very object we stored; reuse its index
        if self._snapshot is not None and document is self._snapshot_source:
            return self._snapshot

        try:
            metadata = TileMetadata.model_validate(document)
        except ValidationError as e:
            logger.warning(f"Cached tile metadata is malformed, using empty directory: {e}")
            metadata = TileMetadata()

        self._snapshot = self._build_snapshot(metadata)
        self._snapshot_source = document
        return self._snapshot

    async def _read_metadata(self) -> TileMetadata:
        document = await self.blob_store.read_json(self._metadata_ref)
        if document is None:
            logger.warning(f"Shadow tile metadata unavailable at {self._metadata_ref}, precomputed shadows disabled")
            return TileMetadata()

        try:
            metadata = TileMetadata.model_validate(document)
        except ValidationError as e:
            logger.error(f"Malformed shadow tile metadata {self._metadata_ref}: {e}")
            return TileMetadata()

        logger.info(
            f"Loaded shadow tile metadata v{metadata.version}: "
            f"{len(metadata.tiles)} tiles, {len(metadata.masks)} masks"
        )
        return metadata

    def _build_snapshot(self, metadata: TileMetadata) -> TileSnapshot:
        system = metadata.tile_system
        origin_lat, origin_lon = self._default_origin
        if system.origin is not None:
            origin_lat, origin_lon = system.origin.lat, system.origin.lon

        snapshot = TileSnapshot(
            metadata=metadata,
            tile_size=system.tile_size or self._default_tile_size,
            origin_lat=origin_lat,
            origin_lon=origin_lon,
        )

        for tile in metadata.tiles:
            if tile.tile_id in snapshot.tiles:
                logger.warning(f"Duplicate tile id {tile.tile_id} in metadata, keeping the first")
                continue
            snapshot.tiles[tile.tile_id] = tile

        for mask in metadata.masks:
            key = (mask.tile_id, mask.month, mask.slot)
            if key in snapshot.masks:
                logger.warning(f"Duplicate mask {key} in metadata, keeping the first")
                continue
            snapshot.masks[key] = mask

        return snapshot

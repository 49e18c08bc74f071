"""
Data models for precomputed shadow tiles and shadow lookups.

The tile directory and mask documents are produced offline and use camelCase
keys; these models read them directly through field aliases.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ShadowPrecision(str, Enum):
    """How a shadow value (and the score built on it) was obtained."""
    PRECOMPUTED = "precomputed"
    HEURISTIC = "heuristic"


class TimeSlot(str, Enum):
    """Time-of-day bands for which masks are precomputed."""
    MORNING = "morning"
    NOON = "noon"
    AFTERNOON = "afternoon"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class GeoPoint(_CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class TileBounds(_CamelModel):
    """Geographic bounds of a tile, in degrees."""
    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east


class TileDescriptor(_CamelModel):
    """
    One geospatial cell of precomputed shadow data.

    ``tile_id`` encodes the integer grid coordinates as ``"<x>_<y>"``.
    """
    tile_id: str = Field(..., description="Grid coordinates encoded as '<x>_<y>'")
    bounds: TileBounds
    resolution_meters: float = Field(4.0, alias="resolution", gt=0)
    pixel_width: int = Field(..., gt=0)
    pixel_height: int = Field(..., gt=0)
    center: Optional[GeoPoint] = None

    model_config = ConfigDict(frozen=True)


class ShadowMaskRef(_CamelModel):
    """Reference to one precomputed mask for a tile, month and time slot."""
    tile_id: str
    month: int = Field(..., ge=1, le=12)
    slot: TimeSlot
    storage_ref: str = Field(..., alias="url", description="Blob reference of the mask document")
    generated_at: Optional[str] = Field(None, alias="generated")

    model_config = ConfigDict(frozen=True)


class TileSystem(_CamelModel):
    tile_size: Optional[float] = Field(None, gt=0)
    resolution: Optional[float] = None
    pixels_per_tile: Optional[int] = None
    origin: Optional[GeoPoint] = None


class TileMetadata(_CamelModel):
    """The tile directory document: descriptors plus mask references."""
    version: str = "0"
    generated: Optional[str] = None
    coverage: Optional[TileBounds] = None
    tile_system: TileSystem = Field(default_factory=TileSystem)
    tiles: List[TileDescriptor] = Field(default_factory=list)
    masks: List[ShadowMaskRef] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.tiles


class ShadowMask(_CamelModel):
    """Decoded pixel grid of shadow samples (0-255, row-major)."""
    tile_id: Optional[str] = None
    month: Optional[int] = None
    slot: Optional[TimeSlot] = Field(None, alias="timeSlot")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    samples: List[int] = Field(..., alias="shadows")

    model_config = ConfigDict(frozen=True)

    @property
    def is_consistent(self) -> bool:
        return len(self.samples) == self.width * self.height


class ShadowResult(_CamelModel):
    """Outcome of a shadow lookup: 0 is full shadow, 1 is full sun."""
    precision: ShadowPrecision
    shadow_value: float = Field(..., ge=0, le=1)
    confidence: float = Field(..., ge=0, le=1)
    tile_id: Optional[str] = None
    pixel_x: Optional[int] = None
    pixel_y: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def heuristic_sentinel(cls) -> "ShadowResult":
        """Result returned whenever precomputed data cannot answer."""
        return cls(precision=ShadowPrecision.HEURISTIC, shadow_value=0.0, confidence=0.0)

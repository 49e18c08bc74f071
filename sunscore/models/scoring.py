"""
Data models for scores and the aggregate sun score response.

Aggregate models serialize with camelCase keys (``model_dump(by_alias=True)``)
because that is the shape presentation clients consume and the shape stored
in the cache.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .shadow import ShadowPrecision


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class SunLabel(str, Enum):
    """Coarse label shown for one point at one hour."""
    SUNNY = "sunny"
    PARTIAL = "partial"
    SHADE = "shade"
    NIGHT = "night"


class CacheStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISS = "miss"


class ScoreResult(_CamelModel):
    """Hybrid score for one point at one instant."""
    score: float = Field(..., ge=0, le=1)
    method: ShadowPrecision
    confidence: float = Field(..., ge=0, le=1)

    model_config = ConfigDict(frozen=True)


class PointScores(_CamelModel):
    id: str
    name: Optional[str] = None
    lat: float
    lon: float
    score_by_hour: List[float] = Field(default_factory=list)
    label_by_hour: List[SunLabel] = Field(default_factory=list)


class AggregateMeta(_CamelModel):
    total_points: int = 0
    total_available: int = 0
    point_limit: int = 0
    hours_computed: int = 0
    precomputed_count: int = 0
    heuristic_count: int = 0
    precomputed_coverage_percent: float = 0.0
    weather_source: Optional[str] = None
    shadow_method: Optional[str] = None
    golden_hour: bool = False


class AggregateResult(_CamelModel):
    """Scores for every requested point and hour, plus usage metadata."""
    updated_at: str
    hours: List[str] = Field(default_factory=list)
    points: List[PointScores] = Field(default_factory=list)
    meta: AggregateMeta = Field(default_factory=AggregateMeta)

    def to_cache(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ErrorInfo(_CamelModel):
    """Caller-visible failure: a stable code and a human readable message."""
    code: str
    message: str


class WindowResult(_CamelModel):
    """Outcome of one window computation as seen by the caller."""
    result: Optional[AggregateResult] = None
    error: Optional[ErrorInfo] = None
    cache_status: CacheStatus = CacheStatus.MISS
    golden_hour: bool = False
    ttl_seconds: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

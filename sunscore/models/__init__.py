"""
Domain models for shadow tiles, scores and aggregate responses.
"""

from .shadow import (
    GeoPoint,
    ShadowMask,
    ShadowMaskRef,
    ShadowPrecision,
    ShadowResult,
    TileBounds,
    TileDescriptor,
    TileMetadata,
    TileSystem,
    TimeSlot,
)
from .scoring import (
    AggregateMeta,
    AggregateResult,
    CacheStatus,
    ErrorInfo,
    PointScores,
    ScoreResult,
    SunLabel,
    WindowResult,
)

__all__ = [
    'GeoPoint',
    'ShadowMask',
    'ShadowMaskRef',
    'ShadowPrecision',
    'ShadowResult',
    'TileBounds',
    'TileDescriptor',
    'TileMetadata',
    'TileSystem',
    'TimeSlot',
    'AggregateMeta',
    'AggregateResult',
    'CacheStatus',
    'ErrorInfo',
    'PointScores',
    'ScoreResult',
    'SunLabel',
    'WindowResult',
]

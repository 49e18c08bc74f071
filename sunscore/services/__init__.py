"""
Scoring services: tile directory, shadow lookup, hybrid scoring and the
window orchestrator.
"""

from .background_refresh import BackgroundRefresher
from .hybrid_scorer import HybridScorer
from .orientation import estimate_orientation, label_from_score
from .place_service import PlaceListing, PlaceService
from .score_orchestrator import ScoreOrchestrator
from .shadow_resolver import ShadowResolver, slot_for_hour
from .tile_index import TileIndex, TileSnapshot

__all__ = [
    'BackgroundRefresher',
    'HybridScorer',
    'estimate_orientation',
    'label_from_score',
    'PlaceListing',
    'PlaceService',
    'ScoreOrchestrator',
    'ShadowResolver',
    'slot_for_hour',
    'TileIndex',
    'TileSnapshot',
]

"""
Terrace orientation and display labels.

Places rarely say which way they face, so orientation is estimated from the
street grid: terraces tend to face the nearest major boulevard.
"""

from typing import Any, Mapping, Optional

from ..models.scoring import SunLabel
from ..providers.models import Place

DEFAULT_ORIENTATION = 180.0
STREET_SEARCH_DEG = 0.01

# East-west boulevards, matched on latitude
EAST_WEST_STREETS = [
    ("Champs-Élysées", 48.8698, 180.0),
    ("Boulevard Saint-Germain", 48.8533, 180.0),
    ("Boulevard de la Bastille", 48.8534, 180.0),
    ("Rue de Rivoli", 48.8593, 180.0),
]

# North-south avenues, matched on longitude
NORTH_SOUTH_STREETS = [
    ("Boulevard Saint-Michel", 2.3438, 270.0),
    ("Avenue des Champs-Élysées", 2.3084, 90.0),
    ("Boulevard de Sébastopol", 2.3483, 270.0),
]


def _explicit_orientation(attributes: Mapping[str, Any]) -> Optional[float]:
    for name in ("orientation", "facing"):
        value = attributes.get(name)
        if value is None:
            continue
        try:
            return float(value) % 360
        except (TypeError, ValueError):
            continue
    return None


def estimate_orientation(place: Place) -> float:
    """
    Compass bearing (0 = north, 180 = south) a place's terrace faces.

    An explicit ``orientation`` or ``facing`` attribute wins. Places with
    outdoor seating face the closest major street within about a kilometre.
    Everything else uses a left bank / right bank rule of thumb.
    """
    explicit = _explicit_orientation(place.attributes)
    if explicit is not None:
        return explicit

    lat, lon = place.lat, place.lon

    if place.attributes.get("outdoor_seating") == "yes":
        closest = float("inf")
        best = DEFAULT_ORIENTATION
        for _, street_lat, facing in EAST_WEST_STREETS:
            dist = abs(lat - street_lat)
            if dist < closest and dist < STREET_SEARCH_DEG:
                closest, best = dist, facing
        for _, street_lon, facing in NORTH_SOUTH_STREETS:
            dist = abs(lon - street_lon)
            if dist < closest and dist < STREET_SEARCH_DEG:
                closest, best = dist, facing
        return best

    # Left bank terraces face the river
    if lat < 48.855:
        return 0.0
    if lon < 2.35:
        return 225.0
    return 180.0


def label_from_score(score: float, after_sunset: bool = False) -> SunLabel:
    if after_sunset:
        return SunLabel.NIGHT
    if score >= 0.6:
        return SunLabel.SUNNY
    if score >= 0.3:
        return SunLabel.PARTIAL
    return SunLabel.SHADE

"""
Geographic and angular utility functions.

This module contains pure mathematical functions with no dependencies on
providers or services. All functions are stateless and can be tested independently.
"""

import math
from typing import Tuple

_GEOHASH_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(high, value))


def circular_difference(a: float, b: float) -> float:
    """
    Smallest angular difference between two angles.

    Args:
        a, b: Angles in radians

    Returns:
        Difference in radians, in [0, pi]
    """
    d = abs(a - b) % (2 * math.pi)
    return 2 * math.pi - d if d > math.pi else d


def compass_to_south_azimuth(orientation_deg: float) -> float:
    """
    Convert a compass bearing (0 = north, 90 = east) to the solar azimuth
    convention (0 = south, west positive), in radians.
    """
    return math.radians(orientation_deg - 180)


def encode_geohash(lat: float, lon: float, precision: int = 9) -> str:
    """
    Encode a coordinate as a geohash string.

    Args:
        lat, lon: Coordinates (degrees)
        precision: Number of characters (9 is roughly a 5m cell)

    Returns:
        Geohash string
    """
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    bits = 0
    bit_count = 0
    even = True

    while len(chars) < precision:
        if even:
            mid = (lon_range[0] + lon_range[1]) / 2
            if lon >= mid:
                bits = (bits << 1) | 1
                lon_range[0] = mid
            else:
                bits = bits << 1
                lon_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if lat >= mid:
                bits = (bits << 1) | 1
                lat_range[0] = mid
            else:
                bits = bits << 1
                lat_range[1] = mid
        even = not even
        bit_count += 1

        if bit_count == 5:
            chars.append(_GEOHASH_ALPHABET[bits])
            bits = 0
            bit_count = 0

    return "".join(chars)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))


def tile_grid_coords(
    lat: float,
    lon: float,
    origin_lat: float,
    origin_lon: float,
    tile_size_deg: float,
) -> Tuple[int, int]:
    """
    Map a coordinate to integer tile grid coordinates.

    The grid is anchored so that the tile centred on the origin is (0, 0).

    Returns:
        (x, y) grid coordinates; x grows eastwards, y northwards
    """
    x = round_half_up((lon - origin_lon) / tile_size_deg)
    y = round_half_up((lat - origin_lat) / tile_size_deg)
    return x, y


def tile_id_for(
    lat: float,
    lon: float,
    origin_lat: float,
    origin_lon: float,
    tile_size_deg: float,
) -> str:
    """Tile id (``"<x>_<y>"``) of the grid cell covering a coordinate."""
    x, y = tile_grid_coords(lat, lon, origin_lat, origin_lon, tile_size_deg)
    return f"{x}_{y}"


def pixel_for_point(
    lat: float,
    lon: float,
    north: float,
    south: float,
    east: float,
    west: float,
    pixel_width: int,
    pixel_height: int,
) -> Tuple[int, int]:
    """
    Pixel coordinates of a point inside a tile, (0, 0) at the north-west corner.

    Points on the east or south edge are clamped onto the last column/row.

    Returns:
        (x, y) pixel coordinates
    """
    x = int(math.floor((lon - west) / (east - west) * pixel_width))
    y = int(math.floor((north - lat) / (north - south) * pixel_height))
    x = max(0, min(pixel_width - 1, x))
    y = max(0, min(pixel_height - 1, y))
    return x, y

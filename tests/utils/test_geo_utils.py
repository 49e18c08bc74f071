"""
Unit tests for sunscore/utils/geo_utils.py

Tests for pure mathematical functions:
- clamp
- circular_difference
- compass_to_south_azimuth
- encode_geohash
- round_half_up
- tile_grid_coords / tile_id_for
- pixel_for_point
"""

import math

import pytest

from sunscore.utils.geo_utils import (
    circular_difference,
    clamp,
    compass_to_south_azimuth,
    encode_geohash,
    pixel_for_point,
    round_half_up,
    tile_grid_coords,
    tile_id_for,
)


class TestClamp:
    def test_inside_range_unchanged(self):
        assert clamp(0.4) == 0.4

    def test_clamps_both_ends(self):
        assert clamp(-0.2) == 0.0
        assert clamp(1.7) == 1.0
        assert clamp(50, 0, 10) == 10


class TestCircularDifference:
    """Tests for the smallest angle between two directions."""

    def test_same_angle_is_zero(self):
        assert circular_difference(1.0, 1.0) == pytest.approx(0.0)

    def test_wraps_around_full_turn(self):
        """Angles on either side of the wrap point should be close."""
        diff = circular_difference(math.radians(350), math.radians(10))
        assert diff == pytest.approx(math.radians(20))

    def test_opposite_directions_is_pi(self):
        assert circular_difference(0.0, math.pi) == pytest.approx(math.pi)

    def test_never_exceeds_pi(self):
        for a in range(-720, 720, 37):
            for b in range(-360, 360, 53):
                diff = circular_difference(math.radians(a), math.radians(b))
                assert 0.0 <= diff <= math.pi + 1e-9


class TestCompassToSouthAzimuth:
    def test_south_facing_is_zero(self):
        assert compass_to_south_azimuth(180) == pytest.approx(0.0)

    def test_west_facing_is_positive(self):
        assert compass_to_south_azimuth(270) == pytest.approx(math.pi / 2)

    def test_east_facing_is_negative(self):
        assert compass_to_south_azimuth(90) == pytest.approx(-math.pi / 2)


class TestEncodeGeohash:
    """Known geohash vectors."""

    def test_short_precision(self):
        assert encode_geohash(42.6, -5.6, 5) == "ezs42"

    def test_long_precision(self):
        assert encode_geohash(57.64911, 10.40744, 11) == "u4pruydqqvj"

    def test_prefix_property(self):
        """A shorter geohash should be a prefix of a longer one for the same point."""
        assert encode_geohash(48.8566, 2.3522, 9).startswith(encode_geohash(48.8566, 2.3522, 5))

    def test_nearby_points_share_cell(self):
        """Points a few centimetres apart should share a 7-character cell."""
        assert encode_geohash(48.85660, 2.35220, 7) == encode_geohash(48.8566001, 2.3522001, 7)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value, expected", [
        (0.5, 1),
        (1.5, 2),
        (2.5, 3),
        (-0.5, 0),
        (-1.5, -1),
        (0.49, 0),
        (-0.51, -1),
    ])
    def test_halves_round_towards_positive_infinity(self, value, expected):
        assert round_half_up(value) == expected


class TestTileGrid:
    """Tile ids on a grid anchored at the origin tile."""

    def test_origin_is_tile_zero(self):
        assert tile_id_for(48.856, 2.352, 48.856, 2.352, 0.008) == "0_0"

    def test_neighbouring_tiles(self):
        assert tile_id_for(48.864, 2.352, 48.856, 2.352, 0.008) == "0_1"
        assert tile_id_for(48.848, 2.352, 48.856, 2.352, 0.008) == "0_-1"
        assert tile_id_for(48.856, 2.368, 48.856, 2.352, 0.008) == "2_0"

    def test_point_inside_origin_tile(self):
        """Points less than half a tile away should map to the origin tile."""
        assert tile_grid_coords(48.8585, 2.3495, 48.856, 2.352, 0.008) == (0, 0)


class TestPixelForPoint:
    """Pixel lookup inside a unit tile of 10 x 10 pixels."""

    BOUNDS = dict(north=1.0, south=0.0, east=1.0, west=0.0, pixel_width=10, pixel_height=10)

    def test_north_west_corner(self):
        assert pixel_for_point(1.0, 0.0, **self.BOUNDS) == (0, 0)

    def test_south_east_corner_is_clamped(self):
        assert pixel_for_point(0.0, 1.0, **self.BOUNDS) == (9, 9)

    def test_interior_point(self):
        assert pixel_for_point(0.75, 0.25, **self.BOUNDS) == (2, 2)

    def test_north_east_and_south_west(self):
        assert pixel_for_point(1.0, 1.0, **self.BOUNDS) == (9, 0)
        assert pixel_for_point(0.0, 0.0, **self.BOUNDS) == (0, 9)

"""
Tests for terrace orientation estimates and score labels.
"""

import pytest

from sunscore.models.scoring import SunLabel
from sunscore.providers.models import Place
from sunscore.services.orientation import DEFAULT_ORIENTATION, estimate_orientation, label_from_score


def _place(lat, lon, **tags):
    return Place(id="node/42", name="Test", lat=lat, lon=lon, tags=tags)


class TestEstimateOrientation:

    def test_explicit_orientation_wins(self):
        assert estimate_orientation(_place(48.85, 2.34, orientation="90")) == 90.0

    def test_facing_is_normalized(self):
        assert estimate_orientation(_place(48.85, 2.34, facing=450)) == 90.0

    def test_unparseable_orientation_is_ignored(self):
        """A non-numeric value should fall through to the location rule."""
        assert estimate_orientation(_place(48.85, 2.34, orientation="north")) == 0.0

    def test_outdoor_seating_faces_closest_boulevard(self):
        assert estimate_orientation(_place(48.8593, 2.36, outdoor_seating="yes")) == 180.0
        assert estimate_orientation(_place(48.80, 2.3438, outdoor_seating="yes")) == 270.0
        assert estimate_orientation(_place(48.80, 2.3084, outdoor_seating="yes")) == 90.0

    def test_outdoor_seating_far_from_boulevards(self):
        assert estimate_orientation(_place(48.80, 2.40, outdoor_seating="yes")) == DEFAULT_ORIENTATION

    @pytest.mark.parametrize("lat, lon, expected", [
        (48.850, 2.34, 0.0),
        (48.860, 2.34, 225.0),
        (48.860, 2.36, 180.0),
    ])
    def test_bank_rule(self, lat, lon, expected):
        assert estimate_orientation(_place(lat, lon)) == expected


class TestLabelFromScore:

    @pytest.mark.parametrize("score, expected", [
        (1.0, SunLabel.SUNNY),
        (0.6, SunLabel.SUNNY),
        (0.59, SunLabel.PARTIAL),
        (0.3, SunLabel.PARTIAL),
        (0.29, SunLabel.SHADE),
        (0.0, SunLabel.SHADE),
    ])
    def test_thresholds(self, score, expected):
        assert label_from_score(score) == expected

    def test_night_after_sunset(self):
        assert label_from_score(0.9, after_sunset=True) == SunLabel.NIGHT

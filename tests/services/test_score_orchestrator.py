"""
Tests for sun score windows: caching, refresh, sampling and golden hour.
"""

import logging
from datetime import datetime
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest

from sunscore.cache.keys import build_score_key, build_weather_key
from sunscore.models.scoring import AggregateResult, CacheStatus, SunLabel
from sunscore.models.shadow import ShadowPrecision
from sunscore.providers.models import Place
from sunscore.services.score_orchestrator import sample_points

from conftest import FakeAstronomy, FakeWeather

PARIS = ZoneInfo("Europe/Paris")
# 170 minutes before the fake solar noon, outside every golden window
MORNING = datetime(2024, 6, 15, 11, 0, tzinfo=PARIS)
AFTERNOON = datetime(2024, 6, 15, 16, 0, tzinfo=PARIS)


class RaisingWeather(FakeWeather):
    async def fetch_hourly(self, reference_instant, hour_count):
        self.calls += 1
        raise ConnectionError("open-meteo unreachable")


def _places(n):
    return [Place(id=f"node/{i}", lat=48.80 + i * 0.001, lon=2.40) for i in range(n)]


class TestSamplePoints:

    def test_returns_all_under_limit(self):
        points = _places(3)
        assert sample_points(points, 5) == points

    def test_takes_every_nth(self):
        points = _places(10)
        assert [p.id for p in sample_points(points, 5)] == ["node/0", "node/2", "node/4", "node/6", "node/8"]

    def test_never_exceeds_limit(self):
        points = _places(10)
        assert [p.id for p in sample_points(points, 3)] == ["node/0", "node/4", "node/8"]
        assert len(sample_points(_places(1000), 7)) <= 7


class TestComputeWindow:

    @pytest.mark.asyncio
    async def test_scores_every_point_and_hour(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()

        window = await orchestrator.compute_window(MORNING, hour_count=3)

        assert window.ok
        assert window.cache_status == CacheStatus.MISS
        assert window.golden_hour is False
        assert window.ttl_seconds == 3600

        result = window.result
        assert result.hours[0] == "2024-06-15T11:00:00+02:00"
        assert len(result.hours) == 3
        assert [p.id for p in result.points] == ["node/1", "node/2", "node/3"]
        for point in result.points:
            assert len(point.score_by_hour) == 3
            assert len(point.label_by_hour) == 3
            assert all(0.0 <= s <= 1.0 for s in point.score_by_hour)

    @pytest.mark.asyncio
    async def test_precomputed_coverage(self, make_orchestrator):
        """Only the point inside the shadow tile uses the noon mask."""
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(MORNING, hour_count=3)
        meta = window.result.meta

        assert meta.precomputed_count == 3
        assert meta.heuristic_count == 6
        assert meta.precomputed_coverage_percent == pytest.approx(33.3)
        assert meta.shadow_method == "precomputed+heuristic"
        assert meta.weather_source == "fake-weather"
        assert meta.total_points == 3
        assert meta.total_available == 3
        assert meta.hours_computed == 3

        tile_point = window.result.points[0]
        assert tile_point.score_by_hour[0] == pytest.approx(200 / 255 * 1.1)
        assert tile_point.label_by_hour[0] == SunLabel.SUNNY

    @pytest.mark.asyncio
    async def test_heuristic_mode(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(MORNING, hour_count=3, precision_mode="heuristic")

        assert window.result.meta.precomputed_count == 0
        assert window.result.meta.shadow_method == "heuristic-only"

    @pytest.mark.asyncio
    async def test_night_labels_after_sunset(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(datetime(2024, 6, 15, 20, 0, tzinfo=PARIS), hour_count=4)

        labels = window.result.points[0].label_by_hour
        assert labels[2:] == [SunLabel.NIGHT, SunLabel.NIGHT]
        assert SunLabel.NIGHT not in labels[:2]

    @pytest.mark.asyncio
    async def test_low_sun_scores_zero(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(astronomy=FakeAstronomy(elevation_deg=3))

        window = await orchestrator.compute_window(MORNING, hour_count=2)

        assert all(s == 0.0 for p in window.result.points for s in p.score_by_hour)
        assert window.result.meta.heuristic_count == 6
        assert window.result.points[0].label_by_hour == [SunLabel.SHADE, SunLabel.SHADE]

    @pytest.mark.asyncio
    async def test_hours_are_capped(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(MORNING, hour_count=50)

        assert len(window.result.hours) == 12
        assert orchestrator.clamp_hours(None) == 8
        assert orchestrator.clamp_hours(0) == 1

    @pytest.mark.asyncio
    async def test_naive_instant_is_local_time(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(datetime(2024, 6, 15, 11, 0), hour_count=1)

        assert window.result.hours == ["2024-06-15T11:00:00+02:00"]

    @pytest.mark.asyncio
    async def test_caller_points_are_sampled(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()

        window = await orchestrator.compute_window(MORNING, hour_count=1, points=_places(10), point_limit=3)

        assert [p.id for p in window.result.points] == ["node/0", "node/4", "node/8"]
        assert window.result.meta.total_available == 10
        assert window.result.meta.point_limit == 3
        assert parts["places"].calls == 0

    @pytest.mark.asyncio
    async def test_sun_geometry_is_reused(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()

        await orchestrator.compute_window(MORNING, hour_count=3)
        await orchestrator.compute_window(MORNING, hour_count=3, precision_mode=ShadowPrecision.HEURISTIC)

        assert parts["astronomy"].position_calls == 9


class TestComputeWindowCaching:

    @pytest.mark.asyncio
    async def test_miss_then_fresh_then_stale(self, make_orchestrator, clock):
        orchestrator, parts = make_orchestrator()

        first = await orchestrator.compute_window(AFTERNOON)
        second = await orchestrator.compute_window(AFTERNOON)

        assert first.cache_status == CacheStatus.MISS
        assert second.cache_status == CacheStatus.FRESH
        assert second.result == first.result
        assert parts["weather"].calls == 1

        clock.advance(3700)
        third = await orchestrator.compute_window(AFTERNOON)
        assert third.cache_status == CacheStatus.STALE
        assert third.result == first.result

        await parts["refresher"].drain()
        assert parts["weather"].calls == 2

        fourth = await orchestrator.compute_window(AFTERNOON)
        assert fourth.cache_status == CacheStatus.FRESH

    @pytest.mark.asyncio
    async def test_expired_window_is_recomputed(self, make_orchestrator, clock):
        orchestrator, parts = make_orchestrator()
        await orchestrator.compute_window(AFTERNOON)

        clock.advance(3600 + 600 + 1)
        window = await orchestrator.compute_window(AFTERNOON)

        assert window.cache_status == CacheStatus.MISS
        assert parts["weather"].calls == 2

    @pytest.mark.asyncio
    async def test_malformed_cached_window_is_recomputed(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()
        key = build_score_key(ShadowPrecision.PRECOMPUTED, 8, AFTERNOON, point_limit=300)
        await parts["cache"].set(key, {"bogus": True}, ttl=3600)

        window = await orchestrator.compute_window(AFTERNOON)

        assert window.ok
        assert window.cache_status == CacheStatus.MISS

    @pytest.mark.asyncio
    async def test_window_survives_restart(self, make_orchestrator):
        """A new orchestrator on the same cache directory should serve the stored window."""
        first, _ = make_orchestrator()
        await first.compute_window(AFTERNOON)

        second, parts = make_orchestrator()
        window = await second.compute_window(AFTERNOON)

        assert window.cache_status == CacheStatus.FRESH
        assert parts["weather"].calls == 0

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_stale_window(self, make_orchestrator, settings, clock, caplog):
        """It should keep serving the stale window when its background refresh fails."""
        orchestrator, parts = make_orchestrator()
        first = await orchestrator.compute_window(AFTERNOON)
        score_key = build_score_key(ShadowPrecision.PRECOMPUTED, 8, AFTERNOON, point_limit=300)

        # The refresh has to refetch weather, and the provider now has nothing
        await parts["cache"].invalidate(build_weather_key(settings.reference_lat, settings.reference_lon, AFTERNOON))
        parts["weather"].empty = True
        clock.advance(3700)

        with caplog.at_level(logging.ERROR, logger="sunscore.services.background_refresh"):
            stale = await orchestrator.compute_window(AFTERNOON)
            await parts["refresher"].drain()

        assert stale.cache_status == CacheStatus.STALE
        assert stale.result == first.result
        assert parts["weather"].calls == 2
        assert "Background refresh failed" in caplog.text

        lookup = await parts["cache"].get(score_key)
        assert lookup.is_stale
        assert AggregateResult.model_validate(lookup.value) == first.result

        again = await orchestrator.compute_window(AFTERNOON)
        await parts["refresher"].drain()
        assert again.ok
        assert again.cache_status == CacheStatus.STALE
        assert again.result == first.result
        assert parts["weather"].calls == 3


class TestComputeWindowErrors:

    @pytest.mark.asyncio
    async def test_no_weather_is_reported(self, make_orchestrator):
        orchestrator, parts = make_orchestrator(weather=FakeWeather(empty=True))

        window = await orchestrator.compute_window(AFTERNOON)

        assert not window.ok
        assert window.result is None
        assert window.error.code == "weather_unavailable"

        await orchestrator.compute_window(AFTERNOON)
        assert parts["weather"].calls == 2

    @pytest.mark.asyncio
    async def test_weather_provider_exception_is_reported(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(weather=RaisingWeather())

        window = await orchestrator.compute_window(AFTERNOON)

        assert window.error.code == "weather_unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_reported(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()

        with patch.object(parts["astronomy"], "positions", side_effect=RuntimeError("ephemeris exploded")):
            window = await orchestrator.compute_window(AFTERNOON)

        assert not window.ok
        assert window.error.code == "sunscore_failed"
        assert window.error.message == "ephemeris exploded"

        retry = await orchestrator.compute_window(AFTERNOON)
        assert retry.cache_status == CacheStatus.MISS
        assert retry.ok

    @pytest.mark.asyncio
    async def test_unknown_precision_is_reported(self, make_orchestrator):
        orchestrator, parts = make_orchestrator()

        window = await orchestrator.compute_window(AFTERNOON, precision_mode="raytraced")

        assert not window.ok
        assert window.error.code == "invalid_precision"
        assert "raytraced" in window.error.message
        assert parts["weather"].calls == 0

    @pytest.mark.asyncio
    async def test_precision_accepts_plain_strings(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(AFTERNOON, hour_count=1, precision_mode="heuristic")

        assert window.ok
        assert window.result.meta.shadow_method == "heuristic-only"

    @pytest.mark.asyncio
    async def test_no_places_returns_empty_points(self, make_orchestrator):
        from conftest import FakePlaces

        orchestrator, _ = make_orchestrator(places=FakePlaces([]))

        window = await orchestrator.compute_window(AFTERNOON)

        assert window.ok
        assert window.result.points == []
        assert window.result.meta.precomputed_coverage_percent == 0.0


class TestGoldenHour:

    @pytest.mark.asyncio
    async def test_near_solar_noon(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        assert await orchestrator.is_golden_hour(datetime(2024, 6, 15, 13, 0, tzinfo=PARIS))
        assert await orchestrator.is_golden_hour(datetime(2024, 6, 15, 20, 30, tzinfo=PARIS))
        assert not await orchestrator.is_golden_hour(MORNING)

    @pytest.mark.asyncio
    async def test_window_boundary_is_exclusive(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        # Exactly 90 minutes before sunset
        assert not await orchestrator.is_golden_hour(datetime(2024, 6, 15, 20, 0, tzinfo=PARIS))
        assert await orchestrator.is_golden_hour(datetime(2024, 6, 15, 20, 1, tzinfo=PARIS))

    @pytest.mark.asyncio
    async def test_golden_window_uses_short_ttl(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()

        window = await orchestrator.compute_window(datetime(2024, 6, 15, 13, 0, tzinfo=PARIS), hour_count=2)

        assert window.golden_hour is True
        assert window.ttl_seconds == 900
        assert window.result.meta.golden_hour is True

    @pytest.mark.asyncio
    async def test_fixed_hours_when_sun_events_fail(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(astronomy=FakeAstronomy(fail_sun_times=True))

        assert await orchestrator.is_golden_hour(datetime(2024, 6, 15, 7, 30, tzinfo=PARIS))
        assert await orchestrator.is_golden_hour(datetime(2024, 6, 15, 19, 0, tzinfo=PARIS))
        assert not await orchestrator.is_golden_hour(datetime(2024, 6, 15, 13, 0, tzinfo=PARIS))

    @pytest.mark.asyncio
    async def test_window_computes_without_sun_events(self, make_orchestrator):
        orchestrator, _ = make_orchestrator(astronomy=FakeAstronomy(fail_sun_times=True))

        window = await orchestrator.compute_window(datetime(2024, 6, 15, 7, 0, tzinfo=PARIS), hour_count=2)

        assert window.ok
        assert window.golden_hour is True
        assert window.ttl_seconds == 900

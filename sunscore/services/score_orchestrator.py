"""
Sun score windows for many points and hours.

The orchestrator serves aggregate results through the cache with
stale-while-revalidate semantics. A fresh computation fetches weather and
places concurrently, resolves sun geometry per point and hour, scores every
combination with ``HybridScorer`` and caches the aggregate with a TTL that
shortens around sunrise, solar noon and sunset.
"""

import asyncio
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from ..cache.keys import (
    align_to_hour,
    build_score_key,
    build_sun_geometry_key,
    build_sun_times_key,
    build_weather_key,
)
from ..cache.store import CacheStore
from ..config.settings import SunScoreSettings, get_settings
from ..errors import InvalidPrecisionError, ScoreComputationError, SunScoreError, WeatherUnavailableError
from ..models.scoring import (
    AggregateMeta,
    AggregateResult,
    CacheStatus,
    ErrorInfo,
    PointScores,
    WindowResult,
)
from ..models.shadow import ShadowPrecision
from ..providers.base import AstronomyProvider, WeatherProvider
from ..providers.models import Place, SunPosition, SunTimes, WeatherHour
from .background_refresh import BackgroundRefresher
from .hybrid_scorer import MIN_SUN_ELEVATION_DEG, HybridScorer
from .orientation import estimate_orientation, label_from_score
from .place_service import PlaceService

logger = logging.getLogger(__name__)

# Hours treated as golden when sun events cannot be computed
FALLBACK_GOLDEN_HOURS = {6, 7, 8, 18, 19, 20}


def sample_points(points: Sequence[Place], limit: int) -> List[Place]:
    """Spread-out subset of at most ``limit`` points: every ceil(n/limit)-th one."""
    if len(points) <= limit:
        return list(points)
    step = math.ceil(len(points) / limit)
    return [p for i, p in enumerate(points) if i % step == 0][:limit]


class ScoreOrchestrator:
    """Compute and cache aggregate sun score windows."""

    def __init__(
        self,
        cache: CacheStore,
        scorer: HybridScorer,
        astronomy: AstronomyProvider,
        weather: WeatherProvider,
        places: PlaceService,
        settings: Optional[SunScoreSettings] = None,
        refresher: Optional[BackgroundRefresher] = None,
        geometry_cache: Optional[CacheStore] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            cache: Store for aggregates and weather
            scorer: Per point, per hour scorer
            astronomy: Sun position and sun event provider
            weather: Hourly weather at the reference location
            places: Cached place list used when callers pass no points
            settings: Lifetimes and limits; defaults to the global settings
            refresher: Runs stale-entry refreshes in the background
            geometry_cache: Store for sun positions and sun events (memory-only by default)
            now: Returns the current instant
        """
        self._cache = cache
        self._scorer = scorer
        self._astronomy = astronomy
        self._weather = weather
        self._places = places
        self._settings = settings or get_settings()
        self.refresher = refresher or BackgroundRefresher()
        self._geometry_cache = geometry_cache if geometry_cache is not None else CacheStore(max_entries=50000)
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._tz = ZoneInfo(self._settings.timezone)

    def clamp_hours(self, hour_count: Optional[int]) -> int:
        if hour_count is None:
            hour_count = self._settings.default_hours
        return max(1, min(int(hour_count), self._settings.max_hours))

    def clamp_limit(self, point_limit: Optional[int]) -> int:
        if point_limit is None:
            point_limit = self._settings.default_point_limit
        return max(1, min(int(point_limit), self._settings.max_point_limit))

    def window_ttl(self, golden: bool) -> int:
        return self._settings.cache_ttl_golden_hour if golden else self._settings.cache_ttl_weather

    async def compute_window(
        self,
        reference_instant: Optional[datetime] = None,
        hour_count: Optional[int] = None,
        precision_mode: Union[ShadowPrecision, str] = ShadowPrecision.PRECOMPUTED,
        points: Optional[Sequence[Place]] = None,
        point_limit: Optional[int] = None,
    ) -> WindowResult:
        """
        Scores for ``hour_count`` hours from ``reference_instant``.

        Fresh cached windows are returned as is; stale ones are returned
        while a background task recomputes them; misses are computed inline.
        Failures come back as ``WindowResult.error`` and are never raised.
        """
        try:
            mode = ShadowPrecision(precision_mode)
        except ValueError:
            error = InvalidPrecisionError(f"Unknown precision mode: {precision_mode!r}")
            logger.warning(f"Rejected sun score request: {error.message}")
            return WindowResult(error=ErrorInfo(code=error.code, message=error.message))

        instant = self._localize(reference_instant or self._now())
        hours = self.clamp_hours(hour_count)
        limit = self.clamp_limit(point_limit)
        point_list = list(points) if points is not None else None
        point_ids = [p.id for p in point_list] if point_list is not None else None

        key = build_score_key(mode, hours, align_to_hour(instant), point_ids=point_ids, point_limit=limit)
        golden = await self.is_golden_hour(instant)
        ttl = self.window_ttl(golden)

        lookup = await self._cache.get(key)
        if lookup.hit:
            cached = self._parse_aggregate(lookup.value)
            if cached is not None:
                if lookup.should_refresh:
                    self.refresher.schedule(
                        key,
                        lambda: self._compute_and_store(key, instant, hours, mode, point_list, limit, ttl, golden),
                    )
                    status = CacheStatus.STALE
                else:
                    status = CacheStatus.FRESH
                logger.debug(f"Sun score window {key} served from cache ({status.value})")
                return WindowResult(result=cached, cache_status=status, golden_hour=golden, ttl_seconds=ttl)

        try:
            result = await self._compute_and_store(key, instant, hours, mode, point_list, limit, ttl, golden)
        except SunScoreError as e:
            logger.error(
                f"Sun score window failed ({e.code}): {e.message}",
                exc_info=isinstance(e, ScoreComputationError),
            )
            return WindowResult(
                error=ErrorInfo(code=e.code, message=e.message),
                golden_hour=golden,
                ttl_seconds=ttl,
            )

        return WindowResult(result=result, cache_status=CacheStatus.MISS, golden_hour=golden, ttl_seconds=ttl)

    async def is_golden_hour(self, instant: datetime) -> bool:
        """
        Whether ``instant`` is within the golden window of sunrise, solar noon
        or sunset at the reference location.
        """
        instant = self._localize(instant)
        window = timedelta(minutes=self._settings.golden_window_minutes)

        try:
            times = await self._sun_times(
                instant.astimezone(self._tz).date(),
                self._settings.reference_lat,
                self._settings.reference_lon,
            )
            events = [t for t in (times.sunrise, times.sunset, times.solar_noon) if t is not None]
        except Exception as e:
            logger.warning(f"Sun events unavailable, using fixed golden hours: {e}")
            events = []

        if not events:
            return instant.astimezone(self._tz).hour in FALLBACK_GOLDEN_HOURS
        return any(abs(instant - event) < window for event in events)

    async def _compute_and_store(
        self,
        key: str,
        instant: datetime,
        hours: int,
        mode: ShadowPrecision,
        points: Optional[List[Place]],
        limit: int,
        ttl: int,
        golden: bool,
    ) -> AggregateResult:
        try:
            result = await self._compute(instant, hours, mode, points, limit, golden)
        except SunScoreError:
            raise
        except Exception as e:
            raise ScoreComputationError(str(e) or type(e).__name__) from e
        await self._cache.set(key, result.to_cache(), ttl=ttl, swr=self._settings.cache_swr_weather)
        return result

    async def _compute(
        self,
        instant: datetime,
        hours: int,
        mode: ShadowPrecision,
        points: Optional[List[Place]],
        limit: int,
        golden: bool,
    ) -> AggregateResult:
        # Both inputs must be in hand before any scoring starts
        weather, available = await asyncio.gather(
            self._get_weather(instant, hours, golden),
            self._resolve_points(points),
        )
        if not weather:
            raise WeatherUnavailableError("No weather data available")

        selected = sample_points(available, limit)
        use_precision = mode == ShadowPrecision.PRECOMPUTED
        semaphore = asyncio.Semaphore(max(1, self._settings.score_concurrency))

        async def score_with_limit(place: Place):
            async with semaphore:
                return await self._score_point(place, weather, use_precision)

        scored = await asyncio.gather(*(score_with_limit(p) for p in selected))

        precomputed = sum(counts[0] for _, counts in scored)
        heuristic = sum(counts[1] for _, counts in scored)
        total_calls = precomputed + heuristic

        meta = AggregateMeta(
            total_points=len(scored),
            total_available=len(available),
            point_limit=limit,
            hours_computed=len(weather),
            precomputed_count=precomputed,
            heuristic_count=heuristic,
            precomputed_coverage_percent=round(precomputed / total_calls * 100, 1) if total_calls else 0.0,
            weather_source=self._weather.source_name,
            shadow_method="precomputed+heuristic" if use_precision else "heuristic-only",
            golden_hour=golden,
        )
        logger.info(
            f"Computed {len(scored)} points x {len(weather)} hours "
            f"({precomputed} precomputed, {heuristic} heuristic)"
        )
        return AggregateResult(
            updated_at=self._now().astimezone(timezone.utc).isoformat(),
            hours=[w.timestamp.isoformat() for w in weather],
            points=[point for point, _ in scored],
            meta=meta,
        )

    async def _score_point(
        self,
        place: Place,
        weather: List[WeatherHour],
        use_precision: bool,
    ) -> Tuple[PointScores, Tuple[int, int]]:
        orientation = estimate_orientation(place)
        positions = await self._sun_positions([w.timestamp for w in weather], place.lat, place.lon)

        scores: List[float] = []
        labels = []
        precomputed = heuristic = 0

        for hour, position in zip(weather, positions):
            after_sunset = await self._is_after_sunset(hour.timestamp, place.lat, place.lon)

            if math.degrees(position.elevation) < MIN_SUN_ELEVATION_DEG:
                scores.append(0.0)
                labels.append(label_from_score(0.0, after_sunset))
                heuristic += 1
                continue

            result = await self._scorer.score(
                position.azimuth,
                position.elevation,
                orientation,
                hour.cloud_cover_percent,
                hour.direct_radiation_wm2,
                place.lat,
                place.lon,
                hour.timestamp,
                use_precision=use_precision,
            )
            if result.method == ShadowPrecision.PRECOMPUTED:
                precomputed += 1
            else:
                heuristic += 1
            scores.append(result.score)
            labels.append(label_from_score(result.score, after_sunset))

        point = PointScores(
            id=place.id,
            name=place.name,
            lat=place.lat,
            lon=place.lon,
            score_by_hour=scores,
            label_by_hour=labels,
        )
        return point, (precomputed, heuristic)

    async def _resolve_points(self, points: Optional[List[Place]]) -> List[Place]:
        if points is not None:
            return points
        listing = await self._places.get_places()
        return listing.places

    async def _get_weather(self, instant: datetime, hours: int, golden: bool) -> List[WeatherHour]:
        key = build_weather_key(self._settings.reference_lat, self._settings.reference_lon, align_to_hour(instant))
        ttl = self.window_ttl(golden)

        lookup = await self._cache.get(key)
        if lookup.hit:
            cached = self._parse_weather(lookup.value)
            if cached:
                if lookup.should_refresh:
                    self.refresher.schedule(key, lambda: self._refresh_weather(key, instant, ttl))
                return cached[:hours]

        fetched = await self._fetch_weather(key, instant, ttl)
        return fetched[:hours]

    async def _refresh_weather(self, key: str, instant: datetime, ttl: int) -> None:
        if not await self._fetch_weather(key, instant, ttl):
            raise WeatherUnavailableError("Weather refresh returned no data")

    async def _fetch_weather(self, key: str, instant: datetime, ttl: int) -> List[WeatherHour]:
        timeout = self._settings.provider_timeout_seconds
        try:
            hours = await asyncio.wait_for(
                self._weather.fetch_hourly(instant, self._settings.max_hours),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Weather provider timed out after {timeout}s")
            return []
        except Exception as e:
            logger.error(f"Weather provider failed: {e}", exc_info=True)
            return []

        if hours:
            payload = [h.model_dump(mode="json") for h in hours]
            await self._cache.set(key, payload, ttl=ttl, swr=self._settings.cache_swr_weather)
        return hours

    async def _sun_positions(self, instants: List[datetime], lat: float, lon: float) -> List[SunPosition]:
        positions: List[Optional[SunPosition]] = []
        missing = []

        for idx, instant in enumerate(instants):
            lookup = await self._geometry_cache.get(build_sun_geometry_key(lat, lon, instant))
            position = self._parse_model(SunPosition, lookup.value) if lookup.hit else None
            positions.append(position)
            if position is None:
                missing.append(idx)

        if missing:
            computed = self._astronomy.positions([instants[i] for i in missing], lat, lon)
            for idx, position in zip(missing, computed):
                positions[idx] = position
                await self._geometry_cache.set(
                    build_sun_geometry_key(lat, lon, instants[idx]),
                    position.model_dump(),
                    ttl=self._settings.cache_ttl_sun_geometry,
                )

        return positions

    async def _sun_times(self, day: date, lat: float, lon: float) -> SunTimes:
        key = build_sun_times_key(lat, lon, day)
        lookup = await self._geometry_cache.get(key)
        if lookup.hit:
            cached = self._parse_model(SunTimes, lookup.value)
            if cached is not None:
                return cached

        times = self._astronomy.sun_times(day, lat, lon)
        await self._geometry_cache.set(key, times.model_dump(mode="json"), ttl=self._settings.cache_ttl_sun_geometry)
        return times

    async def _is_after_sunset(self, instant: datetime, lat: float, lon: float) -> bool:
        try:
            times = await self._sun_times(instant.astimezone(self._tz).date(), lat, lon)
        except Exception as e:
            logger.debug(f"Sunset unknown for {lat},{lon}: {e}")
            return False
        return times.sunset is not None and instant > times.sunset

    def _localize(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            return instant.replace(tzinfo=self._tz)
        return instant

    @staticmethod
    def _parse_aggregate(value: Any) -> Optional[AggregateResult]:
        try:
            return AggregateResult.model_validate(value)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached sun score window: {e}")
            return None

    @staticmethod
    def _parse_weather(value: Any) -> Optional[List[WeatherHour]]:
        if not isinstance(value, list):
            return None
        try:
            return [WeatherHour.model_validate(h) for h in value]
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cached weather: {e}")
            return None

    @staticmethod
    def _parse_model(model, value: Any):
        try:
            return model.model_validate(value)
        except ValidationError:
            return None

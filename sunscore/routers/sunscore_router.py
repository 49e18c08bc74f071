"""
Sun score endpoints.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from ..errors import InvalidPrecisionError, WeatherUnavailableError
from ..models.scoring import CacheStatus
from ..models.shadow import ShadowPrecision
from ..services.container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sunscore"])

ERROR_STATUS = {
    WeatherUnavailableError.code: status.HTTP_503_SERVICE_UNAVAILABLE,
    InvalidPrecisionError.code: status.HTTP_422_UNPROCESSABLE_ENTITY,
}

CACHE_STATUS_HEADERS = {
    CacheStatus.FRESH: "fresh",
    CacheStatus.STALE: "stale-while-revalidate",
    CacheStatus.MISS: "fresh-computation",
}


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@router.get("/sunscore")
async def get_sunscore(
    hours: Optional[int] = Query(None, ge=1, description="Hours to compute (capped at the configured maximum)"),
    now: Optional[datetime] = Query(None, description="Reference instant, ISO-8601"),
    precision: ShadowPrecision = Query(ShadowPrecision.PRECOMPUTED, description="Shadow method"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of places to score"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Sun scores for every place over the next hours.

    Cache behaviour is reported through the ``x-cache``, ``x-cache-status``,
    ``x-golden-hour`` and ``x-ttl`` headers.
    """
    window = await container.orchestrator.compute_window(
        reference_instant=now,
        hour_count=hours,
        precision_mode=precision,
        point_limit=limit,
    )

    if not window.ok:
        status_code = ERROR_STATUS.get(window.error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(
            status_code=status_code,
            content={"error": window.error.code, "message": window.error.message},
        )

    headers = {
        "x-cache": "MISS" if window.cache_status == CacheStatus.MISS else "HIT",
        "x-cache-status": CACHE_STATUS_HEADERS[window.cache_status],
        "x-golden-hour": str(window.golden_hour).lower(),
        "x-ttl": str(window.ttl_seconds),
    }
    return JSONResponse(content=window.result.to_cache(), headers=headers)


@router.get("/places")
async def get_places(container: ServiceContainer = Depends(get_container)):
    """Cached place list."""
    listing = await container.places.get_places()
    headers = {
        "x-cache": "MISS" if listing.cache_status == CacheStatus.MISS else "HIT",
        "x-cache-status": CACHE_STATUS_HEADERS[listing.cache_status],
    }
    return JSONResponse(content=listing.to_dict(), headers=headers)


@router.get("/cache/stats")
async def get_cache_stats(container: ServiceContainer = Depends(get_container)):
    return {
        "cache": container.cache.get_stats(),
        "tiles": container.tile_index.get_stats(),
        "backgroundRefreshes": container.refresher.in_flight,
    }

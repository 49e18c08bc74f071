"""
Place directory implementations.

``OverpassPlaceDirectory`` queries OpenStreetMap through the Overpass API,
falling back across mirrors. ``SeedPlaceDirectory`` reads a bundled JSON
file and is used when the live directory returns nothing.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from .base import PlaceDirectory
from .models import Place

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {429, 502, 503, 504}


def _is_transient(error: BaseException) -> bool:
    """Timeouts, connection errors and overloaded mirrors are worth retrying."""
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES
    return False


class OverpassPlaceDirectory(PlaceDirectory):
    """
    Cafés (``amenity=cafe`` nodes) inside a bounding box, from Overpass.

    Each endpoint is retried on transient failures before moving on to the
    next one. When every endpoint fails the directory returns an empty list.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        bbox: Sequence[float],
        user_agent: str = "sunscore/0.1",
        timeout: float = 25.0,
        retry_attempts: int = 3,
        retry_wait: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            endpoints: Overpass interpreter URLs, tried in order
            bbox: Search area as (south, west, north, east)
            retry_attempts: Attempts per endpoint for transient failures
            retry_wait: Multiplier of the exponential backoff, in seconds
        """
        if len(bbox) != 4:
            raise ValueError("bbox must be (south, west, north, east)")
        self.endpoints = list(endpoints)
        self.bbox = tuple(bbox)
        self._retry_attempts = max(1, retry_attempts)
        self._retry_wait = retry_wait
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent}
        )

    @property
    def source_name(self) -> str:
        return "overpass"

    def build_query(self) -> str:
        south, west, north, east = self.bbox
        return (
            "[out:json][timeout:30];\n"
            f'node["amenity"="cafe"]({south},{west},{north},{east});\n'
            "out body;"
        )

    async def fetch_places(self) -> List[Place]:
        query = self.build_query()

        for endpoint in self.endpoints:
            try:
                data = await self._request_with_retry(endpoint, query)
            except Exception as e:
                logger.warning(f"🌐 Overpass endpoint {endpoint} failed: {e}")
                continue

            places = parse_overpass_elements(data.get("elements") or [])
            logger.info(f"🌐 Overpass returned {len(places)} places from {endpoint}")
            return places

        logger.error("All Overpass endpoints failed")
        return []

    async def _request_with_retry(self, endpoint: str, query: str) -> Dict[str, Any]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._retry_wait, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True,
        ):
            with attempt:
                logger.debug(f"Overpass request to {endpoint} (attempt {attempt.retry_state.attempt_number})")
                response = await self._client.post(
                    endpoint,
                    data={"data": query},
                    headers={"Content-Type": "application/x-www-form-urlencoded"}
                )
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Overpass response is not an object")
                return data

    async def close(self) -> None:
        await self._client.aclose()


def parse_overpass_elements(elements: Iterable[Dict[str, Any]]) -> List[Place]:
    """Convert Overpass elements to places, keeping only café nodes."""
    places = []
    for element in elements:
        tags = element.get("tags") or {}
        if element.get("type") != "node" or tags.get("amenity") != "cafe":
            continue
        try:
            places.append(Place(
                id=f"node/{element['id']}",
                name=tags.get("name"),
                lat=element["lat"],
                lon=element["lon"],
                attributes=tags,
            ))
        except (KeyError, ValidationError) as e:
            logger.debug(f"Skipping malformed Overpass element {element.get('id')}: {e}")
    return places


class SeedPlaceDirectory(PlaceDirectory):
    """
    Places from a JSON seed file.

    Accepts ``{"cafes": [...]}``, ``{"places": [...]}`` or a bare list.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def source_name(self) -> str:
        return "seed"

    async def fetch_places(self) -> List[Place]:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            document = json.loads(text)
        except FileNotFoundError:
            logger.warning(f"Seed places file not found: {self.path}")
            return []
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read seed places file {self.path}: {e}")
            return []

        if isinstance(document, dict):
            items = document.get("cafes") or document.get("places") or []
        elif isinstance(document, list):
            items = document
        else:
            items = []

        places = []
        for item in items:
            try:
                places.append(Place.model_validate(item))
            except ValidationError as e:
                logger.debug(f"Skipping invalid seed place: {e}")

        logger.info(f"Loaded {len(places)} seed places from {self.path}")
        return places

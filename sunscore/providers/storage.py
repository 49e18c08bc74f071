"""
Read-only blob storage for precomputed shadow data.

Tile metadata and mask documents live either in a local directory or behind
an HTTP base URL. Both are exposed through ``BlobStore`` so the tile index
never needs to know where it runs.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import httpx

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Contract for reading immutable blobs by reference."""

    @abstractmethod
    async def read_bytes(self, ref: str) -> Optional[bytes]:
        """
        Read a blob.

        Returns:
            Raw bytes, or None when the blob does not exist or cannot be read
        """
        pass

    async def read_json(self, ref: str) -> Optional[Any]:
        """Read and decode a JSON blob; None when missing or not valid JSON."""
        payload = await self.read_bytes(ref)
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Blob {ref} is not valid JSON: {e}")
            return None

    async def close(self) -> None:
        pass

    @property
    @abstractmethod
    def location(self) -> str:
        pass


class LocalBlobStore(BlobStore):
    """Blobs are files below ``root``; references are relative paths."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    @property
    def location(self) -> str:
        return str(self.root)

    def resolve(self, ref: str) -> Optional[Path]:
        """Map a reference to a path inside ``root``; None if it escapes it."""
        path = (self.root / ref.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            return None
        return path

    async def read_bytes(self, ref: str) -> Optional[bytes]:
        path = self.resolve(ref)
        if path is None:
            logger.warning(f"Rejected blob reference outside of {self.root}: {ref}")
            return None
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            logger.debug(f"Blob not found: {path}")
            return None
        except OSError as e:
            logger.warning(f"Could not read blob {path}: {e}")
            return None


class HttpBlobStore(BlobStore):
    """Blobs are fetched relative to an HTTP(S) base URL."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/") + "/"
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": "sunscore/0.1"}
        )

    @property
    def location(self) -> str:
        return self.base_url

    def url_for(self, ref: str) -> str:
        return self.base_url + ref.lstrip("/")

    async def read_bytes(self, ref: str) -> Optional[bytes]:
        url = self.url_for(ref)
        try:
            response = await self._client.get(url)
            if response.status_code == 404:
                logger.debug(f"Blob not found: {url}")
                return None
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch blob {url}: {e}")
            return None

    async def close(self) -> None:
        await self._client.aclose()


def create_blob_store(location: str, timeout: float = 10.0) -> BlobStore:
    """
    Build the blob store for a configured shadow data location.

    Args:
        location: ``http(s)://`` base URL or a local directory

    Returns:
        HttpBlobStore or LocalBlobStore
    """
    if location.startswith(("http://", "https://")):
        logger.info(f"Using remote shadow data at {location}")
        return HttpBlobStore(location, timeout=timeout)
    logger.info(f"Using local shadow data at {location}")
    return LocalBlobStore(location)

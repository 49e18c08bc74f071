"""
Durable cache tier backed by the local filesystem.

Each key maps to one self-describing JSON file named after the key's
namespace and the SHA-256 of the full key, so concurrent writers of the same
key converge on the same file without coordination.
"""

import asyncio
import hashlib
import json
import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class DurableTier(ABC):
    """
    Contract for the persistent cache tier.

    Implementations may raise on I/O or decoding problems; ``CacheStore``
    treats any exception as a miss for this tier.
    """

    @abstractmethod
    async def read(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored entry document, or None when absent."""
        pass

    @abstractmethod
    async def write(self, key: str, document: Dict[str, Any]) -> None:
        """Persist an entry document, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def purge_older_than(self, max_age_seconds: float, now: float) -> int:
        """Remove entries last written more than ``max_age_seconds`` ago."""
        pass

    @abstractmethod
    async def clear(self) -> int:
        pass


class FileCacheTier(DurableTier):
    """One JSON file per key inside ``cache_dir``."""

    def __init__(self, cache_dir: Union[str, Path]):
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: str) -> Path:
        namespace = _UNSAFE_CHARS.sub("_", key.split(":", 1)[0]) or "default"
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{namespace}-{digest}.json"

    async def read(self, key: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read_sync, key)

    async def write(self, key: str, document: Dict[str, Any]) -> None:
        payload = json.dumps(document, ensure_ascii=False)
        await asyncio.to_thread(self._write_sync, key, payload)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, key)

    async def purge_older_than(self, max_age_seconds: float, now: float) -> int:
        return await asyncio.to_thread(self._purge_sync, max_age_seconds, now)

    async def clear(self) -> int:
        return await asyncio.to_thread(self._purge_sync, -1.0, float("inf"))

    def _read_sync(self, key: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        document = json.loads(text)
        if not isinstance(document, dict):
            raise ValueError(f"Cache file {path.name} does not hold an object")
        return document

    def _write_sync(self, key: str, payload: str) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _delete_sync(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass

    def _purge_sync(self, max_age_seconds: float, now: float) -> int:
        if not self.cache_dir.is_dir():
            return 0

        removed = 0
        for path in self.cache_dir.iterdir():
            if not (path.name.endswith(".json") or path.name.endswith(".tmp")):
                continue
            try:
                if now - path.stat().st_mtime > max_age_seconds:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                # Removed concurrently by another cleanup
                continue
            except OSError as e:
                logger.warning(f"Could not purge cache file {path.name}: {e}")

        if removed:
            logger.debug(f"Purged {removed} durable cache files")
        return removed

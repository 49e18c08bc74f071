"""
Stale-while-revalidate cache store.

``CacheStore`` keeps entries in a fast in-process tier and, when configured,
mirrors them to a durable tier. Each entry carries its own ``ttl`` and
optional ``swr`` window:

- fresh:  age <= ttl
- stale:  ttl < age <= ttl + swr (served, caller should refresh)
- expired: anything older, never served

Durable-tier failures are logged and treated as misses; they never reach
callers.
"""

import base64
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .durable import DurableTier

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 30 * 24 * 60 * 60


@dataclass
class CacheEntry:
    """Cache entry with the metadata needed to judge its freshness."""
    key: str
    data: Any
    stored_at: float
    ttl: float
    swr: Optional[float] = None

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) <= self.ttl

    def is_usable(self, now: float) -> bool:
        """Fresh, or stale but still inside the SWR window."""
        return self.age(now) <= self.ttl + (self.swr or 0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a self-describing document for durable storage."""
        return {
            'key': self.key,
            'data': _serialize_data(self.data),
            'storedAt': self.stored_at,
            'ttl': self.ttl,
            'swr': self.swr,
        }

    @classmethod
    def from_dict(cls, document: Dict[str, Any]) -> 'CacheEntry':
        """
        Create a cache entry from a stored document.

        Raises:
            KeyError, TypeError, ValueError: when the document is malformed
        """
        swr = document.get('swr')
        return cls(
            key=str(document['key']),
            data=document['data'],
            stored_at=float(document['storedAt']),
            ttl=float(document['ttl']),
            swr=float(swr) if swr is not None else None,
        )


@dataclass(frozen=True)
class CacheLookup:
    """Result of ``CacheStore.get``; ``value`` is None on a miss."""
    value: Any = None
    is_stale: bool = False
    should_refresh: bool = False

    @property
    def hit(self) -> bool:
        return self.value is not None


def _serialize_data(data: Any) -> Any:
    """Convert data to a JSON-serializable form."""
    if data is None:
        return None

    # Pydantic models
    if hasattr(data, 'model_dump'):
        return _serialize_data(data.model_dump(mode='json', by_alias=True))
    elif isinstance(data, Enum):
        return data.value
    elif isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, (tuple, list)):
        return [_serialize_data(item) for item in data]
    elif isinstance(data, set):
        return [_serialize_data(item) for item in sorted(data)]
    elif isinstance(data, dict):
        return {str(k): _serialize_data(v) for k, v in data.items()}
    elif isinstance(data, bytes):
        return base64.b64encode(data).decode('utf-8')
    elif isinstance(data, (str, int, float, bool)):
        return data
    else:
        logger.warning(f"Cache serialization: unknown type {type(data)}, converting to string")
        return str(data)


class CacheStore:
    """
    Two-tier key/value cache with stale-while-revalidate semantics.

    The fast tier is an LRU-ordered map guarded by a lock so it can be shared
    by concurrent requests (and threads) in one process. The durable tier is
    optional; without it the store is memory-only.
    """

    def __init__(
        self,
        durable: Optional[DurableTier] = None,
        clock: Callable[[], float] = time.time,
        max_entries: Optional[int] = None,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        cleanup_every: int = 100,
    ):
        """
        Args:
            durable: Persistent tier, or None for a memory-only store
            clock: Returns the current time in seconds
            max_entries: LRU capacity of the fast tier (None = unbounded)
            retention_seconds: Age after which durable entries are purged by cleanup
            cleanup_every: Prune expired fast-tier entries every N sets
        """
        self._durable = durable
        self._clock = clock
        self._max_entries = max_entries
        self._retention_seconds = retention_seconds
        self._cleanup_every = max(1, cleanup_every)
        self._memory: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {
            'hits': 0,
            'stale_hits': 0,
            'misses': 0,
            'sets': 0,
            'evictions': 0,
            'durable_errors': 0,
        }

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    async def get(self, key: str) -> CacheLookup:
        """
        Look up a key in the fast tier, then the durable tier.

        A usable durable entry is copied back into the fast tier with its
        original timestamp.
        """
        now = self._clock()

        with self._lock:
            entry = self._memory.get(key)
            if entry is not None:
                if entry.is_usable(now):
                    self._memory.move_to_end(key)
                    return self._hit(entry, now)
                del self._memory[key]
                self._stats['evictions'] += 1

        if self._durable is not None:
            entry = await self._read_durable(key)
            if entry is not None and entry.is_usable(now):
                with self._lock:
                    self._insert(entry)
                    return self._hit(entry, now)

        with self._lock:
            self._stats['misses'] += 1
        logger.debug(f"Cache miss for {key}")
        return CacheLookup()

    async def set(self, key: str, value: Any, ttl: float, swr: Optional[float] = None) -> None:
        """
        Store a value.

        The fast tier is updated immediately; the durable write is
        best-effort and a failure there leaves the fast-tier value in place.
        """
        entry = CacheEntry(key=key, data=value, stored_at=self._clock(), ttl=ttl, swr=swr)

        with self._lock:
            self._insert(entry)
            self._stats['sets'] += 1
            prune = self._stats['sets'] % self._cleanup_every == 0

        if prune:
            self._prune_memory(entry.stored_at)

        if self._durable is not None:
            try:
                await self._durable.write(key, entry.to_dict())
            except Exception as e:
                with self._lock:
                    self._stats['durable_errors'] += 1
                logger.error(f"Durable cache write failed for {key}: {e}", exc_info=True)

    async def invalidate(self, key: str) -> None:
        with self._lock:
            self._memory.pop(key, None)
        if self._durable is not None:
            try:
                await self._durable.delete(key)
            except Exception as e:
                logger.error(f"Durable cache delete failed for {key}: {e}", exc_info=True)

    async def cleanup(self) -> Dict[str, int]:
        """
        Remove fast-tier entries past ``ttl + swr`` and durable entries older
        than the retention ceiling.

        Returns:
            Number of entries removed per tier
        """
        now = self._clock()
        removed_memory = self._prune_memory(now)
        removed_durable = 0

        if self._durable is not None:
            try:
                removed_durable = await self._durable.purge_older_than(self._retention_seconds, now)
            except Exception as e:
                logger.error(f"Durable cache cleanup failed: {e}", exc_info=True)

        if removed_memory or removed_durable:
            logger.info(f"Cache cleanup removed {removed_memory} memory and {removed_durable} durable entries")
        return {'memory': removed_memory, 'durable': removed_durable}

    async def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._memory.clear()
        if self._durable is not None:
            try:
                await self._durable.clear()
            except Exception as e:
                logger.error(f"Durable cache clear failed: {e}", exc_info=True)
        logger.info("Cache cleared")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            stats = dict(self._stats)
            stats['memory_entries'] = len(self._memory)

        total_requests = stats['hits'] + stats['stale_hits'] + stats['misses']
        served = stats['hits'] + stats['stale_hits']
        stats['hit_rate_percent'] = round(served / total_requests * 100, 2) if total_requests else 0.0
        stats['durable'] = self._durable is not None
        return stats

    def _hit(self, entry: CacheEntry, now: float) -> CacheLookup:
        # Caller holds the lock
        if entry.is_fresh(now):
            self._stats['hits'] += 1
            return CacheLookup(value=entry.data, is_stale=False, should_refresh=False)
        self._stats['stale_hits'] += 1
        logger.debug(f"Stale cache hit for {entry.key}")
        return CacheLookup(value=entry.data, is_stale=True, should_refresh=True)

    def _insert(self, entry: CacheEntry) -> None:
        # Caller holds the lock
        self._memory[entry.key] = entry
        self._memory.move_to_end(entry.key)
        if self._max_entries is not None:
            while len(self._memory) > self._max_entries:
                self._memory.popitem(last=False)
                self._stats['evictions'] += 1

    def _prune_memory(self, now: float) -> int:
        with self._lock:
            expired = [k for k, e in self._memory.items() if not e.is_usable(now)]
            for k in expired:
                del self._memory[k]
            self._stats['evictions'] += len(expired)
        return len(expired)

    async def _read_durable(self, key: str) -> Optional[CacheEntry]:
        try:
            document = await self._durable.read(key)
        except Exception as e:
            with self._lock:
                self._stats['durable_errors'] += 1
            logger.error(f"Durable cache read failed for {key}: {e}", exc_info=True)
            return None

        if document is None:
            return None

        try:
            entry = CacheEntry.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            with self._lock:
                self._stats['durable_errors'] += 1
            logger.warning(f"Ignoring malformed durable cache entry for {key}: {e}")
            return None

        if entry.key != key:
            logger.warning(f"Durable cache entry key mismatch for {key}")
            return None
        return entry

"""
Two-tier stale-while-revalidate cache.

The fast tier lives in process memory; the durable tier persists
self-describing JSON entries on disk so any reader can judge freshness.
"""

from .keys import CacheKey, align_to_hour
from .store import CacheEntry, CacheLookup, CacheStore
from .durable import DurableTier, FileCacheTier

__all__ = [
    'CacheKey',
    'align_to_hour',
    'CacheEntry',
    'CacheLookup',
    'CacheStore',
    'DurableTier',
    'FileCacheTier',
]

"""
Sun exposure scores for points of interest.

Combines solar geometry, hourly cloud cover and precomputed shadow masks
(with a heuristic fallback) into hourly scores served through a
stale-while-revalidate cache.
"""

__version__ = "0.1.0"

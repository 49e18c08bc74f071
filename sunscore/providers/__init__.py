"""
External collaborators of the score pipeline.

Astronomy, weather, place and blob-storage providers are defined as abstract
contracts with one concrete implementation each, plus a seed-file place
directory used as a fallback.
"""

from .base import AstronomyProvider, PlaceDirectory, WeatherProvider
from .models import Place, SunPosition, SunTimes, WeatherHour
from .storage import BlobStore, HttpBlobStore, LocalBlobStore, create_blob_store

__all__ = [
    'AstronomyProvider',
    'PlaceDirectory',
    'WeatherProvider',
    'Place',
    'SunPosition',
    'SunTimes',
    'WeatherHour',
    'BlobStore',
    'HttpBlobStore',
    'LocalBlobStore',
    'create_blob_store',
]

"""Configuration: settings and logging setup."""
from sunscore.config.settings import SunScoreSettings, get_settings, reset_settings

__all__ = [
    "SunScoreSettings",
    "get_settings",
    "reset_settings",
]

"""
Domain exceptions for the sun score service.

Every exception carries a stable ``code`` so callers and HTTP clients can
branch on it without parsing messages.
"""


class SunScoreError(Exception):
    """Base error for failures that must be reported to the caller."""

    code = "sunscore_failed"

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class WeatherUnavailableError(SunScoreError):
    """Raised when no weather data exists for the requested window."""

    code = "weather_unavailable"


class ScoreComputationError(SunScoreError):
    """Raised when an aggregate score computation fails unexpectedly."""

    code = "sunscore_failed"


class InvalidPrecisionError(SunScoreError):
    """Raised when a caller asks for an unknown shadow precision mode."""

    code = "invalid_precision"

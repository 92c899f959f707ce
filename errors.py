from typing import Any, Optional


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or validated."""


class ProviderError(Exception):
    """Base class for failures talking to a remote provider."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class NotFound(ProviderError):
    """The geocoding provider returned no results for a place name."""

    def __init__(self, place_name: str, provider: Optional[str] = None):
        super().__init__(f"No location found for '{place_name}'", provider)
        self.place_name = place_name


class TransportError(ProviderError):
    """The request could not complete (timeout, DNS, connection, bad status)."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider)
        self.status_code = status_code


class InvalidEndpoint(ProviderError):
    """The request URL could not be built or was rejected by the provider."""


class DecodeError(ProviderError):
    """The response body did not match the expected schema."""

    def __init__(self, field: str, value: Any, provider: Optional[str] = None, reason: str = ""):
        message = f"Invalid value for '{field}': {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, provider)
        self.field = field
        self.value = value
        self.reason = reason


class StageFailure(Exception):
    """An orchestration stage failed. ``cause`` holds the provider error."""

    stage = "unknown"

    def __init__(self, cause: ProviderError):
        super().__init__(f"{self.stage} failed: {cause}")
        self.cause = cause


class GeocodeFailed(StageFailure):
    stage = "geocode"


class WeatherFetchFailed(StageFailure):
    stage = "weather"


class AirQualityFetchFailed(StageFailure):
    stage = "air_quality"

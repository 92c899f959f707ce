import logging

from models import Coordinate, WeatherSnapshot
from provider_client import ProviderClient

logger = logging.getLogger(__name__)


class WeatherFetcher(ProviderClient):
    """Fetch current, hourly and daily forecasts from the One Call endpoint."""

    name = "weather"

    def __init__(self, *, units: str = "metric", **kwargs):
        super().__init__(**kwargs)
        self.units = units

    async def fetch(self, coordinate: Coordinate) -> WeatherSnapshot:
        """
        Get the weather snapshot for a coordinate.

        Unknown condition groups decode to ``WeatherCondition.UNKNOWN``; any
        other schema mismatch raises DecodeError.
        """
        try:
            logger.info(
                f"Fetching weather data for {coordinate.latitude}, {coordinate.longitude}"
            )
            payload = await self._get_json(
                {
                    "lat": coordinate.latitude,
                    "lon": coordinate.longitude,
                    "units": self.units,
                }
            )
            snapshot = self._decode(WeatherSnapshot, payload)

            logger.info(
                f"Successfully fetched weather data: {len(snapshot.hourly)} hourly, "
                f"{len(snapshot.daily)} daily readings"
            )
            return snapshot

        except Exception as e:
            logger.error(f"Error fetching weather data: {e}")
            raise

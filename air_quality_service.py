import logging

from models import AirQualitySnapshot, Coordinate
from provider_client import ProviderClient

logger = logging.getLogger(__name__)


class AirQualityFetcher(ProviderClient):
    """Fetch pollutant concentrations and AQI from the air pollution endpoint."""

    name = "air_quality"

    async def fetch(self, coordinate: Coordinate) -> AirQualitySnapshot:
        """Get the air quality snapshot. An AQI outside 1..5 raises DecodeError."""
        try:
            logger.info(
                f"Fetching air quality data for {coordinate.latitude}, {coordinate.longitude}"
            )
            payload = await self._get_json(
                {"lat": coordinate.latitude, "lon": coordinate.longitude}
            )
            snapshot = self._decode(AirQualitySnapshot, payload)

            logger.info(f"Successfully fetched {len(snapshot.readings)} air quality readings")
            return snapshot

        except Exception as e:
            logger.error(f"Error fetching air quality data: {e}")
            raise

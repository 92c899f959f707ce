import logging

from errors import DecodeError, NotFound
from models import Coordinate
from provider_client import ProviderClient

logger = logging.getLogger(__name__)


class Geocoder(ProviderClient):
    """Resolve free-text place names with the OpenWeather direct geocoding API."""

    name = "geocoding"

    async def resolve(self, place_name: str) -> Coordinate:
        """Return the coordinate of the first match for ``place_name``.

        Raises NotFound when the provider has no match, TransportError when the
        request cannot complete and DecodeError for a malformed result.
        """
        place_name = place_name.strip()
        if not place_name:
            raise ValueError("Place name must not be empty")

        logger.info(f"Geocoding '{place_name}'")
        results = await self._get_json({"q": place_name, "limit": 1})

        if not isinstance(results, list):
            raise DecodeError("<root>", results, self.name, reason="expected a list of matches")
        if not results:
            raise NotFound(place_name, self.name)

        first = results[0]
        if not isinstance(first, dict):
            raise DecodeError("0", first, self.name, reason="expected an object")

        coordinate = self._decode(
            Coordinate, {"latitude": first.get("lat"), "longitude": first.get("lon")}
        )
        logger.info(f"Resolved '{place_name}' to {coordinate.latitude}, {coordinate.longitude}")
        return coordinate

import logging
from typing import List

from errors import DecodeError
from models import Coordinate, PlaceOfInterest
from provider_client import ProviderClient

logger = logging.getLogger(__name__)

OVERPASS_QUERY = """[out:json][timeout:{timeout}];
(
  node["tourism"="attraction"]["name"](around:{radius},{lat},{lon});
  way["tourism"="attraction"]["name"](around:{radius},{lat},{lon});
);
out center {limit};"""


class AttractionFinder(ProviderClient):
    """Look up named tourist attractions around a coordinate via Overpass."""

    name = "attractions"

    def __init__(self, *, radius_m: int = 2000, **kwargs):
        super().__init__(**kwargs)
        self.radius_m = radius_m

    async def find_nearby(self, coordinate: Coordinate, limit: int = 5) -> List[PlaceOfInterest]:
        query = OVERPASS_QUERY.format(
            timeout=int(self.timeout),
            radius=self.radius_m,
            lat=coordinate.latitude,
            lon=coordinate.longitude,
            limit=limit,
        )
        payload = await self._get_json({"data": query})

        elements = payload.get("elements") if isinstance(payload, dict) else None
        if not isinstance(elements, list):
            raise DecodeError("elements", elements, self.name, reason="expected a list")

        places: List[PlaceOfInterest] = []
        for element in elements:
            if len(places) >= limit:
                break
            if not isinstance(element, dict):
                continue
            name = (element.get("tags") or {}).get("name")
            if not name:
                continue
            # Ways carry their position in "center", nodes at the top level.
            position = element.get("center") or element
            if position.get("lat") is None or position.get("lon") is None:
                continue
            places.append(
                self._decode(
                    PlaceOfInterest,
                    {
                        "name": name,
                        "coordinate": {
                            "latitude": position.get("lat"),
                            "longitude": position.get("lon"),
                        },
                    },
                )
            )

        logger.info(f"Found {len(places)} attractions near {coordinate.latitude}, {coordinate.longitude}")
        return places

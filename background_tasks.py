import asyncio
import logging

from models import Config, SavedPlace
from saved_places import SavedPlacesStore
from weather_service import WeatherFetcher

logger = logging.getLogger(__name__)


class SavedPlacesRefreshTask:
    def __init__(
        self,
        weather_fetcher: WeatherFetcher,
        saved_places: SavedPlacesStore,
        config: Config,
    ):
        self.weather_fetcher = weather_fetcher
        self.saved_places = saved_places
        self.config = config
        self.running = False

    async def start_background_updates(self):
        """Start the background task refreshing saved place conditions."""
        self.running = True
        logger.info("Starting background saved place updates")

        while self.running:
            await asyncio.sleep(self.config.server.refresh_interval_minutes * 60)
            if self.running:
                await self.update_all_places()

    async def update_all_places(self):
        """Refresh the last known condition of every saved place, one at a time."""
        places = self.saved_places.places
        logger.info(f"Refreshing conditions for {len(places)} saved places")

        for place in places:
            try:
                await self.update_place(place)
            except Exception as e:
                logger.error(f"Failed to refresh {place.name}: {e}")

    async def update_place(self, place: SavedPlace):
        """Fetch the current weather for one place and replace its entry."""
        snapshot = await self.weather_fetcher.fetch(place.coordinate)
        condition = snapshot.current.primary_condition
        if condition != place.last_known_condition:
            self.saved_places.replace(place.model_copy(update={"last_known_condition": condition}))
        logger.info(f"Refreshed {place.name}: {condition.value}")

    def stop(self):
        """Stop the background update task."""
        self.running = False
        logger.info("Stopping background saved place updates")

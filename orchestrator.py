import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Type

from air_quality_service import AirQualityFetcher
from errors import (
    AirQualityFetchFailed,
    GeocodeFailed,
    ProviderError,
    StageFailure,
    WeatherFetchFailed,
)
from geocoder import Geocoder
from models import Coordinate, LocationForecast, PublishedState, SavedPlace
from saved_places import SavedPlacesStore
from weather_service import WeatherFetcher

logger = logging.getLogger(__name__)

StateCallback = Callable[[PublishedState], None]


class LocationOrchestrator:
    """Drive geocode -> {weather, air quality} and publish the combined result.

    The published state always holds the last successful forecast. A failed
    call records its stage and message next to it but never clears it.
    Overlapping calls are not queued; whichever completes last is published
    last.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        weather_fetcher: WeatherFetcher,
        air_quality_fetcher: AirQualityFetcher,
        saved_places: Optional[SavedPlacesStore] = None,
    ):
        self.geocoder = geocoder
        self.weather_fetcher = weather_fetcher
        self.air_quality_fetcher = air_quality_fetcher
        self.saved_places = saved_places
        self._state = PublishedState()
        self._last_failure: Optional[StageFailure] = None
        self._subscribers: List[StateCallback] = []

    @property
    def state(self) -> PublishedState:
        return self._state

    @property
    def last_failure(self) -> Optional[StageFailure]:
        return self._last_failure

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def resolve_and_fetch(self, place_name: str) -> LocationForecast:
        """Geocode ``place_name`` and fetch weather and air quality for it.

        Raises GeocodeFailed, WeatherFetchFailed or AirQualityFetchFailed with
        the provider error as ``cause``.
        """
        place_name = place_name.strip()
        if not place_name:
            raise ValueError("Place name must not be empty")

        try:
            coordinate = await self.geocoder.resolve(place_name)
        except ProviderError as e:
            raise self._fail(GeocodeFailed(e)) from e

        return await self._fetch_and_publish(place_name, coordinate)

    async def fetch_for_place(self, name: str, coordinate: Coordinate) -> LocationForecast:
        """Fetch data for an already known coordinate, e.g. a saved place."""
        return await self._fetch_and_publish(name, coordinate)

    def save_current(self) -> Optional[SavedPlace]:
        """Save the published location. Returns None if nothing new was saved."""
        if self.saved_places is None:
            raise RuntimeError("No saved places store configured")
        result = self._state.result
        if result is None:
            return None
        return self.saved_places.add(
            result.name,
            result.coordinate,
            last_known_condition=result.weather.current.primary_condition,
        )

    async def _fetch_and_publish(self, name: str, coordinate: Coordinate) -> LocationForecast:
        weather_task = asyncio.create_task(self.weather_fetcher.fetch(coordinate))
        air_task = asyncio.create_task(self.air_quality_fetcher.fetch(coordinate))
        stages: Dict[asyncio.Task, Type[StageFailure]] = {
            weather_task: WeatherFetchFailed,
            air_task: AirQualityFetchFailed,
        }

        try:
            done, pending = await asyncio.wait(
                stages.keys(), return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in stages:
                task.cancel()
            raise

        errors = {task: task.exception() for task in done}
        for task, failure_type in stages.items():
            exc = errors.get(task)
            if exc is None:
                continue
            for other in pending:
                other.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            if isinstance(exc, ProviderError):
                raise self._fail(failure_type(exc)) from exc
            raise exc

        forecast = LocationForecast(
            name=name,
            coordinate=coordinate,
            weather=weather_task.result(),
            air_quality=air_task.result(),
        )
        self._last_failure = None
        self._publish(PublishedState(result=forecast, updated_at=datetime.now(timezone.utc)))
        logger.info(f"Published forecast for '{name}'")
        return forecast

    def _fail(self, failure: StageFailure) -> StageFailure:
        logger.warning(f"Orchestration failed at {failure.stage}: {failure.cause}")
        self._last_failure = failure
        self._publish(
            PublishedState(
                result=self._state.result,
                failed_stage=failure.stage,
                error=str(failure.cause),
                updated_at=datetime.now(timezone.utc),
            )
        )
        return failure

    def _publish(self, state: PublishedState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

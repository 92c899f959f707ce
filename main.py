import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from air_quality_service import AirQualityFetcher
from attractions_service import AttractionFinder
from background_tasks import SavedPlacesRefreshTask
from config_loader import load_config
from errors import NotFound, ProviderError, StageFailure
from geocoder import Geocoder
from models import (
    Config,
    Coordinate,
    LocationForecast,
    PlaceOfInterest,
    PublishedState,
    SavedPlace,
    SavePlaceRequest,
)
from orchestrator import LocationOrchestrator
from saved_places import JsonFileStorage, KeyValueStorage, SavedPlacesStore
from weather_service import WeatherFetcher

# Configure logging with Docker-friendly format
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),
        (
            logging.FileHandler("/app/logs/weather_api.log")
            if os.path.exists("/app/logs")
            else logging.NullHandler()
        ),
    ],
)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    client: httpx.AsyncClient
    geocoder: Geocoder
    weather_fetcher: WeatherFetcher
    air_quality_fetcher: AirQualityFetcher
    attraction_finder: AttractionFinder
    saved_places: SavedPlacesStore
    orchestrator: LocationOrchestrator
    refresh_task: SavedPlacesRefreshTask


def build_services(
    config: Config,
    client: Optional[httpx.AsyncClient] = None,
    storage: Optional[KeyValueStorage] = None,
) -> Services:
    """Wire providers, the saved places store and the orchestrator together."""
    provider = config.provider
    client = client or httpx.AsyncClient(timeout=provider.timeout_seconds)
    common = {"client": client, "timeout": provider.timeout_seconds}

    geocoder = Geocoder(base_url=provider.geocoding_url, api_key=provider.api_key, **common)
    weather_fetcher = WeatherFetcher(
        base_url=provider.weather_url, api_key=provider.api_key, units=provider.units, **common
    )
    air_quality_fetcher = AirQualityFetcher(
        base_url=provider.air_quality_url, api_key=provider.api_key, **common
    )
    attraction_finder = AttractionFinder(
        base_url=provider.attractions_url, radius_m=provider.attractions_radius_m, **common
    )
    saved_places = SavedPlacesStore(
        storage or JsonFileStorage(config.storage.directory), key=config.storage.key
    )
    orchestrator = LocationOrchestrator(
        geocoder, weather_fetcher, air_quality_fetcher, saved_places=saved_places
    )
    refresh_task = SavedPlacesRefreshTask(weather_fetcher, saved_places, config)

    return Services(
        client=client,
        geocoder=geocoder,
        weather_fetcher=weather_fetcher,
        air_quality_fetcher=air_quality_fetcher,
        attraction_finder=attraction_finder,
        saved_places=saved_places,
        orchestrator=orchestrator,
        refresh_task=refresh_task,
    )


def _status_for(error: ProviderError) -> int:
    if isinstance(error, NotFound):
        return 404
    return 502


def create_app(config: Config, services: Services) -> FastAPI:
    orchestrator = services.orchestrator
    saved_places = services.saved_places

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Starting weather place API")
        saved_places.load()
        logger.info(f"Refresh interval: {config.server.refresh_interval_minutes} minutes")

        async def load_default_location():
            try:
                await orchestrator.resolve_and_fetch(config.default_location)
            except (StageFailure, ValueError) as e:
                logger.error(f"Could not load default location {config.default_location!r}: {e}")

        initial_task = asyncio.create_task(load_default_location())
        background_task = asyncio.create_task(services.refresh_task.start_background_updates())

        yield

        logger.info("Shutting down weather place API")
        services.refresh_task.stop()
        try:
            for task in (initial_task, background_task):
                task.cancel()
            results = await asyncio.gather(initial_task, background_task, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Background task ended with an error: {result!r}")
            logger.info("Background tasks stopped")
        finally:
            await services.client.aclose()

    app = FastAPI(
        title="Weather Place API",
        description="Weather, air quality and saved places for searched locations",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(StageFailure)
    async def stage_failure_handler(request, exc: StageFailure):
        return JSONResponse(
            status_code=_status_for(exc.cause),
            content={"error": exc.stage, "message": str(exc.cause)},
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request, exc: ProviderError):
        return JSONResponse(
            status_code=_status_for(exc),
            content={"error": exc.provider or "provider", "message": str(exc)},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request, exc: ValueError):
        return JSONResponse(status_code=422, content={"error": "invalid_request", "message": str(exc)})

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500, content={"error": "Internal server error", "message": str(exc)}
        )

    @app.get("/weather", response_model=LocationForecast)
    async def get_weather(place: str = Query(..., min_length=1)):
        """Geocode a place name and return its weather and air quality."""
        return await orchestrator.resolve_and_fetch(place)

    @app.get("/current", response_model=PublishedState)
    async def get_current():
        """Last successful forecast and the outcome of the latest search."""
        return orchestrator.state

    @app.post("/current/save")
    async def save_current():
        if orchestrator.state.result is None:
            raise HTTPException(status_code=404, detail="No location has been loaded yet")
        place = orchestrator.save_current()
        return {"saved": place is not None, "place": place}

    @app.get("/places", response_model=List[SavedPlace])
    async def get_places():
        return list(saved_places.places)

    @app.post("/places")
    async def add_place(request: SavePlaceRequest):
        place = saved_places.add(
            request.name,
            Coordinate(latitude=request.latitude, longitude=request.longitude),
        )
        return {"saved": place is not None, "place": place}

    @app.delete("/places/{place_id}")
    async def delete_place(place_id: UUID):
        return {"removed": saved_places.remove(place_id)}

    @app.get("/places/{place_id}/weather", response_model=LocationForecast)
    async def get_place_weather(place_id: UUID):
        place = saved_places.get(place_id)
        if place is None:
            raise HTTPException(status_code=404, detail=f"Place '{place_id}' not found")
        return await orchestrator.fetch_for_place(place.name, place.coordinate)

    @app.get("/attractions", response_model=List[PlaceOfInterest])
    async def get_attractions(limit: int = Query(5, ge=1, le=20)):
        """Top attractions near the currently published location."""
        result = orchestrator.state.result
        if result is None:
            raise HTTPException(status_code=404, detail="No location has been loaded yet")
        return await services.attraction_finder.find_nearby(result.coordinate, limit=limit)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        state = orchestrator.state
        return {
            "status": "healthy",
            "current_location": state.result.name if state.result else None,
            "last_updated": state.updated_at.isoformat() if state.updated_at else None,
            "last_error": state.error,
            "saved_places": len(saved_places.places),
            "refresh_interval_minutes": config.server.refresh_interval_minutes,
        }

    return app


config = load_config(os.getenv("CONFIG_PATH", "config.toml"))
if os.getenv("OPENWEATHER_API_KEY"):
    config.provider.api_key = os.environ["OPENWEATHER_API_KEY"]

app = create_app(config, build_services(config))


if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", config.server.host)
    port = int(os.getenv("PORT", config.server.port))

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(app, host=host, port=port, log_level=log_level.lower(), access_log=True)

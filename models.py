from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    refresh_interval_minutes: int = 60


class ProviderConfig(BaseModel):
    api_key: str = ""
    weather_url: str = "https://api.openweathermap.org/data/3.0/onecall"
    air_quality_url: str = "https://api.openweathermap.org/data/2.5/air_pollution"
    geocoding_url: str = "https://api.openweathermap.org/geo/1.0/direct"
    attractions_url: str = "https://overpass-api.de/api/interpreter"
    attractions_radius_m: int = 2000
    timeout_seconds: float = 10.0
    units: str = "metric"


class StorageConfig(BaseModel):
    directory: str = ".data"
    key: str = "savedLocations"


class Config(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    default_location: str = "London"


class WeatherCondition(str, Enum):
    """Primary weather group reported by the provider (``weather[].main``)."""

    CLEAR = "Clear"
    CLOUDS = "Clouds"
    RAIN = "Rain"
    MIST = "Mist"
    SMOKE = "Smoke"
    HAZE = "Haze"
    DUST = "Dust"
    FOG = "Fog"
    SAND = "Sand"
    ASH = "Ash"
    SQUALL = "Squall"
    TORNADO = "Tornado"
    SNOW = "Snow"
    DRIZZLE = "Drizzle"
    THUNDERSTORM = "Thunderstorm"
    UNKNOWN = "Unknown"

    @classmethod
    def from_provider(cls, value: str) -> "WeatherCondition":
        """Map a provider string to a condition, falling back to UNKNOWN."""
        for condition in cls:
            if condition.value.lower() == value.strip().lower():
                return condition
        return cls.UNKNOWN


class ConditionDetail(str, Enum):
    """Detailed condition phrases (``weather[].description``)."""

    CLEAR_SKY = "clear sky"
    FEW_CLOUDS = "few clouds"
    SCATTERED_CLOUDS = "scattered clouds"
    BROKEN_CLOUDS = "broken clouds"
    OVERCAST_CLOUDS = "overcast clouds"
    FEW_CLOUDS_11_25 = "few clouds: 11-25%"
    SCATTERED_CLOUDS_25_50 = "scattered clouds: 25-50%"
    BROKEN_CLOUDS_51_84 = "broken clouds: 51-84%"
    OVERCAST_CLOUDS_85_100 = "overcast clouds: 85-100%"
    LIGHT_RAIN = "light rain"
    MODERATE_RAIN = "moderate rain"
    HEAVY_INTENSITY_RAIN = "heavy intensity rain"
    VERY_HEAVY_RAIN = "very heavy rain"
    EXTREME_RAIN = "extreme rain"
    FREEZING_RAIN = "freezing rain"
    LIGHT_INTENSITY_SHOWER_RAIN = "light intensity shower rain"
    SHOWER_RAIN = "shower rain"
    HEAVY_INTENSITY_SHOWER_RAIN = "heavy intensity shower rain"
    RAGGED_SHOWER_RAIN = "ragged shower rain"
    THUNDERSTORM_WITH_LIGHT_RAIN = "thunderstorm with light rain"
    THUNDERSTORM_WITH_RAIN = "thunderstorm with rain"
    THUNDERSTORM_WITH_HEAVY_RAIN = "thunderstorm with heavy rain"
    LIGHT_THUNDERSTORM = "light thunderstorm"
    THUNDERSTORM = "thunderstorm"
    HEAVY_THUNDERSTORM = "heavy thunderstorm"
    RAGGED_THUNDERSTORM = "ragged thunderstorm"
    THUNDERSTORM_WITH_LIGHT_DRIZZLE = "thunderstorm with light drizzle"
    THUNDERSTORM_WITH_DRIZZLE = "thunderstorm with drizzle"
    THUNDERSTORM_WITH_HEAVY_DRIZZLE = "thunderstorm with heavy drizzle"
    LIGHT_INTENSITY_DRIZZLE = "light intensity drizzle"
    DRIZZLE = "drizzle"
    HEAVY_INTENSITY_DRIZZLE = "heavy intensity drizzle"
    LIGHT_INTENSITY_DRIZZLE_RAIN = "light intensity drizzle rain"
    DRIZZLE_RAIN = "drizzle rain"
    HEAVY_INTENSITY_DRIZZLE_RAIN = "heavy intensity drizzle rain"
    SHOWER_RAIN_AND_DRIZZLE = "shower rain and drizzle"
    HEAVY_SHOWER_RAIN_AND_DRIZZLE = "heavy shower rain and drizzle"
    SHOWER_DRIZZLE = "shower drizzle"
    LIGHT_SNOW = "light snow"
    SNOW = "snow"
    HEAVY_SNOW = "heavy snow"
    SLEET = "sleet"
    LIGHT_SHOWER_SLEET = "light shower sleet"
    SHOWER_SLEET = "shower sleet"
    LIGHT_RAIN_AND_SNOW = "light rain and snow"
    RAIN_AND_SNOW = "rain and snow"
    LIGHT_SHOWER_SNOW = "light shower snow"
    SHOWER_SNOW = "shower snow"
    HEAVY_SHOWER_SNOW = "heavy shower snow"
    MIST = "mist"
    SMOKE = "smoke"
    HAZE = "haze"
    SAND_DUST_WHIRLS = "sand/dust whirls"
    FOG = "fog"
    SAND = "sand"
    DUST = "dust"
    VOLCANIC_ASH = "volcanic ash"
    SQUALLS = "squalls"
    TORNADO = "tornado"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, value: str) -> "ConditionDetail":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


def _lift_weather(data: Any) -> Any:
    # Providers nest the condition in a one-element "weather" list.
    if not isinstance(data, dict):
        return data
    data = dict(data)
    weather = data.pop("weather", None)
    if isinstance(weather, list) and weather and isinstance(weather[0], dict):
        data.setdefault("primary_condition", weather[0].get("main"))
        data.setdefault("description", weather[0].get("description"))
    condition = data.get("primary_condition")
    if "primary_condition_raw" not in data:
        if isinstance(condition, WeatherCondition):
            data["primary_condition_raw"] = condition.value
        else:
            data["primary_condition_raw"] = condition
    return data


def _to_condition(value: Any) -> Any:
    if isinstance(value, str):
        return WeatherCondition.from_provider(value)
    return value


class ConditionReading(BaseModel):
    """A current or hourly reading, decoded from the One Call payload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(validation_alias="dt")
    temperature: float = Field(validation_alias="temp")
    feels_like: float
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction_deg: int = Field(validation_alias="wind_deg")
    cloudiness: int = Field(validation_alias="clouds")
    primary_condition: WeatherCondition
    primary_condition_raw: str
    description: str
    precipitation_last_hour: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        data = _lift_weather(data)
        if isinstance(data, dict):
            rain = data.pop("rain", None)
            if isinstance(rain, dict):
                data.setdefault("precipitation_last_hour", rain.get("1h"))
        return data

    @field_validator("primary_condition", mode="before")
    @classmethod
    def _condition(cls, value: Any) -> Any:
        return _to_condition(value)

    @property
    def detail(self) -> ConditionDetail:
        return ConditionDetail.from_provider(self.description)


class FeelsLike(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: float
    night: float
    eve: float
    morn: float


class DailyReading(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(validation_alias="dt")
    temp_min: float
    temp_max: float
    feels_like: FeelsLike
    humidity: int
    pressure: int
    wind_speed: float
    precipitation_probability: float = Field(ge=0, le=1, validation_alias="pop")
    primary_condition: WeatherCondition
    primary_condition_raw: str
    description: str

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, data: Any) -> Any:
        data = _lift_weather(data)
        if isinstance(data, dict):
            temp = data.pop("temp", None)
            if isinstance(temp, dict):
                data.setdefault("temp_min", temp.get("min"))
                data.setdefault("temp_max", temp.get("max"))
        return data

    @field_validator("primary_condition", mode="before")
    @classmethod
    def _condition(cls, value: Any) -> Any:
        return _to_condition(value)

    @property
    def detail(self) -> ConditionDetail:
        return ConditionDetail.from_provider(self.description)


class WeatherSnapshot(BaseModel):
    """Current, hourly and daily forecast for one coordinate.

    ``hourly`` and ``daily`` keep the provider's chronological order.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    coordinate: Coordinate
    timezone: str = "UTC"
    timezone_offset_seconds: int = Field(validation_alias="timezone_offset")
    current: ConditionReading
    hourly: List[ConditionReading] = Field(default_factory=list)
    daily: List[DailyReading] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _coordinate_from_payload(cls, data: Any) -> Any:
        if isinstance(data, dict) and "coordinate" not in data and "lat" in data:
            data = dict(data)
            data["coordinate"] = {"latitude": data.pop("lat"), "longitude": data.pop("lon", None)}
        return data


class AirQualityReading(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(validation_alias="dt")
    aqi: int = Field(ge=1, le=5)
    pollutant_concentrations: Dict[str, float] = Field(
        default_factory=dict, validation_alias="components"
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_main(cls, data: Any) -> Any:
        if isinstance(data, dict) and "main" in data:
            data = dict(data)
            main = data.pop("main")
            if isinstance(main, dict):
                data.setdefault("aqi", main.get("aqi"))
        return data


class AirQualitySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    readings: List[AirQualityReading] = Field(validation_alias="list")

    @property
    def latest(self) -> Optional[AirQualityReading]:
        return self.readings[0] if self.readings else None


class SavedPlace(BaseModel):
    """A user-saved location. Updated only by replacing the whole entry."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(min_length=1)
    coordinate: Coordinate
    last_known_condition: Optional[WeatherCondition] = None


class PlaceOfInterest(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    coordinate: Coordinate


class LocationForecast(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    coordinate: Coordinate
    weather: WeatherSnapshot
    air_quality: AirQualitySnapshot


class PublishedState(BaseModel):
    """Last successful forecast plus the outcome of the latest call."""

    model_config = ConfigDict(frozen=True)

    result: Optional[LocationForecast] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    updated_at: Optional[datetime] = None


class SavePlaceRequest(BaseModel):
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ErrorResponse(BaseModel):
    error: str
    message: str
